"""PharmaFlow backend: multi-tenant pharmacy management API."""

__version__ = "0.1.0"
