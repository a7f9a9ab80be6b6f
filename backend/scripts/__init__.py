"""Operational command-line scripts (seeding, audit log purge)."""
