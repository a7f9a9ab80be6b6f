"""SQLAlchemy Models for PharmaFlow"""

from .base import Base
from .tenant import Tenant
from .user import User
from .auth_token import RefreshToken, PasswordResetToken
from .audit_log import AuditLog, AuditLogImmutableError
from .product import Product, ProductCategory, UnitType, DEASchedule

__all__ = [
    "Base",
    "Tenant",
    "User",
    "RefreshToken",
    "PasswordResetToken",
    "AuditLog",
    "AuditLogImmutableError",
    "Product",
    "ProductCategory",
    "UnitType",
    "DEASchedule",
]
