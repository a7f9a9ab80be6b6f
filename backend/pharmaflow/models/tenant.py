"""Tenant model - Root entity for multi-tenant isolation"""

import re
import uuid

from sqlalchemy import Column, Text, Boolean, DateTime, Uuid, func
from sqlalchemy.orm import validates, relationship

from .base import Base, PortableJSONB, utcnow


class Tenant(Base):
    """
    Tenant model - one pharmacy organisation.

    Each tenant has isolated data. Users, catalog rows and audit entries
    reference tenant.id via foreign key.
    """
    __tablename__ = "tenant"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)
    address = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    settings_json = Column(PortableJSONB, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow
    )

    # Relationships
    users = relationship("User", back_populates="tenant")
    products = relationship("Product", back_populates="tenant")
    product_categories = relationship("ProductCategory", back_populates="tenant")

    @validates('code')
    def validate_code(self, key, value):
        """
        Ensure tenant code is uppercase alphanumeric.

        Valid: PHARM000001, CITY-CARE
        Invalid: pharm 01, city_care

        Raises:
            ValueError: If code doesn't match pattern or length requirements
        """
        if not value or not re.match(r'^[A-Z0-9-]+$', value):
            raise ValueError(
                "Tenant code must contain only uppercase letters, numbers, and hyphens"
            )
        if len(value) < 2 or len(value) > 50:
            raise ValueError("Tenant code must be between 2 and 50 characters")
        return value

    @validates('name')
    def validate_name(self, key, value):
        """
        Ensure tenant name is not empty and within length limits.

        Raises:
            ValueError: If name is empty/whitespace or exceeds 200 characters
        """
        if not value or len(value.strip()) == 0:
            raise ValueError("Tenant name cannot be empty")
        if len(value) > 200:
            raise ValueError("Tenant name cannot exceed 200 characters")
        return value.strip()

    def __repr__(self):
        return f"<Tenant(id={self.id}, code='{self.code}', name='{self.name}')>"
