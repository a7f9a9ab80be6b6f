"""Product and ProductCategory SQLAlchemy models"""

import enum
import uuid

from sqlalchemy import (
    Column, Text, Boolean, Integer, DateTime, Uuid, ForeignKey, Index,
    UniqueConstraint, func,
)
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class UnitType(str, enum.Enum):
    """Dispensing unit of a product."""
    TABLET = "TABLET"
    CAPSULE = "CAPSULE"
    SYRUP = "SYRUP"
    INJECTION = "INJECTION"
    CREAM = "CREAM"
    DROPS = "DROPS"
    OINTMENT = "OINTMENT"
    POWDER = "POWDER"


class DEASchedule(str, enum.Enum):
    """DEA controlled substance schedule.

    Anything other than UNSCHEDULED must be dispensed on prescription.
    """
    SCHEDULE_I = "SCHEDULE_I"
    SCHEDULE_II = "SCHEDULE_II"
    SCHEDULE_III = "SCHEDULE_III"
    SCHEDULE_IV = "SCHEDULE_IV"
    SCHEDULE_V = "SCHEDULE_V"
    UNSCHEDULED = "UNSCHEDULED"


class ProductCategory(Base):
    """Product category (e.g. Antibiotics, Analgesics).

    Category names are unique per tenant.
    """
    __tablename__ = "product_category"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_product_category_tenant_name"),
        Index("ix_product_category_tenant_id", "tenant_id"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenant.id", ondelete="RESTRICT"), nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    # Relationships
    tenant = relationship("Tenant", back_populates="product_categories")
    products = relationship("Product", back_populates="category")

    def to_dict(self):
        """Convert category to dictionary representation"""
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
        }


class Product(Base):
    """Product model representing the pharmacy's catalog.

    Each product belongs to one tenant and has a unique code (and barcode,
    when set) within that tenant.
    """
    __tablename__ = "product"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_product_tenant_code"),
        Index("ix_product_tenant_id", "tenant_id"),
        Index("ix_product_tenant_barcode", "tenant_id", "barcode"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenant.id", ondelete="RESTRICT"), nullable=False)
    category_id = Column(Uuid(as_uuid=True), ForeignKey("product_category.id", ondelete="RESTRICT"), nullable=True)
    code = Column(Text, nullable=False)
    barcode = Column(Text, nullable=True)
    name = Column(Text, nullable=False)
    generic_name = Column(Text, nullable=True)
    manufacturer = Column(Text, nullable=True)
    unit_type = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    requires_prescription = Column(Boolean, nullable=False, default=False)
    dea_schedule = Column(Text, nullable=False, default=DEASchedule.UNSCHEDULED.value)
    min_stock_level = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    # Relationships
    tenant = relationship("Tenant", back_populates="products")
    category = relationship("ProductCategory", back_populates="products")

    def to_dict(self):
        """Convert product to dictionary representation"""
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "category_id": str(self.category_id) if self.category_id else None,
            "code": self.code,
            "barcode": self.barcode,
            "name": self.name,
            "generic_name": self.generic_name,
            "manufacturer": self.manufacturer,
            "unit_type": self.unit_type,
            "description": self.description,
            "requires_prescription": self.requires_prescription,
            "dea_schedule": self.dea_schedule,
            "min_stock_level": self.min_stock_level,
            "is_active": self.is_active,
        }
