"""Pydantic schemas for the catalog domain (products, categories)"""

from datetime import datetime
from enum import Enum
from typing import Generic, List, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.product import DEASchedule, UnitType

T = TypeVar("T")

PRODUCT_CODE_PATTERN = r"^[A-Za-z0-9_-]+$"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ============================================================================
# Categories
# ============================================================================

class CategoryCreate(BaseModel):
    """Schema for creating a product category"""
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_active: bool = True


class CategoryUpdate(BaseModel):
    """Schema for updating a product category (partial)"""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None


class CategoryResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    description: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CategoryDetailResponse(CategoryResponse):
    """Category with the number of products referencing it"""
    product_count: int = 0


# ============================================================================
# Products
# ============================================================================

class ProductBase(BaseModel):
    """Base schema for Product"""
    code: str = Field(
        ...,
        min_length=3,
        max_length=50,
        pattern=PRODUCT_CODE_PATTERN,
        description="Alphanumeric with dashes or underscores",
    )
    barcode: Optional[str] = Field(None, max_length=50)
    name: str = Field(..., min_length=3, max_length=200)
    generic_name: Optional[str] = Field(None, max_length=200)
    manufacturer: Optional[str] = Field(None, max_length=100)
    category_id: Optional[UUID] = None
    unit_type: UnitType
    description: Optional[str] = Field(None, max_length=500)
    requires_prescription: bool = False
    dea_schedule: DEASchedule = DEASchedule.UNSCHEDULED
    min_stock_level: int = Field(0, ge=0)
    is_active: bool = True


class ProductCreate(ProductBase):
    """Schema for creating a new Product"""
    pass


class ProductUpdate(BaseModel):
    """Schema for updating a Product (partial)"""
    code: Optional[str] = Field(None, min_length=3, max_length=50, pattern=PRODUCT_CODE_PATTERN)
    barcode: Optional[str] = Field(None, max_length=50)
    name: Optional[str] = Field(None, min_length=3, max_length=200)
    generic_name: Optional[str] = Field(None, max_length=200)
    manufacturer: Optional[str] = Field(None, max_length=100)
    category_id: Optional[UUID] = None
    unit_type: Optional[UnitType] = None
    description: Optional[str] = Field(None, max_length=500)
    requires_prescription: Optional[bool] = None
    dea_schedule: Optional[DEASchedule] = None
    min_stock_level: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ProductResponse(BaseModel):
    """Schema for Product response"""
    id: UUID
    tenant_id: UUID
    category_id: Optional[UUID]
    code: str
    barcode: Optional[str]
    name: str
    generic_name: Optional[str]
    manufacturer: Optional[str]
    unit_type: str
    description: Optional[str]
    requires_prescription: bool
    dea_schedule: str
    min_stock_level: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class Page(BaseModel, Generic[T]):
    """One page of results"""
    data: List[T]
    total: int
    page: int
    limit: int
    total_pages: int
