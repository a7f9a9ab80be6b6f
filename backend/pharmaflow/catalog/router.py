"""Product catalog API endpoints (products and product categories)"""

import logging
import math
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..audit.service import AuditAction, get_client_ip, log_audit_event
from ..auth.dependencies import get_current_user, require_role
from ..auth.roles import UserRole
from ..database import get_db
from ..dependencies import TenantQuery, get_tenant_id
from ..models.product import DEASchedule, Product, ProductCategory
from ..models.user import User
from .schemas import (
    CategoryCreate,
    CategoryDetailResponse,
    CategoryResponse,
    CategoryUpdate,
    Page,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    SortOrder,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])
category_router = APIRouter(prefix="/product-categories", tags=["product-categories"])

CATEGORY_SORT_FIELDS = {"name", "created_at", "updated_at"}
PRODUCT_SORT_FIELDS = {"name", "code", "created_at", "updated_at"}
NULLABLE_PRODUCT_FIELDS = {"barcode", "generic_name", "manufacturer", "description"}


def _order_by(model, sort_by: str, sort_order: SortOrder, allowed: set):
    if sort_by not in allowed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid sort_by '{sort_by}'. Must be one of: {', '.join(sorted(allowed))}"
        )
    column = getattr(model, sort_by)
    return column.desc() if sort_order == SortOrder.DESC else column.asc()


def _paginate(db: Session, query, page: int, limit: int) -> dict:
    total = db.execute(
        select(func.count()).select_from(query.order_by(None).subquery())
    ).scalar_one()
    items = db.execute(query.offset((page - 1) * limit).limit(limit)).scalars().all()
    return {
        "data": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
    }


# ============================================================================
# Category Endpoints
# ============================================================================

def _ensure_category_name_free(
    db: Session, tenant_id: UUID, name: str, exclude_id: Optional[UUID] = None
) -> None:
    stmt = select(ProductCategory.id).where(
        ProductCategory.tenant_id == tenant_id,
        func.lower(ProductCategory.name) == name.lower(),
    )
    if exclude_id:
        stmt = stmt.where(ProductCategory.id != exclude_id)

    if db.execute(stmt).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Category with name '{name}' already exists"
        )


def _product_count(db: Session, tenant_id: UUID, category_id: UUID) -> int:
    return db.execute(
        select(func.count()).select_from(Product).where(
            Product.tenant_id == tenant_id,
            Product.category_id == category_id,
        )
    ).scalar_one()


@category_router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    category_data: CategoryCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MANAGER))
):
    """
    Create a product category (ADMIN/MANAGER only).

    Raises:
        HTTPException 409: If a category with the same name exists in the tenant
    """
    _ensure_category_name_free(db, current_user.tenant_id, category_data.name)

    category = ProductCategory(tenant_id=current_user.tenant_id, **category_data.model_dump())
    db.add(category)
    db.commit()
    db.refresh(category)

    log_audit_event(
        db=db,
        tenant_id=current_user.tenant_id,
        action=AuditAction.CREATE,
        entity_type="ProductCategory",
        entity_id=category.id,
        user_id=current_user.id,
        new_values=category.to_dict(),
        ip_address=get_client_ip(request),
    )

    return CategoryResponse.model_validate(category)


@category_router.get("", response_model=Page[CategoryResponse])
def list_categories(
    search: Optional[str] = Query(None, description="Case-insensitive match on name"),
    is_active: Optional[bool] = Query(None, description="Filter by active status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("name", description="name, created_at or updated_at"),
    sort_order: SortOrder = Query(SortOrder.ASC),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """List product categories with search and pagination."""
    query = TenantQuery.scoped_select(ProductCategory, tenant_id)

    if search:
        query = query.where(ProductCategory.name.ilike(f"%{search}%"))
    if is_active is not None:
        query = query.where(ProductCategory.is_active == is_active)

    query = query.order_by(_order_by(ProductCategory, sort_by, sort_order, CATEGORY_SORT_FIELDS))
    result = _paginate(db, query, page, limit)
    result["data"] = [CategoryResponse.model_validate(c) for c in result["data"]]
    return result


@category_router.get("/{category_id}", response_model=CategoryDetailResponse)
def get_category(
    category_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get a category with its product count.

    Raises:
        HTTPException 404: If not found or belongs to another tenant
    """
    category = TenantQuery.get_or_404(db, ProductCategory, category_id, current_user.tenant_id, "Category")

    response = CategoryDetailResponse.model_validate(category)
    response.product_count = _product_count(db, current_user.tenant_id, category.id)
    return response


@category_router.patch("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: UUID,
    category_data: CategoryUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MANAGER))
):
    """
    Update a category (ADMIN/MANAGER only).

    Raises:
        HTTPException 404: If not found or belongs to another tenant
        HTTPException 409: If the new name is taken by another category
    """
    category = TenantQuery.get_or_404(db, ProductCategory, category_id, current_user.tenant_id, "Category")
    old_values = category.to_dict()

    update_data = {
        field: value
        for field, value in category_data.model_dump(exclude_unset=True).items()
        if value is not None or field == "description"
    }
    if update_data.get("name") and update_data["name"] != category.name:
        _ensure_category_name_free(db, current_user.tenant_id, update_data["name"], exclude_id=category.id)

    for field, value in update_data.items():
        setattr(category, field, value)

    db.commit()
    db.refresh(category)

    log_audit_event(
        db=db,
        tenant_id=current_user.tenant_id,
        action=AuditAction.UPDATE,
        entity_type="ProductCategory",
        entity_id=category.id,
        user_id=current_user.id,
        old_values=old_values,
        new_values=category.to_dict(),
        ip_address=get_client_ip(request),
    )

    return CategoryResponse.model_validate(category)


@category_router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN))
):
    """
    Delete a category (ADMIN only).

    Raises:
        HTTPException 404: If not found or belongs to another tenant
        HTTPException 409: If products still reference the category
    """
    category = TenantQuery.get_or_404(db, ProductCategory, category_id, current_user.tenant_id, "Category")

    product_count = _product_count(db, current_user.tenant_id, category.id)
    if product_count > 0:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Cannot delete category with {product_count} associated product(s). "
                "Please reassign or delete products first."
            )
        )

    old_values = category.to_dict()
    db.delete(category)
    db.commit()

    log_audit_event(
        db=db,
        tenant_id=current_user.tenant_id,
        action=AuditAction.DELETE,
        entity_type="ProductCategory",
        entity_id=category_id,
        user_id=current_user.id,
        old_values=old_values,
        ip_address=get_client_ip(request),
    )


# ============================================================================
# Product Endpoints
# ============================================================================

def _validate_dea_schedule(dea_schedule: str, requires_prescription: bool) -> None:
    if dea_schedule != DEASchedule.UNSCHEDULED.value and not requires_prescription:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Products with DEA Schedule {dea_schedule} must require prescription"
        )


def _ensure_unique(
    db: Session, tenant_id: UUID, column, value: str, message: str, exclude_id: Optional[UUID] = None
) -> None:
    stmt = select(Product.id).where(Product.tenant_id == tenant_id, column == value)
    if exclude_id:
        stmt = stmt.where(Product.id != exclude_id)

    if db.execute(stmt).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message)


def _ensure_category_exists(db: Session, tenant_id: UUID, category_id: UUID) -> None:
    exists = db.execute(
        select(ProductCategory.id).where(
            ProductCategory.id == category_id,
            ProductCategory.tenant_id == tenant_id,
        )
    ).first()
    if not exists:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Category with ID '{category_id}' not found"
        )


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(
    product_data: ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.PHARMACIST))
):
    """
    Create a new product (ADMIN/MANAGER/PHARMACIST).

    Raises:
        HTTPException 400: Unknown category, or DEA-scheduled product without prescription
        HTTPException 409: Code or barcode already used in the tenant
    """
    tenant_id = current_user.tenant_id

    _validate_dea_schedule(product_data.dea_schedule.value, product_data.requires_prescription)
    _ensure_unique(db, tenant_id, Product.code, product_data.code,
                   f"Product code '{product_data.code}' already exists")
    if product_data.barcode:
        _ensure_unique(db, tenant_id, Product.barcode, product_data.barcode,
                       f"Barcode '{product_data.barcode}' already exists")
    if product_data.category_id:
        _ensure_category_exists(db, tenant_id, product_data.category_id)

    product = Product(
        tenant_id=tenant_id,
        category_id=product_data.category_id,
        **product_data.model_dump(mode="json", exclude={"category_id"}),
    )
    db.add(product)
    db.commit()
    db.refresh(product)

    log_audit_event(
        db=db,
        tenant_id=tenant_id,
        action=AuditAction.CREATE,
        entity_type="Product",
        entity_id=product.id,
        user_id=current_user.id,
        new_values=product.to_dict(),
        ip_address=get_client_ip(request),
    )

    return ProductResponse.model_validate(product)


@router.get("", response_model=Page[ProductResponse])
def list_products(
    search: Optional[str] = Query(None, description="Search code, barcode, name or generic name"),
    category_id: Optional[UUID] = Query(None),
    requires_prescription: Optional[bool] = Query(None),
    dea_schedule: Optional[DEASchedule] = Query(None),
    is_active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("name", description="name, code, created_at or updated_at"),
    sort_order: SortOrder = Query(SortOrder.ASC),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """List products with search, filters and pagination."""
    query = TenantQuery.scoped_select(Product, tenant_id)

    if search:
        search_term = f"%{search}%"
        query = query.where(
            or_(
                Product.code.ilike(search_term),
                Product.barcode.ilike(search_term),
                Product.name.ilike(search_term),
                Product.generic_name.ilike(search_term)
            )
        )
    if category_id:
        query = query.where(Product.category_id == category_id)
    if requires_prescription is not None:
        query = query.where(Product.requires_prescription == requires_prescription)
    if dea_schedule:
        query = query.where(Product.dea_schedule == dea_schedule.value)
    if is_active is not None:
        query = query.where(Product.is_active == is_active)

    query = query.order_by(_order_by(Product, sort_by, sort_order, PRODUCT_SORT_FIELDS))
    result = _paginate(db, query, page, limit)
    result["data"] = [ProductResponse.model_validate(p) for p in result["data"]]
    return result


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get a single product by ID.

    Raises:
        HTTPException 404: If product not found or belongs to another tenant
    """
    product = TenantQuery.get_or_404(db, Product, product_id, current_user.tenant_id)
    return ProductResponse.model_validate(product)


@router.patch("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: UUID,
    product_data: ProductUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.PHARMACIST))
):
    """
    Update a product (ADMIN/MANAGER/PHARMACIST).

    The DEA rule is checked against the merged result, so changing only
    dea_schedule on a prescription product is accepted.

    Raises:
        HTTPException 400: Unknown category, or DEA-scheduled product without prescription
        HTTPException 404: If product not found or belongs to another tenant
        HTTPException 409: Code or barcode already used by another product
    """
    tenant_id = current_user.tenant_id
    product = TenantQuery.get_or_404(db, Product, product_id, tenant_id)
    old_values = product.to_dict()

    # Explicit nulls only clear nullable columns
    update_data = {
        field: value
        for field, value in product_data.model_dump(
            mode="json", exclude_unset=True, exclude={"category_id"}
        ).items()
        if value is not None or field in NULLABLE_PRODUCT_FIELDS
    }

    _validate_dea_schedule(
        update_data.get("dea_schedule", product.dea_schedule),
        update_data.get("requires_prescription", product.requires_prescription),
    )
    if update_data.get("code"):
        _ensure_unique(db, tenant_id, Product.code, update_data["code"],
                       f"Product code '{update_data['code']}' already exists", exclude_id=product.id)
    if update_data.get("barcode"):
        _ensure_unique(db, tenant_id, Product.barcode, update_data["barcode"],
                       f"Barcode '{update_data['barcode']}' already exists", exclude_id=product.id)
    if "category_id" in product_data.model_fields_set:
        if product_data.category_id:
            _ensure_category_exists(db, tenant_id, product_data.category_id)
        update_data["category_id"] = product_data.category_id

    for field, value in update_data.items():
        setattr(product, field, value)

    db.commit()
    db.refresh(product)

    log_audit_event(
        db=db,
        tenant_id=tenant_id,
        action=AuditAction.UPDATE,
        entity_type="Product",
        entity_id=product.id,
        user_id=current_user.id,
        old_values=old_values,
        new_values=product.to_dict(),
        ip_address=get_client_ip(request),
    )

    return ProductResponse.model_validate(product)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN))
):
    """
    Delete a product (ADMIN only).

    Raises:
        HTTPException 404: If product not found or belongs to another tenant
    """
    product = TenantQuery.get_or_404(db, Product, product_id, current_user.tenant_id)
    old_values = product.to_dict()

    db.delete(product)
    db.commit()

    log_audit_event(
        db=db,
        tenant_id=current_user.tenant_id,
        action=AuditAction.DELETE,
        entity_type="Product",
        entity_id=product_id,
        user_id=current_user.id,
        old_values=old_values,
        ip_address=get_client_ip(request),
    )

    logger.info(
        f"Product {product_id} deleted",
        extra={"tenant_id": str(current_user.tenant_id), "user_id": str(current_user.id)},
    )
