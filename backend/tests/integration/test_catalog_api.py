"""Integration tests for the product catalog API

Tests cover:
- Category CRUD, duplicate names and delete protection
- Product CRUD with code/barcode uniqueness and DEA schedule rules
- Role requirements per operation
- Tenant isolation
- Audit entries written for mutations
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from pharmaflow.models.audit_log import AuditLog
from pharmaflow.models.product import Product, ProductCategory


pytestmark = pytest.mark.integration

CATEGORIES = "/api/v1/product-categories"
PRODUCTS = "/api/v1/products"


def product_payload(**overrides):
    payload = {
        "code": "PARA500",
        "barcode": "8901234567890",
        "name": "Paracetamol 500mg",
        "generic_name": "Paracetamol",
        "manufacturer": "Acme Pharma",
        "unit_type": "TABLET",
        "requires_prescription": False,
        "dea_schedule": "UNSCHEDULED",
        "min_stock_level": 20,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def category(db_session, test_tenant):
    category = ProductCategory(tenant_id=test_tenant.id, name="Analgesics")
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def product(db_session, test_tenant, category):
    product = Product(
        tenant_id=test_tenant.id,
        category_id=category.id,
        code="IBU400",
        barcode="8900000000001",
        name="Ibuprofen 400mg",
        unit_type="TABLET",
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


def audit_actions(db_session, entity_type):
    return db_session.execute(
        select(AuditLog.action)
        .where(AuditLog.entity_type == entity_type)
        .order_by(AuditLog.created_at)
    ).scalars().all()


class TestCategories:

    def test_create(self, manager_client, db_session, test_tenant):
        response = manager_client.post(CATEGORIES, json={"name": "Antibiotics", "description": "Rx only"})

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Antibiotics"
        assert body["tenant_id"] == str(test_tenant.id)
        assert audit_actions(db_session, "ProductCategory") == ["CREATE"]

    def test_duplicate_name_conflict(self, manager_client, category):
        response = manager_client.post(CATEGORIES, json={"name": "analgesics"})

        assert response.status_code == 409

    def test_pharmacist_cannot_create(self, pharmacist_client):
        assert pharmacist_client.post(CATEGORIES, json={"name": "Vitamins"}).status_code == 403

    def test_list_with_search(self, cashier_client, db_session, test_tenant, category):
        db_session.add(ProductCategory(tenant_id=test_tenant.id, name="Vitamins"))
        db_session.commit()

        body = cashier_client.get(CATEGORIES, params={"search": "vita"}).json()

        assert body["total"] == 1
        assert body["data"][0]["name"] == "Vitamins"

    def test_invalid_sort_field(self, cashier_client):
        response = cashier_client.get(CATEGORIES, params={"sort_by": "password"})

        assert response.status_code == 400

    def test_get_with_product_count(self, cashier_client, category, product):
        body = cashier_client.get(f"{CATEGORIES}/{category.id}").json()

        assert body["product_count"] == 1

    def test_update(self, manager_client, db_session, category):
        response = manager_client.patch(f"{CATEGORIES}/{category.id}", json={"description": "Pain relief"})

        assert response.status_code == 200
        assert response.json()["description"] == "Pain relief"
        assert response.json()["name"] == "Analgesics"
        assert audit_actions(db_session, "ProductCategory") == ["UPDATE"]

    def test_update_to_taken_name_conflict(self, manager_client, db_session, test_tenant, category):
        db_session.add(ProductCategory(tenant_id=test_tenant.id, name="Vitamins"))
        db_session.commit()

        response = manager_client.patch(f"{CATEGORIES}/{category.id}", json={"name": "Vitamins"})

        assert response.status_code == 409

    def test_delete_with_products_conflict(self, admin_client, category, product):
        response = admin_client.delete(f"{CATEGORIES}/{category.id}")

        assert response.status_code == 409
        assert "1 associated product" in response.json()["detail"]

    def test_delete(self, admin_client, db_session, category):
        response = admin_client.delete(f"{CATEGORIES}/{category.id}")

        assert response.status_code == 204
        assert db_session.execute(select(ProductCategory)).scalars().all() == []
        assert audit_actions(db_session, "ProductCategory") == ["DELETE"]

    def test_manager_cannot_delete(self, manager_client, category):
        assert manager_client.delete(f"{CATEGORIES}/{category.id}").status_code == 403


class TestCreateProduct:

    def test_create(self, pharmacist_client, db_session, category):
        response = pharmacist_client.post(PRODUCTS, json=product_payload(category_id=str(category.id)))

        assert response.status_code == 201
        body = response.json()
        assert body["code"] == "PARA500"
        assert body["unit_type"] == "TABLET"
        assert body["category_id"] == str(category.id)
        assert audit_actions(db_session, "Product") == ["CREATE"]

    def test_cashier_cannot_create(self, cashier_client):
        assert cashier_client.post(PRODUCTS, json=product_payload()).status_code == 403

    def test_duplicate_code_conflict(self, pharmacist_client, product):
        response = pharmacist_client.post(PRODUCTS, json=product_payload(code="IBU400"))

        assert response.status_code == 409
        assert "IBU400" in response.json()["detail"]

    def test_duplicate_barcode_conflict(self, pharmacist_client, product):
        response = pharmacist_client.post(PRODUCTS, json=product_payload(barcode="8900000000001"))

        assert response.status_code == 409

    def test_same_code_allowed_in_other_tenant(self, db_session, other_tenant, pharmacist_client):
        db_session.add(Product(tenant_id=other_tenant.id, code="PARA500", name="Other Para", unit_type="TABLET"))
        db_session.commit()

        assert pharmacist_client.post(PRODUCTS, json=product_payload()).status_code == 201

    def test_unknown_category(self, pharmacist_client):
        response = pharmacist_client.post(PRODUCTS, json=product_payload(category_id=str(uuid4())))

        assert response.status_code == 400

    def test_scheduled_drug_requires_prescription(self, pharmacist_client):
        response = pharmacist_client.post(
            PRODUCTS,
            json=product_payload(code="MORPH10", dea_schedule="SCHEDULE_II", requires_prescription=False),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Products with DEA Schedule SCHEDULE_II must require prescription"

    def test_scheduled_drug_with_prescription(self, pharmacist_client):
        response = pharmacist_client.post(
            PRODUCTS,
            json=product_payload(code="MORPH10", dea_schedule="SCHEDULE_II", requires_prescription=True),
        )

        assert response.status_code == 201

    def test_invalid_code_format(self, pharmacist_client):
        assert pharmacist_client.post(PRODUCTS, json=product_payload(code="bad code!")).status_code == 422


class TestListAndGetProducts:

    def test_search_over_generic_name(self, cashier_client, product, db_session, test_tenant):
        db_session.add(Product(
            tenant_id=test_tenant.id, code="PARA500", name="Panadol", generic_name="Paracetamol", unit_type="TABLET"
        ))
        db_session.commit()

        body = cashier_client.get(PRODUCTS, params={"search": "paracet"}).json()

        assert body["total"] == 1
        assert body["data"][0]["name"] == "Panadol"

    def test_filters(self, cashier_client, product, db_session, test_tenant):
        db_session.add(Product(
            tenant_id=test_tenant.id, code="AMOX500", name="Amoxicillin", unit_type="CAPSULE",
            requires_prescription=True,
        ))
        db_session.commit()

        body = cashier_client.get(PRODUCTS, params={"requires_prescription": True}).json()

        assert [p["code"] for p in body["data"]] == ["AMOX500"]

    def test_get(self, cashier_client, product):
        response = cashier_client.get(f"{PRODUCTS}/{product.id}")

        assert response.status_code == 200
        assert response.json()["code"] == "IBU400"

    def test_other_tenant_product_not_found(self, cashier_client, db_session, other_tenant):
        foreign = Product(tenant_id=other_tenant.id, code="FOREIGN1", name="Foreign", unit_type="SYRUP")
        db_session.add(foreign)
        db_session.commit()

        response = cashier_client.get(f"{PRODUCTS}/{foreign.id}")

        assert response.status_code == 404
        assert response.json()["detail"] == f"Product with ID '{foreign.id}' not found"


class TestUpdateProduct:

    def test_partial_update(self, pharmacist_client, db_session, product):
        response = pharmacist_client.patch(f"{PRODUCTS}/{product.id}", json={"min_stock_level": 50})

        assert response.status_code == 200
        assert response.json()["min_stock_level"] == 50
        assert response.json()["name"] == "Ibuprofen 400mg"

        entry = db_session.execute(
            select(AuditLog).where(AuditLog.entity_type == "Product", AuditLog.action == "UPDATE")
        ).scalar_one()
        assert entry.old_values["min_stock_level"] == 0
        assert entry.new_values["min_stock_level"] == 50

    def test_explicit_null_clears_nullable_field(self, pharmacist_client, product):
        response = pharmacist_client.patch(f"{PRODUCTS}/{product.id}", json={"barcode": None})

        assert response.status_code == 200
        assert response.json()["barcode"] is None

    def test_explicit_null_ignored_for_required_field(self, pharmacist_client, product):
        response = pharmacist_client.patch(f"{PRODUCTS}/{product.id}", json={"name": None})

        assert response.status_code == 200
        assert response.json()["name"] == "Ibuprofen 400mg"

    def test_schedule_change_checked_against_merged_state(self, pharmacist_client, product):
        response = pharmacist_client.patch(f"{PRODUCTS}/{product.id}", json={"dea_schedule": "SCHEDULE_IV"})

        assert response.status_code == 400

    def test_code_taken_by_other_product(self, pharmacist_client, db_session, test_tenant, product):
        db_session.add(Product(tenant_id=test_tenant.id, code="PARA500", name="Paracetamol", unit_type="TABLET"))
        db_session.commit()

        response = pharmacist_client.patch(f"{PRODUCTS}/{product.id}", json={"code": "PARA500"})

        assert response.status_code == 409

    def test_keeping_own_code_is_fine(self, pharmacist_client, product):
        response = pharmacist_client.patch(f"{PRODUCTS}/{product.id}", json={"code": "IBU400"})

        assert response.status_code == 200

    def test_clear_category(self, pharmacist_client, product):
        response = pharmacist_client.patch(f"{PRODUCTS}/{product.id}", json={"category_id": None})

        assert response.status_code == 200
        assert response.json()["category_id"] is None


class TestDeleteProduct:

    def test_admin_deletes(self, admin_client, db_session, product):
        product_id = product.id

        response = admin_client.delete(f"{PRODUCTS}/{product_id}")

        assert response.status_code == 204
        assert db_session.get(Product, product_id) is None
        assert audit_actions(db_session, "Product") == ["DELETE"]

    def test_pharmacist_cannot_delete(self, pharmacist_client, product):
        assert pharmacist_client.delete(f"{PRODUCTS}/{product.id}").status_code == 403

    def test_missing_product(self, admin_client):
        assert admin_client.delete(f"{PRODUCTS}/{uuid4()}").status_code == 404


class TestTenantScopedListing:

    def test_lists_only_own_tenant(self, cashier_client, db_session, test_tenant, other_tenant):
        db_session.add(ProductCategory(tenant_id=test_tenant.id, name="Own"))
        db_session.add(ProductCategory(tenant_id=other_tenant.id, name="Foreign"))
        db_session.add(Product(tenant_id=other_tenant.id, code="FOREIGN1", name="Foreign", unit_type="SYRUP"))
        db_session.commit()

        categories = cashier_client.get(CATEGORIES).json()
        products = cashier_client.get(PRODUCTS).json()

        assert [c["name"] for c in categories["data"]] == ["Own"]
        assert products["total"] == 0
