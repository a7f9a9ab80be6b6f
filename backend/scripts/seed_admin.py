#!/usr/bin/env python
"""Seed script to create the first tenant and its admin user.

Run once during initial setup. The admin can then manage the catalog and
staff accounts through the API.

Usage:
    python backend/scripts/seed_admin.py

Environment Variables:
    DATABASE_URL: PostgreSQL connection string
    PASSWORD_PEPPER: Password hashing pepper (required)
    TENANT_CODE: Tenant code (default: PHARM000001); created if missing
    TENANT_NAME: Tenant name used when creating the tenant (default: Main Pharmacy)
    ADMIN_USERNAME: Username for admin user (default: admin)
    ADMIN_EMAIL: Email for admin user (default: admin@example.com)
    ADMIN_PASSWORD: Password for admin user (default: AdminPass123)
    ADMIN_NAME: Display name for admin user (default: System Administrator)
"""

import os
import sys

from sqlalchemy import func, select

from pharmaflow.auth.password import hash_password, validate_password_strength
from pharmaflow.auth.roles import UserRole
from pharmaflow.database import get_db_session
from pharmaflow.models import Tenant, User


def main():
    """Create initial tenant and admin user."""
    tenant_code = os.getenv("TENANT_CODE", "PHARM000001").upper()
    tenant_name = os.getenv("TENANT_NAME", "Main Pharmacy")
    admin_username = os.getenv("ADMIN_USERNAME", "admin")
    admin_email = os.getenv("ADMIN_EMAIL", "admin@example.com")
    admin_password = os.getenv("ADMIN_PASSWORD", "AdminPass123")
    admin_name = os.getenv("ADMIN_NAME", "System Administrator")

    # Validate password strength
    is_valid, error_msg = validate_password_strength(admin_password)
    if not is_valid:
        print(f"ERROR: Password does not meet strength requirements: {error_msg}")
        sys.exit(1)

    try:
        with get_db_session() as session:
            tenant = session.execute(
                select(Tenant).where(Tenant.code == tenant_code)
            ).scalar_one_or_none()

            if tenant is None:
                tenant = Tenant(code=tenant_code, name=tenant_name)
                session.add(tenant)
                session.flush()
                print(f"Created tenant {tenant.code} ({tenant.id})")

            existing_user = session.execute(
                select(User).where(
                    User.tenant_id == tenant.id,
                    func.lower(User.email) == admin_email.lower(),
                )
            ).scalar_one_or_none()

            if existing_user:
                print(f"ERROR: User with email {admin_email} already exists in tenant {tenant.code}")
                sys.exit(1)

            admin_user = User(
                tenant_id=tenant.id,
                username=admin_username,
                email=admin_email,
                full_name=admin_name,
                role=UserRole.ADMIN.value,
                password_hash=hash_password(admin_password),
            )
            session.add(admin_user)
            session.flush()

            print("SUCCESS: Admin user created")
            print(f"  ID:       {admin_user.id}")
            print(f"  Tenant:   {tenant.code}")
            print(f"  Username: {admin_user.username}")
            print(f"  Email:    {admin_user.email}")
            print(f"  Role:     {admin_user.role}")

    except Exception as e:
        print(f"ERROR: Failed to create admin user: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
