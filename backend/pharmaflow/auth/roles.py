"""Staff roles and permission hierarchy for PharmaFlow.

Role Hierarchy (descending permissions):
- ADMIN: Full access, user management, audit retention
- MANAGER: Catalog management, audit log review
- PHARMACIST: Dispensing, catalog reads
- CASHIER: Point of sale

Permission Matrix:
┌──────────────────────┬───────┬─────────┬────────────┬─────────┐
│ Action               │ ADMIN │ MANAGER │ PHARMACIST │ CASHIER │
├──────────────────────┼───────┼─────────┼────────────┼─────────┤
│ Audit Retention      │   ✓   │         │            │         │
│ View Audit Logs      │   ✓   │    ✓    │            │         │
│ Manage Catalog       │   ✓   │    ✓    │            │         │
│ View Catalog         │   ✓   │    ✓    │     ✓      │    ✓    │
└──────────────────────┴───────┴─────────┴────────────┴─────────┘
"""

from enum import Enum
from typing import Set


class UserRole(str, Enum):
    """Staff roles. Values are stored as TEXT and must match exactly."""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    PHARMACIST = "PHARMACIST"
    CASHIER = "CASHIER"


# Each role includes permissions of all roles below it
ROLE_HIERARCHY = {
    UserRole.ADMIN: {UserRole.ADMIN, UserRole.MANAGER, UserRole.PHARMACIST, UserRole.CASHIER},
    UserRole.MANAGER: {UserRole.MANAGER, UserRole.PHARMACIST, UserRole.CASHIER},
    UserRole.PHARMACIST: {UserRole.PHARMACIST, UserRole.CASHIER},
    UserRole.CASHIER: {UserRole.CASHIER},
}


def has_permission(user_role: UserRole, required_role: UserRole) -> bool:
    """Check whether user_role satisfies required_role in the hierarchy.

    Examples:
        >>> has_permission(UserRole.ADMIN, UserRole.PHARMACIST)
        True
        >>> has_permission(UserRole.CASHIER, UserRole.MANAGER)
        False
    """
    return required_role in ROLE_HIERARCHY.get(user_role, set())


def get_allowed_roles(required_role: UserRole) -> Set[UserRole]:
    """All roles that satisfy required_role."""
    return {role for role, permissions in ROLE_HIERARCHY.items() if required_role in permissions}
