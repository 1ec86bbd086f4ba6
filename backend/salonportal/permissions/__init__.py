# Overview: Permission system package.
# Re-exports all public APIs for role and permission lookups.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    USER_PERMISSIONS,
    SALON_PERMISSIONS,
    EMPLOYEE_PERMISSIONS,
    TARIFF_PERMISSIONS,
    SUPPLIER_PERMISSIONS,
    BONUS_PERMISSIONS,
    INSURANCE_PERMISSIONS,
    COMMUNICATION_PERMISSIONS,
    INTEGRATION_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import (
    ALL_ROLES,
    SALON_ROLES,
    DISTRICT_ROLES,
    SUPPLIER_ROLES,
    SALON_LEADER_ROLES,
    ROLE_LABELS,
    DEFAULT_ROLE_PERMISSIONS,
    required_association,
)
from .helpers import (
    get_all_permission_codes,
    group_by_category,
    role_catalogue,
    get_role_permission_codes,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "USER_PERMISSIONS",
    "SALON_PERMISSIONS",
    "EMPLOYEE_PERMISSIONS",
    "TARIFF_PERMISSIONS",
    "SUPPLIER_PERMISSIONS",
    "BONUS_PERMISSIONS",
    "INSURANCE_PERMISSIONS",
    "COMMUNICATION_PERMISSIONS",
    "INTEGRATION_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "ALL_ROLES",
    "SALON_ROLES",
    "DISTRICT_ROLES",
    "SUPPLIER_ROLES",
    "SALON_LEADER_ROLES",
    "ROLE_LABELS",
    "DEFAULT_ROLE_PERMISSIONS",
    "required_association",
    "get_all_permission_codes",
    "group_by_category",
    "role_catalogue",
    "get_role_permission_codes",
]
