# Overview: Permission lookups and the role catalogue shown in the user admin.

from .definitions import PERMISSION_DEFINITIONS
from .roles import ALL_ROLES, DEFAULT_ROLE_PERMISSIONS, ROLE_LABELS, required_association


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_role_permission_codes(role):
    """Permission codes granted to a role string; unknown roles get nothing."""
    granted = DEFAULT_ROLE_PERMISSIONS.get(role)
    if granted is None:
        return set()
    if granted == "ALL":
        return set(get_all_permission_codes())
    return set(granted)


def group_by_category(codes):
    """{category: [{"code", "name", "description"}, ...]} in definition order."""
    grouped = {}
    for code, name, description, category in PERMISSION_DEFINITIONS:
        if code in codes:
            grouped.setdefault(category, []).append(
                {"code": code, "name": name, "description": description}
            )
    return grouped


def role_catalogue():
    """
    Every role with its Norwegian label, the association it requires
    (salon_id / district_id / supplier_id or None) and its permissions.
    """
    return [
        {
            "role": role,
            "label": ROLE_LABELS[role],
            "requires": required_association(role),
            "permissions": group_by_category(get_role_permission_codes(role)),
        }
        for role in ALL_ROLES
    ]
