# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    USERS = "USERS"
    SALONS = "SALONS"
    EMPLOYEES = "EMPLOYEES"
    TARIFFS = "TARIFFS"
    SUPPLIERS = "SUPPLIERS"
    BONUS = "BONUS"
    INSURANCE = "INSURANCE"
    COMMUNICATIONS = "COMMUNICATIONS"
    INTEGRATIONS = "INTEGRATIONS"
    SYSTEM = "SYSTEM"
