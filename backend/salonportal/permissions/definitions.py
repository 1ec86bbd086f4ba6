# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- USERS --

USER_PERMISSIONS = [
    ("VIEW_USERS", "View Users", "View portal users and their roles", PermissionCategory.USERS),
    ("MANAGE_USERS", "Manage Users", "Change roles, bulk role updates, deactivate users", PermissionCategory.USERS),
    ("MANAGE_INVITATIONS", "Manage Invitations", "Create, resend and delete onboarding invitations", PermissionCategory.USERS),
    ("VIEW_ROLE_AUDIT", "View Role Audit", "View the role change audit trail", PermissionCategory.USERS),
]


# -- SALONS --

SALON_PERMISSIONS = [
    ("VIEW_SALONS", "View Salons", "View salons within the user's scope", PermissionCategory.SALONS),
    ("EDIT_OWN_SALON", "Edit Own Salon", "Edit contact details of the user's own salon", PermissionCategory.SALONS),
    ("MANAGE_SALONS", "Manage Salons", "Create salons, chains and districts", PermissionCategory.SALONS),
]


# -- EMPLOYEES --

EMPLOYEE_PERMISSIONS = [
    ("VIEW_EMPLOYEES", "View Employees", "View employee records within scope", PermissionCategory.EMPLOYEES),
    ("MANAGE_EMPLOYEES", "Manage Employees", "Create, edit, import and terminate employees", PermissionCategory.EMPLOYEES),
]


# -- TARIFFS --

TARIFF_PERMISSIONS = [
    ("VIEW_TARIFFS", "View Tariffs", "View wage tariff tables", PermissionCategory.TARIFFS),
    ("MANAGE_TARIFFS", "Manage Tariffs", "Edit tariff tables and copy them to a new year", PermissionCategory.TARIFFS),
]


# -- SUPPLIERS --

SUPPLIER_PERMISSIONS = [
    ("VIEW_SUPPLIERS", "View Suppliers", "View suppliers, brands and partner salons", PermissionCategory.SUPPLIERS),
    ("MANAGE_SUPPLIERS", "Manage Suppliers", "Create suppliers, brands and salon links", PermissionCategory.SUPPLIERS),
]


# -- BONUS --

BONUS_PERMISSIONS = [
    ("VIEW_BONUS", "View Bonus", "View bonus calculations and growth overview within scope", PermissionCategory.BONUS),
    ("MANAGE_BONUS_RULES", "Manage Bonus Rules", "Create and edit supplier bonus rules and baselines", PermissionCategory.BONUS),
    ("IMPORT_SALES", "Import Sales", "Upload supplier sales reports and match rows to salons", PermissionCategory.BONUS),
    ("RUN_BONUS_CALCULATION", "Run Bonus Calculation", "Calculate, approve and mark bonuses as paid", PermissionCategory.BONUS),
    ("SEND_BONUS_REPORTS", "Send Bonus Reports", "Email growth bonus reports to salons", PermissionCategory.BONUS),
]


# -- INSURANCE --

INSURANCE_PERMISSIONS = [
    ("VIEW_POWER_OF_ATTORNEY", "View Powers of Attorney", "View signed and pending fullmakter", PermissionCategory.INSURANCE),
    ("MANAGE_POWER_OF_ATTORNEY", "Manage Powers of Attorney", "Resend codes and export fullmakter", PermissionCategory.INSURANCE),
    ("VIEW_INSURANCE_PRODUCTS", "View Insurance Products", "View active insurance products, tiers, coverage and documents", PermissionCategory.INSURANCE),
    ("MANAGE_INSURANCE_PRODUCTS", "Manage Insurance Products", "Edit insurance products, tier prices, coverage tables and documents", PermissionCategory.INSURANCE),
]


# -- COMMUNICATIONS --

COMMUNICATION_PERMISSIONS = [
    ("VIEW_ANNOUNCEMENTS", "View Announcements", "View published announcements", PermissionCategory.COMMUNICATIONS),
    ("MANAGE_ANNOUNCEMENTS", "Manage Announcements", "Create, schedule and reorder announcements", PermissionCategory.COMMUNICATIONS),
    ("VIEW_CHALLENGES", "View Challenges", "View KPI challenges", PermissionCategory.COMMUNICATIONS),
    ("MANAGE_CHALLENGES", "Manage Challenges", "Create and edit monthly, quarterly and yearly KPI challenges", PermissionCategory.COMMUNICATIONS),
]


# -- INTEGRATIONS --

INTEGRATION_PERMISSIONS = [
    ("MANAGE_HUBSPOT", "Manage HubSpot", "Connect HubSpot and import companies, owners and contacts", PermissionCategory.INTEGRATIONS),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    ("VIEW_AUDIT_LOG", "View Audit Log", "View security events", PermissionCategory.SYSTEM),
]


PERMISSION_DEFINITIONS = (
    USER_PERMISSIONS
    + SALON_PERMISSIONS
    + EMPLOYEE_PERMISSIONS
    + TARIFF_PERMISSIONS
    + SUPPLIER_PERMISSIONS
    + BONUS_PERMISSIONS
    + INSURANCE_PERMISSIONS
    + COMMUNICATION_PERMISSIONS
    + INTEGRATION_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
