# Overview: Portal role strings, role groups and the role -> permission map.

ADMIN = "admin"
DISTRICT_MANAGER = "district_manager"
CHAIN_OWNER = "chain_owner"
SALON_OWNER = "salon_owner"
DAGLIG_LEDER = "daglig_leder"
AVDELINGSLEDER = "avdelingsleder"
STYRELEDER = "styreleder"
SENIORFRISOR = "seniorfrisor"
STYLIST = "stylist"
APPRENTICE = "apprentice"
SUPPLIER_ADMIN = "supplier_admin"
SUPPLIER_SALES = "supplier_sales"
SUPPLIER_BUSINESS_DEV = "supplier_business_dev"

ALL_ROLES = (
    ADMIN,
    DISTRICT_MANAGER,
    CHAIN_OWNER,
    SALON_OWNER,
    DAGLIG_LEDER,
    AVDELINGSLEDER,
    STYRELEDER,
    SENIORFRISOR,
    STYLIST,
    APPRENTICE,
    SUPPLIER_ADMIN,
    SUPPLIER_SALES,
    SUPPLIER_BUSINESS_DEV,
)

# Role groups decide which association a user must carry
SALON_ROLES = (
    SALON_OWNER,
    DAGLIG_LEDER,
    AVDELINGSLEDER,
    STYRELEDER,
    STYLIST,
    SENIORFRISOR,
    APPRENTICE,
    CHAIN_OWNER,
)
DISTRICT_ROLES = (DISTRICT_MANAGER,)
SUPPLIER_ROLES = (SUPPLIER_ADMIN, SUPPLIER_SALES, SUPPLIER_BUSINESS_DEV)

# Salon roles that lead the salon and see its HR and bonus data
SALON_LEADER_ROLES = (SALON_OWNER, DAGLIG_LEDER, AVDELINGSLEDER, STYRELEDER, CHAIN_OWNER)

ROLE_LABELS = {
    ADMIN: "Administrator",
    DISTRICT_MANAGER: "Distriktsleder",
    CHAIN_OWNER: "Kjedeeier",
    SALON_OWNER: "Salongeier",
    DAGLIG_LEDER: "Daglig leder",
    AVDELINGSLEDER: "Avdelingsleder",
    STYRELEDER: "Styreleder",
    SENIORFRISOR: "Seniorfrisør",
    STYLIST: "Frisør",
    APPRENTICE: "Lærling",
    SUPPLIER_ADMIN: "Leverandør (admin)",
    SUPPLIER_SALES: "Leverandør (salg)",
    SUPPLIER_BUSINESS_DEV: "Leverandør (forretningsutvikling)",
}


def required_association(role: str) -> str | None:
    """Name of the user column the role requires, or None."""
    if role in DISTRICT_ROLES:
        return "district_id"
    if role in SALON_ROLES:
        return "salon_id"
    if role in SUPPLIER_ROLES:
        return "supplier_id"
    return None


_EMPLOYEE_BASE = [
    "VIEW_SALONS",
    "VIEW_TARIFFS",
    "VIEW_ANNOUNCEMENTS",
    "VIEW_CHALLENGES",
]

_SALON_LEADER = _EMPLOYEE_BASE + [
    "EDIT_OWN_SALON",
    "VIEW_EMPLOYEES",
    "MANAGE_EMPLOYEES",
    "VIEW_BONUS",
    "VIEW_SUPPLIERS",
    "VIEW_USERS",
    "VIEW_INSURANCE_PRODUCTS",
]

_SUPPLIER_BASE = [
    "VIEW_SALONS",
    "VIEW_SUPPLIERS",
    "VIEW_BONUS",
    "VIEW_ANNOUNCEMENTS",
]

DEFAULT_ROLE_PERMISSIONS = {
    ADMIN: "ALL",
    DISTRICT_MANAGER: [
        "VIEW_SALONS",
        "VIEW_EMPLOYEES",
        "VIEW_TARIFFS",
        "VIEW_SUPPLIERS",
        "VIEW_BONUS",
        "SEND_BONUS_REPORTS",
        "VIEW_USERS",
        "VIEW_ANNOUNCEMENTS",
        "VIEW_CHALLENGES",
        "VIEW_POWER_OF_ATTORNEY",
        "VIEW_INSURANCE_PRODUCTS",
    ],
    CHAIN_OWNER: _SALON_LEADER,
    SALON_OWNER: _SALON_LEADER,
    DAGLIG_LEDER: _SALON_LEADER,
    AVDELINGSLEDER: _SALON_LEADER,
    STYRELEDER: _SALON_LEADER,
    SENIORFRISOR: _EMPLOYEE_BASE,
    STYLIST: _EMPLOYEE_BASE,
    APPRENTICE: _EMPLOYEE_BASE,
    SUPPLIER_ADMIN: _SUPPLIER_BASE + ["MANAGE_BONUS_RULES", "IMPORT_SALES", "VIEW_USERS"],
    SUPPLIER_SALES: _SUPPLIER_BASE,
    SUPPLIER_BUSINESS_DEV: _SUPPLIER_BASE,
}
