from .tenancy import Chain, District, Salon
from .auth import User, SessionToken, RoleChangeAudit
from .security import SecurityEvent
from .suppliers import Supplier, SupplierBrand, SupplierSalonLink
from .invitations import Invitation
from .employees import Employee
from .tariffs import TariffTemplate
from .bonus import (
    BonusRule,
    SalesImport,
    ImportedSale,
    BonusCalculation,
    BaselineOverride,
    CumulativeBaseline,
)
from .insurance import (
    PowerOfAttorney,
    InsuranceProduct,
    InsuranceProductTier,
    InsuranceCoverageDetail,
    InsuranceProductDocument,
)
from .communications import Announcement
from .challenges import MonthlyChallenge
from .hubspot import HubSpotConnection, HubSpotOwnerDistrictMapping

__all__ = [
    'Chain', 'District', 'Salon',
    'User', 'SessionToken', 'RoleChangeAudit', 'SecurityEvent',
    'Supplier', 'SupplierBrand', 'SupplierSalonLink',
    'Invitation', 'Employee', 'TariffTemplate',
    'BonusRule', 'SalesImport', 'ImportedSale', 'BonusCalculation',
    'BaselineOverride', 'CumulativeBaseline',
    'PowerOfAttorney', 'InsuranceProduct', 'InsuranceProductTier',
    'InsuranceCoverageDetail', 'InsuranceProductDocument',
    'Announcement', 'MonthlyChallenge',
    'HubSpotConnection', 'HubSpotOwnerDistrictMapping',
]
