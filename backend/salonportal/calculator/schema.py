# ==============================================================================
# salonportal/calculator/schema.py
# ------------------------------------------------------------------------------
# Expected structure of a supplier sales report. Single source of truth for
# the validator. Header matching is case-insensitive and accepts the Norwegian
# headings suppliers actually send.
# ==============================================================================

COLUMN_ALIASES = {
    'period': ['period', 'periode', 'måned', 'maaned'],
    'org_number': ['org_number', 'orgnr', 'org.nr', 'org nr', 'organisasjonsnummer'],
    'customer_number': ['customer_number', 'kundenummer', 'kundenr', 'medlemsnummer'],
    'salon_name': ['salon_name', 'salong', 'salongnavn', 'kundenavn', 'kunde'],
    'brand': ['brand', 'merke', 'varemerke'],
    'product_group': ['product_group', 'produktgruppe', 'varegruppe', 'kategori'],
    'turnover': ['turnover', 'omsetning', 'beløp', 'belop', 'sum'],
}

REQUIRED_COLUMNS = ['brand', 'product_group', 'turnover']

# At least one of these must be present to match rows to salons
IDENTIFIER_COLUMNS = ['org_number', 'customer_number']

NUMERIC_COLUMNS = ['turnover']

PRODUCT_GROUP_ALIASES = {
    'kjemi': 'kjemi',
    'chemical': 'kjemi',
    'chemicals': 'kjemi',
    'farge': 'kjemi',
    'produkt': 'produkt',
    'produkter': 'produkt',
    'videresalg': 'produkt',
    'resale': 'produkt',
    'retail': 'produkt',
}
