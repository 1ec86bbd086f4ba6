# ==============================================================================
# salonportal/calculator/validator.py
# ------------------------------------------------------------------------------
# Validates uploaded supplier sales reports (CSV or Excel) and JSON row lists,
# returning normalised row dicts or human-readable error messages.
# ==============================================================================

from __future__ import annotations

import io

import pandas as pd

from salonportal.time_utils import parse_period
from .schema import (
    COLUMN_ALIASES,
    IDENTIFIER_COLUMNS,
    NUMERIC_COLUMNS,
    PRODUCT_GROUP_ALIASES,
    REQUIRED_COLUMNS,
)


def _canonical_columns(df: pd.DataFrame) -> pd.DataFrame:
    lookup = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            lookup[alias] = canonical
    renamed = {}
    for col in df.columns:
        key = str(col).strip().lower()
        if key in lookup:
            renamed[col] = lookup[key]
    return df.rename(columns=renamed)


def _parse_number(series: pd.Series) -> pd.Series:
    cleaned = (
        series.astype(str)
        .str.replace(' ', '', regex=False)
        .str.replace('\u00a0', '', regex=False)
        .str.replace('kr', '', regex=False)
        .str.replace(',', '.', regex=False)
    )
    return pd.to_numeric(cleaned, errors='coerce')


def _clean(value):
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def validate_dataframe(df: pd.DataFrame, default_period: str | None = None):
    """
    Validate a report already loaded into a DataFrame.

    Returns:
        tuple: (rows, errors). rows is a list of dicts with keys period,
        org_number, customer_number, salon_name, brand, product_group,
        turnover. On any error rows is None.
    """
    errors = []
    df = _canonical_columns(df)

    missing_columns = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing_columns:
        errors.append(f"Missing required columns: {', '.join(missing_columns)}")
    if not any(col in df.columns for col in IDENTIFIER_COLUMNS):
        errors.append(f"One identifier column is required: {' or '.join(IDENTIFIER_COLUMNS)}")
    if 'period' not in df.columns and not default_period:
        errors.append("Missing column 'period' and no period was given for the import")
    if errors:
        return None, errors

    for col in NUMERIC_COLUMNS:
        numeric_series = _parse_number(df[col])
        invalid_rows = df[numeric_series.isna()]
        for index in invalid_rows.index:
            errors.append(f"Row {index + 2}: value '{df.loc[index, col]}' in column '{col}' must be a number.")
        df[col] = numeric_series

    rows = []
    for index, record in df.iterrows():
        row_no = index + 2
        period = _clean(record.get('period')) or default_period
        try:
            parse_period(period)
        except (TypeError, ValueError):
            errors.append(f"Row {row_no}: period '{period}' must be YYYY-MM.")
            continue

        raw_group = (_clean(record.get('product_group')) or '').lower()
        product_group = PRODUCT_GROUP_ALIASES.get(raw_group)
        if product_group is None:
            errors.append(f"Row {row_no}: unknown product group '{raw_group}' (expected kjemi or produkt).")
            continue

        org_number = _clean(record.get('org_number'))
        if org_number:
            org_number = ''.join(ch for ch in org_number if ch.isdigit()) or None
        customer_number = _clean(record.get('customer_number'))
        if not org_number and not customer_number:
            errors.append(f"Row {row_no}: org number or customer number is required.")
            continue

        rows.append({
            'period': period,
            'org_number': org_number,
            'customer_number': customer_number,
            'salon_name': _clean(record.get('salon_name')),
            'brand': _clean(record.get('brand')),
            'product_group': product_group,
            'turnover': float(record['turnover']) if not pd.isna(record['turnover']) else 0.0,
        })

    if errors:
        return None, errors
    return rows, []


def validate_upload(content: bytes, filename: str, default_period: str | None = None):
    """
    Validate an uploaded CSV (comma or semicolon) or Excel report.

    Returns (rows, errors) like validate_dataframe.
    """
    name = (filename or '').lower()
    try:
        if name.endswith('.csv') or name.endswith('.txt'):
            text = content.decode('utf-8-sig')
            df = pd.read_csv(io.StringIO(text), sep=None, engine='python', dtype=str)
        elif name.endswith('.xlsx') or name.endswith('.xls'):
            df = pd.read_excel(io.BytesIO(content), dtype=str)
        else:
            return None, ["Unsupported file type; upload .csv or .xlsx"]
    except (ValueError, UnicodeDecodeError, pd.errors.ParserError) as e:
        return None, [f"The file could not be read: {e}"]

    if df.empty:
        return None, ["The file contains no rows"]
    return validate_dataframe(df, default_period=default_period)


def validate_records(records: list[dict], default_period: str | None = None):
    """Validate rows posted as JSON."""
    if not isinstance(records, list) or not records:
        return None, ["rows must be a non-empty list"]
    return validate_dataframe(pd.DataFrame(records), default_period=default_period)
