# Overview: Service-layer operations for supplier sales imports; encapsulates business logic and database work.

"""
Supplier Sales Import

FLOW:
1. The report is parsed and validated (calculator.validator)
2. Each row is matched to a salon: org number, then member number, then
   an earlier manual match for the same supplier customer number
3. For suppliers with cumulative (year-to-date) reporting the period
   delta is derived against the previous period; otherwise the reported
   value is the delta
4. Rows are stored with both the reported value and the delta

Re-importing a period replaces the earlier import for that supplier and
period so turnover is never counted twice.

DELTAS: a cumulative delta depends on its own period and the one before.
Whatever changes a period's rows (import, re-import, delete, manual
match, baseline) re-derives that period and the next one, so reports may
arrive in any order. Bonus calculation re-derives its period again before
reading.
"""

from __future__ import annotations

import logging

from ..calculator.cumulative import CumulativeRow, derive_deltas
from ..extensions import db
from ..models import CumulativeBaseline, ImportedSale, Salon, SalesImport, User
from ..validation import NotFoundError, ValidationError
from salonportal.time_utils import next_period, parse_period, previous_period
from .supplier_service import find_brand, get_supplier


logger = logging.getLogger(__name__)

MATCHED = "matched"
UNMATCHED = "unmatched"
MANUAL = "manual"


def _owner(sale: ImportedSale):
    if sale.salon_id is not None:
        return sale.salon_id
    return f"customer:{sale.customer_number or sale.org_number}"


def match_salon(supplier_id: int, org_number: str | None, customer_number: str | None) -> tuple[Salon | None, str]:
    """Return (salon, match_status) for a reported identity."""
    if org_number:
        salon = db.session.query(Salon).filter_by(org_number=org_number).first()
        if salon:
            return salon, MATCHED
    if customer_number:
        salon = db.session.query(Salon).filter_by(member_number=customer_number).first()
        if salon:
            return salon, MATCHED
        previous = (
            db.session.query(ImportedSale)
            .filter(
                ImportedSale.supplier_id == supplier_id,
                ImportedSale.customer_number == customer_number,
                ImportedSale.match_status == MANUAL,
                ImportedSale.salon_id.isnot(None),
            )
            .order_by(ImportedSale.id.desc())
            .first()
        )
        if previous:
            return previous.salon, MANUAL
    return None, UNMATCHED


def import_sales(
    supplier_id: int,
    rows: list[dict],
    *,
    filename: str | None = None,
    imported_by: User | None = None,
) -> SalesImport:
    """
    Store validated report rows for one period.

    `rows` come from calculator.validator and must all share one period.
    """
    supplier = get_supplier(supplier_id)
    if not rows:
        raise ValidationError("The report contains no rows")

    periods = {row["period"] for row in rows}
    if len(periods) != 1:
        raise ValidationError(f"A report must cover exactly one period, found: {', '.join(sorted(periods))}")
    period = periods.pop()
    parse_period(period)

    replaced = db.session.query(SalesImport).filter_by(supplier_id=supplier_id, period=period).all()
    for old in replaced:
        db.session.delete(old)
    if replaced:
        db.session.flush()
        logger.info("Replacing %d earlier import(s) for supplier %s period %s", len(replaced), supplier_id, period)

    sales_import = SalesImport(
        supplier_id=supplier_id,
        period=period,
        filename=filename,
        imported_by_user_id=imported_by.id if imported_by else None,
    )
    db.session.add(sales_import)
    db.session.flush()

    matched = 0
    for row in rows:
        salon, status = match_salon(supplier_id, row.get("org_number"), row.get("customer_number"))
        brand = find_brand(supplier_id, row.get("brand"))
        if salon is not None:
            matched += 1
        db.session.add(ImportedSale(
            import_id=sales_import.id,
            supplier_id=supplier_id,
            period=period,
            customer_number=row.get("customer_number"),
            org_number=row.get("org_number"),
            salon_name=row.get("salon_name"),
            brand=row.get("brand"),
            brand_id=brand.id if brand else None,
            product_group=row["product_group"],
            reported_value=float(row["turnover"]),
            delta_value=float(row["turnover"]),
            salon_id=salon.id if salon else None,
            match_status=status,
        ))

    sales_import.row_count = len(rows)
    sales_import.matched_count = matched
    sales_import.unmatched_count = len(rows) - matched
    db.session.flush()

    if supplier.cumulative_reporting:
        _refresh_deltas(supplier_id, {period})

    db.session.commit()
    logger.info(
        "Imported %d rows for supplier %s period %s (%d matched, %d unmatched)",
        len(rows), supplier_id, period, matched, len(rows) - matched,
    )
    return sales_import


def _apply_deltas(supplier_id: int, period: str) -> None:
    current = list_sales(supplier_id, period)
    previous = list_sales(supplier_id, previous_period(period))
    baselines = {
        b.salon_id: b.cumulative_value
        for b in db.session.query(CumulativeBaseline).filter_by(
            supplier_id=supplier_id, period=previous_period(period)
        ).all()
    }

    deltas = derive_deltas(
        period,
        [CumulativeRow(_owner(s), s.brand, s.product_group, s.reported_value) for s in current],
        [CumulativeRow(_owner(s), s.brand, s.product_group, s.reported_value) for s in previous],
        baselines,
    )
    for sale, delta in zip(current, deltas):
        sale.delta_value = delta


def _refresh_deltas(supplier_id: int, periods) -> None:
    """Re-derive each changed period and the period that follows it."""
    targets = set()
    for period in periods:
        targets.add(period)
        targets.add(next_period(period))
    for period in sorted(targets):
        if db.session.query(ImportedSale.id).filter_by(supplier_id=supplier_id, period=period).first():
            _apply_deltas(supplier_id, period)
    db.session.flush()


def recompute_deltas(supplier_id: int, period: str) -> None:
    """Re-derive one period's deltas from the rows stored right now."""
    supplier = get_supplier(supplier_id)
    if supplier.cumulative_reporting:
        _apply_deltas(supplier_id, period)
        db.session.commit()


def match_sale(sale_id: int, salon_id: int) -> list[ImportedSale]:
    """
    Manually match a row to a salon.

    Every unmatched row from the same supplier with the same reported
    identity is matched as well, in every period, so a customer's
    year-to-date rows keep one owner.
    """
    sale = get_sale(sale_id)
    if db.session.get(Salon, salon_id) is None:
        raise NotFoundError("Salon not found")

    query = db.session.query(ImportedSale).filter(
        ImportedSale.supplier_id == sale.supplier_id,
        ImportedSale.match_status == UNMATCHED,
    )
    if sale.customer_number:
        query = query.filter(ImportedSale.customer_number == sale.customer_number)
    elif sale.org_number:
        query = query.filter(ImportedSale.org_number == sale.org_number)
    else:
        query = query.filter(ImportedSale.id == sale.id)

    updated = query.order_by(ImportedSale.period.asc(), ImportedSale.id.asc()).all()
    if sale not in updated:
        updated.append(sale)
    for row in updated:
        row.salon_id = salon_id
        row.match_status = MANUAL

    for sales_import in {row.sales_import for row in updated}:
        sales_import.matched_count = sum(1 for r in sales_import.rows if r.salon_id is not None)
        sales_import.unmatched_count = sales_import.row_count - sales_import.matched_count
    db.session.flush()

    if get_supplier(sale.supplier_id).cumulative_reporting:
        _refresh_deltas(sale.supplier_id, {row.period for row in updated})
    db.session.commit()
    logger.info("Matched %d row(s) for supplier %s to salon %s", len(updated), sale.supplier_id, salon_id)
    return updated


def get_import(import_id: int) -> SalesImport:
    sales_import = db.session.get(SalesImport, import_id)
    if not sales_import:
        raise NotFoundError("Import not found")
    return sales_import


def get_sale(sale_id: int) -> ImportedSale:
    sale = db.session.get(ImportedSale, sale_id)
    if not sale:
        raise NotFoundError("Sales row not found")
    return sale


def list_imports(supplier_id: int) -> list[SalesImport]:
    return (
        db.session.query(SalesImport)
        .filter_by(supplier_id=supplier_id)
        .order_by(SalesImport.period.desc(), SalesImport.id.desc())
        .all()
    )


def list_sales(
    supplier_id: int,
    period: str | None = None,
    *,
    match_status: str | None = None,
    salon_id: int | None = None,
    year: int | None = None,
) -> list[ImportedSale]:
    query = db.session.query(ImportedSale).filter(ImportedSale.supplier_id == supplier_id)
    if period is not None:
        query = query.filter(ImportedSale.period == period)
    if year is not None:
        query = query.filter(ImportedSale.period.like(f"{year:04d}-%"))
    if match_status:
        query = query.filter(ImportedSale.match_status == match_status)
    if salon_id is not None:
        query = query.filter(ImportedSale.salon_id == salon_id)
    return query.order_by(ImportedSale.id.asc()).all()


def delete_import(import_id: int) -> None:
    sales_import = get_import(import_id)
    supplier = get_supplier(sales_import.supplier_id)
    period = sales_import.period
    db.session.delete(sales_import)
    db.session.flush()
    if supplier.cumulative_reporting:
        _refresh_deltas(supplier.id, {period})
    db.session.commit()


def set_cumulative_baseline(salon_id: int, supplier_id: int, period: str, cumulative_value: float) -> CumulativeBaseline:
    """Known year-to-date value at the end of `period` for a salon."""
    parse_period(period)
    supplier = get_supplier(supplier_id)
    if db.session.get(Salon, salon_id) is None:
        raise NotFoundError("Salon not found")
    baseline = db.session.query(CumulativeBaseline).filter_by(
        salon_id=salon_id, supplier_id=supplier_id, period=period
    ).first()
    if baseline is None:
        baseline = CumulativeBaseline(salon_id=salon_id, supplier_id=supplier_id, period=period)
        db.session.add(baseline)
    baseline.cumulative_value = float(cumulative_value)
    db.session.flush()
    if supplier.cumulative_reporting:
        # The baseline stands in for `period`, so only the following period moves
        following = next_period(period)
        if db.session.query(ImportedSale.id).filter_by(supplier_id=supplier_id, period=following).first():
            _apply_deltas(supplier_id, following)
    db.session.commit()
    return baseline


def list_cumulative_baselines(supplier_id: int) -> list[CumulativeBaseline]:
    return (
        db.session.query(CumulativeBaseline)
        .filter_by(supplier_id=supplier_id)
        .order_by(CumulativeBaseline.period.desc())
        .all()
    )
