# ==============================================================================
# salonportal/calculator/cumulative.py
# ------------------------------------------------------------------------------
# Converts year-to-date ("cumulative") supplier reports into period deltas.
# ==============================================================================

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Hashable

from salonportal.time_utils import parse_period


@dataclass
class CumulativeRow:
    """
    One reported row. `owner` identifies whose running total this is: the
    salon id for matched rows, the supplier's customer number otherwise.
    """
    owner: Hashable
    brand: str | None
    product_group: str
    value: float


def _key(row: CumulativeRow) -> tuple:
    return (row.owner, (row.brand or "").strip().lower(), (row.product_group or "").strip().lower())


def derive_deltas(
    period: str,
    current_rows: list[CumulativeRow],
    previous_rows: list[CumulativeRow],
    baselines: dict[Hashable, float] | None = None,
) -> list[float]:
    """
    Period deltas for `current_rows`, in the same order.

    - January starts a new year: delta = value
    - Owner with a manual baseline (YTD at the end of the previous period):
      the owner's delta is its current total minus the baseline, split over
      its rows by their share of the current total
    - Otherwise: delta = value - value of the same owner/brand/group in the
      previous period (0 when it was not reported)

    Deltas can be negative when a supplier corrects an earlier report.
    """
    _, month = parse_period(period)
    if month == 1:
        return [float(row.value or 0) for row in current_rows]

    baselines = baselines or {}

    previous: dict[tuple, float] = defaultdict(float)
    for row in previous_rows:
        previous[_key(row)] += float(row.value or 0)

    owner_totals: dict[Hashable, float] = defaultdict(float)
    for row in current_rows:
        owner_totals[row.owner] += float(row.value or 0)

    deltas = []
    for row in current_rows:
        value = float(row.value or 0)
        if row.owner in baselines:
            total = owner_totals[row.owner]
            share = value / total if total else 0.0
            deltas.append(value - float(baselines[row.owner]) * share)
        else:
            deltas.append(value - previous.get(_key(row), 0.0))
    return deltas


def running_totals(monthly: dict[int, float]) -> dict[int, float]:
    """Turn per-month amounts into year-to-date totals by month."""
    totals: dict[int, float] = {}
    running = 0.0
    for month in sorted(monthly):
        running += monthly[month]
        totals[month] = running
    return totals
