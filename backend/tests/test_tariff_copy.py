"""
Tariff year-copy tests.

Verifies:
- Every bracket is copied with the adjustment, rounded half-up
- Copies start January 1st of the target year
- A populated target year is refused unless replaced
"""

from datetime import date

import pytest

from salonportal.models import TariffTemplate
from salonportal.services import tariff_service
from salonportal.validation import ConflictError


SOURCE_RATES = [210.00, 225.50, 240.10, 255.75, 268.33]


@pytest.fixture
def tariffs_2025(db_session):
    rows = []
    for index, rate in enumerate(SOURCE_RATES):
        rows.append(TariffTemplate(
            year=2025,
            name=f"Fagbrev {index}",
            trade_certificate="med_fagbrev",
            seniority_min=index * 2,
            seniority_max=index * 2 + 1 if index < 4 else None,
            hourly_rate=rate,
            monthly_salary=rate * 162.5,
            valid_from=date(2025, 1, 1),
            valid_to=date(2025, 12, 31),
            description="Minstelønn",
        ))
    db_session.add_all(rows)
    db_session.commit()
    return rows


class TestCopyYear:

    def test_copies_every_row_with_adjustment(self, db_session, tariffs_2025):
        copies = tariff_service.copy_year(2025, 2026, 3.5)

        assert len(copies) == 5
        new_rates = sorted(c.hourly_rate for c in copies)
        expected = [217.35, 233.39, 248.50, 264.70, 277.72]
        assert new_rates == expected
        for copy in copies:
            assert copy.year == 2026
            assert copy.valid_from == date(2026, 1, 1)
            assert copy.valid_to is None
            assert copy.description == "Minstelønn"

    def test_bracket_bounds_kept(self, db_session, tariffs_2025):
        copies = tariff_service.copy_year(2025, 2026, 0)
        bounds = sorted((c.seniority_min, c.seniority_max) for c in copies if c.seniority_max is not None)
        assert bounds == [(0, 1), (2, 3), (4, 5), (6, 7)]
        assert any(c.seniority_max is None for c in copies)

    def test_known_rate(self, db_session, tariffs_2025):
        copies = tariff_service.copy_year(2025, 2026, 3.5)
        first = next(c for c in copies if c.seniority_min == 0)
        assert first.hourly_rate == 217.35
        assert first.monthly_salary == 35319.0

    def test_populated_target_refused(self, db_session, tariffs_2025):
        tariff_service.copy_year(2025, 2026, 3.5)
        with pytest.raises(ConflictError):
            tariff_service.copy_year(2025, 2026, 3.5)
        assert db_session.query(TariffTemplate).filter_by(year=2026).count() == 5

    def test_replace_overwrites(self, db_session, tariffs_2025):
        tariff_service.copy_year(2025, 2026, 3.5)
        tariff_service.copy_year(2025, 2026, 5, replace=True)
        rows = db_session.query(TariffTemplate).filter_by(year=2026).all()
        assert len(rows) == 5
        assert min(r.hourly_rate for r in rows) == 220.5

    def test_empty_source_rejected(self, db_session):
        with pytest.raises(ValueError):
            tariff_service.copy_year(2019, 2020, 3)


class TestCopyYearEndpoint:

    def test_admin_copies(self, client, admin_headers, tariffs_2025):
        resp = client.post(
            "/api/tariffs/copy-year",
            json={"source_year": 2025, "target_year": 2026, "adjustment_pct": 3.5},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json["count"] == 5

    def test_conflict_is_409(self, client, admin_headers, tariffs_2025):
        body = {"source_year": 2025, "target_year": 2026, "adjustment_pct": 3.5}
        client.post("/api/tariffs/copy-year", json=body, headers=admin_headers)
        resp = client.post("/api/tariffs/copy-year", json=body, headers=admin_headers)
        assert resp.status_code == 409

    def test_stylist_forbidden(self, client, login, stylist_a, tariffs_2025):
        resp = client.post(
            "/api/tariffs/copy-year",
            json={"source_year": 2025, "target_year": 2026, "adjustment_pct": 3.5},
            headers=login(stylist_a),
        )
        assert resp.status_code == 403
