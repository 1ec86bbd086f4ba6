"""
Supplier sales import tests.

Verifies:
- Report validation (headers, numbers, product groups, identifiers)
- Salon matching by org number and member number
- Re-import replaces the period
- Manual matching covers every row of the same customer
- Import endpoint scope for supplier users
"""

import pytest

from salonportal.calculator.validator import validate_records, validate_upload
from salonportal.models import ImportedSale, SalesImport
from salonportal.services import sales_import_service


CSV_REPORT = (
    "Periode;Orgnr;Kundenr;Salong;Merke;Varegruppe;Omsetning\n"
    "2025-03;923 456 789;;Salong A;Wella;Farge;12 500,50\n"
    "2025-03;;M-200;Salong B;Redken;Videresalg;3000\n"
    "2025-03;;K-404;Ukjent;Wella;Produkt;700\n"
).encode("utf-8")


class TestReportValidation:

    def test_csv_with_norwegian_headers(self):
        rows, errors = validate_upload(CSV_REPORT, "rapport.csv")
        assert errors == []
        assert len(rows) == 3
        assert rows[0]["org_number"] == "923456789"
        assert rows[0]["product_group"] == "kjemi"
        assert rows[0]["turnover"] == 12500.5
        assert rows[1]["customer_number"] == "M-200"
        assert rows[1]["product_group"] == "produkt"

    def test_default_period_applies(self):
        rows, errors = validate_records(
            [{"orgnr": "923456789", "merke": "Wella", "varegruppe": "kjemi", "omsetning": "100"}],
            default_period="2025-04",
        )
        assert errors == []
        assert rows[0]["period"] == "2025-04"

    def test_missing_columns_rejected(self):
        rows, errors = validate_records([{"orgnr": "923456789", "omsetning": "100"}], default_period="2025-04")
        assert rows is None
        assert "Missing required columns" in errors[0]

    def test_bad_number_and_group_reported_per_row(self):
        rows, errors = validate_records([
            {"orgnr": "923456789", "merke": "Wella", "varegruppe": "kjemi", "omsetning": "abc", "periode": "2025-04"},
            {"orgnr": "923456789", "merke": "Wella", "varegruppe": "sjampo", "omsetning": "10", "periode": "2025-04"},
        ])
        assert rows is None
        assert any("Row 2" in e and "must be a number" in e for e in errors)
        assert any("Row 3" in e and "unknown product group" in e for e in errors)

    def test_unsupported_file_type(self):
        rows, errors = validate_upload(b"data", "rapport.pdf")
        assert rows is None
        assert "Unsupported file type" in errors[0]


class TestImportMatching:

    def test_matching_by_org_and_member_number(self, db_session, supplier, salon_a, salon_b):
        rows, _ = validate_upload(CSV_REPORT, "rapport.csv")
        sales_import = sales_import_service.import_sales(supplier.id, rows, filename="rapport.csv")

        assert sales_import.row_count == 3
        assert sales_import.matched_count == 2
        assert sales_import.unmatched_count == 1

        sales = sales_import_service.list_sales(supplier.id, "2025-03")
        assert [s.salon_id for s in sales] == [salon_a.id, salon_b.id, None]
        assert sales[0].brand_id is not None

    def test_reimport_replaces_period(self, db_session, supplier, salon_a):
        rows, _ = validate_upload(CSV_REPORT, "rapport.csv")
        sales_import_service.import_sales(supplier.id, rows)
        sales_import_service.import_sales(supplier.id, rows)

        assert db_session.query(SalesImport).filter_by(supplier_id=supplier.id).count() == 1
        assert db_session.query(ImportedSale).filter_by(supplier_id=supplier.id).count() == 3

    def test_mixed_periods_rejected(self, db_session, supplier):
        rows = [
            {"period": "2025-03", "org_number": "923456789", "customer_number": None, "salon_name": None,
             "brand": "Wella", "product_group": "kjemi", "turnover": 1.0},
            {"period": "2025-04", "org_number": "923456789", "customer_number": None, "salon_name": None,
             "brand": "Wella", "product_group": "kjemi", "turnover": 1.0},
        ]
        with pytest.raises(ValueError, match="exactly one period"):
            sales_import_service.import_sales(supplier.id, rows)

    def test_manual_match_covers_customer_and_is_remembered(self, db_session, supplier, salon_a, salon_b):
        rows, _ = validate_upload(CSV_REPORT, "rapport.csv")
        sales_import_service.import_sales(supplier.id, rows)
        unmatched = sales_import_service.list_sales(supplier.id, "2025-03", match_status="unmatched")[0]

        updated = sales_import_service.match_sale(unmatched.id, salon_b.id)
        assert [row.match_status for row in updated] == ["manual"]
        assert sales_import_service.get_import(unmatched.import_id).unmatched_count == 0

        next_month = CSV_REPORT.decode("utf-8").replace("2025-03", "2025-04").encode("utf-8")
        rows, _ = validate_upload(next_month, "rapport.csv")
        sales_import_service.import_sales(supplier.id, rows)
        remembered = sales_import_service.list_sales(supplier.id, "2025-04", match_status="manual")
        assert [s.salon_id for s in remembered] == [salon_b.id]


class TestImportEndpoint:

    def test_json_import_and_errors(self, client, login, supplier_admin, supplier, salon_a):
        headers = login(supplier_admin)
        bad = client.post(
            f"/api/bonus/suppliers/{supplier.id}/imports",
            json={"period": "2025-03", "rows": [{"orgnr": "923456789", "omsetning": "x"}]},
            headers=headers,
        )
        assert bad.status_code == 400
        assert bad.json["errors"]

        ok = client.post(
            f"/api/bonus/suppliers/{supplier.id}/imports",
            json={"period": "2025-03", "rows": [
                {"orgnr": "923456789", "merke": "Wella", "varegruppe": "kjemi", "omsetning": "1000"},
            ]},
            headers=headers,
        )
        assert ok.status_code == 201
        assert ok.json["matched_count"] == 1

    def test_supplier_user_cannot_import_for_other_supplier(self, client, login, make_user, supplier, cumulative_supplier):
        other_admin = make_user("supplier_admin", supplier_id=cumulative_supplier.id)
        resp = client.post(
            f"/api/bonus/suppliers/{supplier.id}/imports",
            json={"period": "2025-03", "rows": []},
            headers=login(other_admin),
        )
        assert resp.status_code == 403

    def test_multipart_upload(self, client, admin_headers, supplier, salon_a):
        import io
        resp = client.post(
            f"/api/bonus/suppliers/{supplier.id}/imports",
            data={"file": (io.BytesIO(CSV_REPORT), "rapport.csv")},
            headers=admin_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 201
        assert resp.json["row_count"] == 3
        assert resp.json["filename"] == "rapport.csv"
