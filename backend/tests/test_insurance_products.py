"""
Insurance product catalogue tests.

Verifies:
- Products validate type, price model and non-negative prices
- Coverage types are added to and removed from every tier together
- A tier added later inherits the existing coverage types
- Documents apply to the whole product or to one of its own tiers
- Salon leaders see active products only; editing needs the manage permission
"""

import pytest

from salonportal.models import InsuranceCoverageDetail, InsuranceProductDocument
from salonportal.services import insurance_product_service
from salonportal.validation import ConflictError, NotFoundError, ValidationError


def _product(**overrides):
    payload = {
        "name": "Salongforsikring",
        "product_type": "salong",
        "price_model": "fast",
        "base_price": 4900,
    }
    payload.update(overrides)
    return insurance_product_service.create_product(payload)


class TestProducts:

    def test_create_defaults(self, db_session):
        first = _product()
        second = _product(name="Yrkesskade", product_type="yrkesskade", price_model="per_arsverk", base_price="1 250,50")

        assert first.active is True
        assert first.requires_employee_selection is False
        assert (first.sort_order, second.sort_order) == (0, 1)
        assert second.base_price == 1250.5

    @pytest.mark.parametrize("overrides", [
        {"product_type": "bil"},
        {"price_model": "per_time"},
        {"base_price": -1},
        {"name": ""},
    ])
    def test_invalid_product_rejected(self, db_session, overrides):
        with pytest.raises(ValidationError):
            _product(**overrides)

    def test_active_filter_and_order(self, db_session):
        cyber = _product(name="Cyber", product_type="cyber", sort_order=2)
        salon = _product(name="Salong", sort_order=1)
        insurance_product_service.set_active(cyber.id, False)

        assert [p.id for p in insurance_product_service.list_products()] == [salon.id, cyber.id]
        assert [p.id for p in insurance_product_service.list_products(active_only=True)] == [salon.id]

    def test_delete_removes_tiers_and_documents(self, db_session):
        product = _product()
        tier = insurance_product_service.create_tier(product.id, {"tier_name": "Basis", "price": 4900})
        insurance_product_service.add_coverage_type(product.id, "Innbo")
        insurance_product_service.add_document(product.id, {"title": "Vilkår", "file_url": "https://docs.test/v.pdf"})

        insurance_product_service.delete_product(product.id)

        with pytest.raises(NotFoundError):
            insurance_product_service.get_tier(tier.id)
        assert db_session.query(InsuranceCoverageDetail).count() == 0
        assert db_session.query(InsuranceProductDocument).count() == 0


class TestCoverageTable:

    @pytest.fixture
    def product(self, db_session):
        product = _product()
        insurance_product_service.create_tier(product.id, {"tier_name": "Basis", "price": 4900})
        insurance_product_service.create_tier(product.id, {"tier_name": "Utvidet", "price": 6900})
        return product

    def test_added_type_reaches_every_tier(self, product):
        table = insurance_product_service.add_coverage_type(product.id, "Innbo")

        basis, utvidet = table["tiers"]
        assert [t["tier_name"] for t in table["tiers"]] == ["Basis", "Utvidet"]
        assert table["rows"] == [{
            "coverage_type": "Innbo",
            "values": {str(basis["id"]): "-", str(utvidet["id"]): "-"},
        }]

    def test_values_per_tier(self, product):
        insurance_product_service.add_coverage_type(product.id, "Innbo")
        insurance_product_service.add_coverage_type(product.id, "Avbrudd")
        basis, utvidet = insurance_product_service.list_tiers(product.id)

        insurance_product_service.set_coverage_value(utvidet.id, "Innbo", "2 MNOK")
        table = insurance_product_service.coverage_table(product.id)

        assert [row["coverage_type"] for row in table["rows"]] == ["Innbo", "Avbrudd"]
        assert table["rows"][0]["values"] == {str(basis.id): "-", str(utvidet.id): "2 MNOK"}

    def test_blank_value_means_not_covered(self, product):
        insurance_product_service.add_coverage_type(product.id, "Innbo")
        basis = insurance_product_service.list_tiers(product.id)[0]
        detail = insurance_product_service.set_coverage_value(basis.id, "Innbo", "  ")
        assert detail.coverage_value == "-"

    def test_duplicate_type_conflicts(self, product):
        insurance_product_service.add_coverage_type(product.id, "Innbo")
        with pytest.raises(ConflictError):
            insurance_product_service.add_coverage_type(product.id, "innbo")

    def test_type_needs_a_tier(self, db_session):
        with pytest.raises(ValidationError):
            insurance_product_service.add_coverage_type(_product().id, "Innbo")

    def test_new_tier_inherits_types(self, product):
        insurance_product_service.add_coverage_type(product.id, "Innbo")
        premium = insurance_product_service.create_tier(product.id, {"tier_name": "Premium", "price": 9900})

        assert [(d.coverage_type, d.coverage_value) for d in premium.coverage] == [("Innbo", "-")]
        assert insurance_product_service.coverage_table(product.id)["rows"][0]["values"][str(premium.id)] == "-"

    def test_delete_type_from_every_tier(self, product, db_session):
        insurance_product_service.add_coverage_type(product.id, "Innbo")
        table = insurance_product_service.delete_coverage_type(product.id, "Innbo")

        assert table["rows"] == []
        assert db_session.query(InsuranceCoverageDetail).count() == 0
        with pytest.raises(NotFoundError):
            insurance_product_service.delete_coverage_type(product.id, "Innbo")

    def test_tier_price_update(self, product):
        basis = insurance_product_service.list_tiers(product.id)[0]
        assert insurance_product_service.update_tier(basis.id, {"price": "5200"}).price == 5200
        with pytest.raises(ValidationError):
            insurance_product_service.update_tier(basis.id, {"price": -5})


class TestDocuments:

    def test_product_wide_and_tier_documents(self, db_session, admin_user):
        product = _product()
        basis = insurance_product_service.create_tier(product.id, {"tier_name": "Basis", "price": 4900})
        utvidet = insurance_product_service.create_tier(product.id, {"tier_name": "Utvidet", "price": 6900})

        general = insurance_product_service.add_document(
            product.id, {"title": "FAQ", "file_url": "https://docs.test/faq.pdf", "document_type": "faq"},
            uploaded_by=admin_user,
        )
        terms = insurance_product_service.add_document(
            product.id, {"title": "Vilkår Basis", "file_url": "https://docs.test/basis.pdf", "tier_id": basis.id},
        )
        insurance_product_service.add_document(
            product.id, {"title": "Vilkår Utvidet", "file_url": "https://docs.test/utvidet.pdf", "tier_id": utvidet.id},
        )

        assert general.uploaded_by_user_id == admin_user.id
        assert terms.document_type == "vilkar"
        for_basis = insurance_product_service.list_documents(product.id, tier_id=basis.id)
        assert {d.id for d in for_basis} == {general.id, terms.id}

    def test_tier_of_other_product_rejected(self, db_session):
        product, other = _product(), _product(name="Reise", product_type="reise")
        foreign = insurance_product_service.create_tier(other.id, {"tier_name": "Basis", "price": 900})
        with pytest.raises(ValidationError):
            insurance_product_service.add_document(
                product.id, {"title": "Vilkår", "file_url": "https://docs.test/v.pdf", "tier_id": foreign.id},
            )

    def test_unknown_document_type_rejected(self, db_session):
        with pytest.raises(ValidationError):
            insurance_product_service.add_document(
                _product().id, {"title": "X", "file_url": "https://docs.test/x.pdf", "document_type": "brosjyre"},
            )

    def test_deleting_tier_removes_its_documents(self, db_session):
        product = _product()
        tier = insurance_product_service.create_tier(product.id, {"tier_name": "Basis", "price": 4900})
        insurance_product_service.add_document(
            product.id, {"title": "Vilkår", "file_url": "https://docs.test/v.pdf", "tier_id": tier.id},
        )
        insurance_product_service.add_document(product.id, {"title": "FAQ", "file_url": "https://docs.test/faq.pdf"})

        insurance_product_service.delete_tier(tier.id)

        assert [d.title for d in insurance_product_service.list_documents(product.id)] == ["FAQ"]


class TestProductEndpoints:

    def test_salon_owner_sees_active_products_only(self, client, login, salon_owner_a, db_session):
        active = _product(name="Salong")
        hidden = _product(name="Cyber", product_type="cyber", active=False)
        headers = login(salon_owner_a)

        resp = client.get("/api/insurance/products?include_inactive=true", headers=headers)
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json["items"]] == [active.id]

        assert client.get(f"/api/insurance/products/{hidden.id}", headers=headers).status_code == 404

    def test_admin_sees_inactive(self, client, admin_headers, db_session):
        _product(name="Cyber", product_type="cyber", active=False)
        resp = client.get("/api/insurance/products?include_inactive=true", headers=admin_headers)
        assert resp.json["count"] == 1

    def test_salon_owner_cannot_edit(self, client, login, salon_owner_a, db_session):
        resp = client.post("/api/insurance/products", json={
            "name": "Helse", "product_type": "helse", "price_model": "per_person", "base_price": 300,
        }, headers=login(salon_owner_a))
        assert resp.status_code == 403

    def test_stylist_has_no_catalogue_access(self, client, login, stylist_a, db_session):
        assert client.get("/api/insurance/products", headers=login(stylist_a)).status_code == 403

    def test_admin_builds_coverage_table(self, client, admin_headers, db_session):
        resp = client.post("/api/insurance/products", json={
            "name": "Salongforsikring", "product_type": "salong", "price_model": "fast", "base_price": 4900,
        }, headers=admin_headers)
        assert resp.status_code == 201
        product_id = resp.json["id"]

        tier = client.post(f"/api/insurance/products/{product_id}/tiers", json={
            "tier_name": "Basis", "price": 4900,
        }, headers=admin_headers).json
        assert client.post(f"/api/insurance/products/{product_id}/coverage", json={
            "coverage_type": "Innbo",
        }, headers=admin_headers).status_code == 201
        resp = client.put(f"/api/insurance/tiers/{tier['id']}/coverage", json={
            "coverage_type": "Innbo", "coverage_value": "2 MNOK",
        }, headers=admin_headers)
        assert resp.status_code == 200

        table = client.get(f"/api/insurance/products/{product_id}/coverage", headers=admin_headers).json
        assert table["rows"] == [{"coverage_type": "Innbo", "values": {str(tier["id"]): "2 MNOK"}}]

    def test_unknown_field_rejected(self, client, admin_headers, db_session):
        resp = client.post("/api/insurance/products", json={
            "name": "Salong", "product_type": "salong", "price_model": "fast", "base_price": 1, "id": 5,
        }, headers=admin_headers)
        assert resp.status_code == 400
