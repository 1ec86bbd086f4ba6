"""
Salon, chain, district and supplier registry tests, plus the CLI bootstrap.
"""

import pytest

from salonportal.models import Salon, SupplierSalonLink, User
from salonportal.services import salon_service, supplier_service
from salonportal.validation import ConflictError, NotFoundError, ValidationError


class TestSalons:

    def test_org_number_normalised(self, db_session):
        salon = salon_service.create_salon({"name": "Klipp & Krøll", "org_number": "NO 912 345 678 MVA"})
        assert salon.org_number == "912345678"
        assert salon_service.find_salon_by_org_number("912345678").id == salon.id

    def test_duplicate_identifiers_conflict(self, db_session, salon_a):
        with pytest.raises(ConflictError):
            salon_service.create_salon({"name": "Kopi", "org_number": "923456789"})
        with pytest.raises(ConflictError):
            salon_service.create_salon({"name": "Kopi", "member_number": "M-100"})

    def test_unknown_district_rejected(self, db_session):
        with pytest.raises(ValidationError):
            salon_service.create_salon({"name": "Ny", "district_id": 4242})

    def test_owner_fields_enforced(self, db_session, salon_a):
        with pytest.raises(ValidationError, match="chain_id"):
            salon_service.update_salon(salon_a.id, {"chain_id": None}, allowed_fields=salon_service.OWNER_EDITABLE_FIELDS)
        updated = salon_service.update_salon(salon_a.id, {"city": "Bergen"}, allowed_fields=salon_service.OWNER_EDITABLE_FIELDS)
        assert updated.city == "Bergen"

    def test_list_search_and_inactive(self, db_session, salon_a, salon_b):
        salon_service.update_salon(salon_b.id, {"city": "Tromsø"})
        assert [s.id for s in salon_service.list_salons(search="tromsø")] == [salon_b.id]

        salon_service.deactivate_salon(salon_b.id)
        assert [s.id for s in salon_service.list_salons()] == [salon_a.id]
        assert len(salon_service.list_salons(include_inactive=True)) == 2

    def test_scope_restricts_listing(self, db_session, salon_a, salon_b):
        assert salon_service.list_salons(salon_ids=set()) == []
        assert [s.id for s in salon_service.list_salons(salon_ids={salon_b.id})] == [salon_b.id]


class TestChainsAndDistricts:

    def test_chain_membership(self, db_session, chain, salon_a, salon_b):
        salon_service.add_salon_to_chain(chain.id, salon_b.id)
        assert {s.id for s in salon_service.list_salons(chain_id=chain.id)} == {salon_a.id, salon_b.id}

        with pytest.raises(ValidationError):
            salon_service.remove_salon_from_chain(chain.id + 1, salon_a.id)
        assert salon_service.remove_salon_from_chain(chain.id, salon_a.id).chain_id is None

    def test_delete_chain_keeps_salons(self, db_session, chain, salon_a):
        salon_service.delete_chain(chain.id)
        db_session.expire_all()

        assert db_session.get(Salon, salon_a.id).chain_id is None
        with pytest.raises(NotFoundError):
            salon_service.delete_chain(chain.id)

    def test_duplicate_chain_name(self, db_session, chain):
        with pytest.raises(ConflictError):
            salon_service.create_chain("klipp kjeden")

    def test_delete_district_clears_associations(self, db_session, district_north, salon_a, district_manager):
        salon_service.delete_district(district_north.id)
        db_session.expire_all()

        assert db_session.get(Salon, salon_a.id).district_id is None
        assert db_session.get(User, district_manager.id).district_id is None

    def test_district_names(self, db_session, district_north):
        with pytest.raises(ConflictError):
            salon_service.create_district("NORD")
        with pytest.raises(ValidationError):
            salon_service.update_district(district_north.id, name=" ")
        assert salon_service.update_district(district_north.id, description="Troms og Finnmark").description == "Troms og Finnmark"


class TestSuppliers:

    def test_duplicate_name_conflicts(self, db_session, supplier):
        with pytest.raises(ConflictError):
            supplier_service.create_supplier({"name": "Hårprodukter AS"})

    def test_brands_unique_per_supplier(self, db_session, supplier):
        with pytest.raises(ConflictError):
            supplier_service.add_brand(supplier.id, "wella")
        assert supplier_service.find_brand(supplier.id, " REDKEN ").name == "Redken"

        other = supplier_service.create_supplier({"name": "Annen AS"})
        assert supplier_service.add_brand(other.id, "Wella").supplier_id == other.id

    def test_brand_toggle(self, db_session, supplier):
        brand = supplier_service.list_brands(supplier.id)[0]
        assert supplier_service.set_brand_active(brand.id, False).is_active is False

    def test_salon_links(self, db_session, supplier, salon_a, salon_b):
        first = supplier_service.link_salon(supplier.id, salon_a.id)
        assert supplier_service.link_salon(supplier.id, salon_a.id).id == first.id
        supplier_service.link_salon(supplier.id, salon_b.id)

        assert [s.name for s in supplier_service.list_linked_salons(supplier.id)] == ["Salong A", "Salong B"]
        assert supplier_service.unlink_salon(supplier.id, salon_b.id) is True
        assert supplier_service.unlink_salon(supplier.id, salon_b.id) is False
        assert db_session.query(SupplierSalonLink).count() == 1

    def test_team_lists_supplier_users_only(self, db_session, supplier, supplier_admin, make_user, stylist_a):
        sales = make_user("supplier_sales", supplier_id=supplier.id)
        assert {u.id for u in supplier_service.list_team(supplier.id)} == {supplier_admin.id, sales.id}


class TestCli:

    def test_users_create_and_list(self, app, db_session, salon_a):
        runner = app.test_cli_runner()

        created = runner.invoke(args=[
            "users", "create", "--email", "eier@salong.no", "--password", "Password123!",
            "--role", "salon_owner", "--salon-id", str(salon_a.id),
        ])
        assert "PASS Created user eier@salong.no" in created.output

        listed = runner.invoke(args=["users", "list", "--role", "salon_owner"])
        assert "eier@salong.no" in listed.output
        assert f"salon:{salon_a.id}" in listed.output

    def test_users_create_requires_association(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            "users", "create", "--email", "eier@salong.no", "--password", "Password123!", "--role", "salon_owner",
        ])
        assert "FAIL" in result.output
        assert db_session.query(User).count() == 0

    def test_system_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()
        assert "PASS Created admin" in runner.invoke(args=["system", "init"]).output
        assert "already exists" in runner.invoke(args=["system", "init"]).output
