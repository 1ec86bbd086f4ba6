"""
Role change tests.

Verifies:
- A role change moves the association to the new role group
- Every change is audited and the user is notified
- Existing sessions are revoked on a role change
- Bulk updates process users one by one and report the outcome
"""

import pytest

from salonportal.integrations import functions
from salonportal.models import RoleChangeAudit, SessionToken
from salonportal.services import user_service
from salonportal.validation import ValidationError


class TestUpdateUserRole:

    def test_salon_role_to_district_manager(self, db_session, function_calls, stylist_a, district_north, admin_user):
        user = user_service.update_user_role(
            stylist_a.id, "district_manager", changed_by=admin_user, district_id=district_north.id,
        )

        assert user.role == "district_manager"
        assert user.district_id == district_north.id

        audit = db_session.query(RoleChangeAudit).filter_by(user_id=stylist_a.id).one()
        assert audit.old_role == "stylist"
        assert audit.new_role == "district_manager"
        assert audit.changed_by_user_id == admin_user.id

        [body] = function_calls.bodies(functions.SEND_ROLE_CHANGE_NOTIFICATION)
        assert body["oldRole"] == "stylist"
        assert body["newRole"] == "district_manager"
        assert body["userEmail"] == stylist_a.email

    def test_supplier_role_clears_salon(self, db_session, function_calls, stylist_a, supplier):
        user = user_service.update_user_role(stylist_a.id, "supplier_sales", supplier_id=supplier.id)
        assert user.supplier_id == supplier.id
        assert user.salon_id is None

    def test_admin_clears_all_associations(self, db_session, function_calls, supplier_admin):
        user = user_service.update_user_role(supplier_admin.id, "admin")
        assert (user.salon_id, user.district_id, user.supplier_id) == (None, None, None)

    def test_missing_association_rejected(self, db_session, function_calls, admin_user, make_user):
        target = make_user("admin")
        with pytest.raises(ValidationError, match="requires salon_id"):
            user_service.update_user_role(target.id, "salon_owner", changed_by=admin_user)
        assert db_session.query(RoleChangeAudit).count() == 0
        assert function_calls == []

    def test_admin_cannot_demote_self(self, db_session, function_calls, admin_user, salon_a):
        with pytest.raises(ValidationError):
            user_service.update_user_role(admin_user.id, "salon_owner", changed_by=admin_user, salon_id=salon_a.id)

    def test_notification_failure_keeps_change(self, db_session, function_calls, stylist_a, salon_a):
        function_calls.responses[functions.SEND_ROLE_CHANGE_NOTIFICATION] = functions.FunctionInvocationError(
            functions.SEND_ROLE_CHANGE_NOTIFICATION, "mail down"
        )
        user = user_service.update_user_role(stylist_a.id, "seniorfrisor", salon_id=salon_a.id)

        assert user.role == "seniorfrisor"
        assert db_session.query(RoleChangeAudit).count() == 1

    def test_role_change_revokes_sessions(self, client, db_session, function_calls, login, stylist_a, salon_a):
        headers = login(stylist_a)
        assert client.get("/api/auth/me", headers=headers).status_code == 200

        user_service.update_user_role(stylist_a.id, "salon_owner", salon_id=salon_a.id)

        assert client.get("/api/auth/me", headers=headers).status_code == 401
        assert db_session.query(SessionToken).filter_by(user_id=stylist_a.id, is_revoked=False).count() == 0

    def test_unchanged_role_is_not_audited(self, db_session, function_calls, stylist_a, salon_a):
        user_service.update_user_role(stylist_a.id, "stylist", salon_id=salon_a.id)
        assert db_session.query(RoleChangeAudit).count() == 0
        assert function_calls == []


class TestBulkUpdateRoles:

    def test_counts_succeeded_and_skipped(self, db_session, function_calls, make_user, salon_a, salon_b):
        first = make_user("stylist", salon_id=salon_a.id)
        second = make_user("apprentice", salon_id=salon_b.id)
        already = make_user("seniorfrisor", salon_id=salon_a.id)

        result = user_service.bulk_update_roles([first.id, second.id, already.id], "seniorfrisor")

        assert result.to_dict() == {"succeeded": 2, "failed": 0, "skipped": 1, "errors": []}
        # Each user keeps their own salon
        assert user_service.get_user(second.id).salon_id == salon_b.id
        assert len(function_calls.bodies(functions.SEND_ROLE_CHANGE_NOTIFICATION)) == 2

    def test_user_without_required_association_fails(self, db_session, function_calls, make_user, supplier_admin, salon_a):
        stylist = make_user("stylist", salon_id=salon_a.id)

        result = user_service.bulk_update_roles([stylist.id, supplier_admin.id], "salon_owner")

        assert result.succeeded == 1
        assert result.failed == 1
        assert result.errors[0]["user_id"] == supplier_admin.id
        assert "salon_id" in result.errors[0]["error"]
        assert user_service.get_user(supplier_admin.id).role == "supplier_admin"
        assert user_service.get_user(stylist.id).role == "salon_owner"

    def test_unknown_user_counted_as_failed(self, db_session, function_calls, stylist_a):
        result = user_service.bulk_update_roles([stylist_a.id, 99999], "apprentice")
        assert result.succeeded == 1
        assert result.failed == 1
        assert result.errors == [{"user_id": 99999, "error": "User not found"}]

    def test_unknown_role_rejected(self, db_session, stylist_a):
        with pytest.raises(ValidationError):
            user_service.bulk_update_roles([stylist_a.id], "superuser")

    def test_endpoint_returns_summary(self, client, admin_headers, function_calls, stylist_a):
        resp = client.post("/api/users/bulk-role", json={"user_ids": [stylist_a.id], "role": "apprentice"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["succeeded"] == 1

    def test_endpoint_requires_list(self, client, admin_headers):
        resp = client.post("/api/users/bulk-role", json={"user_ids": 5, "role": "stylist"}, headers=admin_headers)
        assert resp.status_code == 400


class TestRoleEndpoints:

    def test_change_role_and_read_audit(self, client, admin_headers, function_calls, stylist_a, salon_a):
        resp = client.put(f"/api/users/{stylist_a.id}/role", json={
            "role": "daglig_leder",
            "salon_id": salon_a.id,
        }, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["role"] == "daglig_leder"

        audit = client.get(f"/api/users/role-changes?user_id={stylist_a.id}", headers=admin_headers)
        assert audit.status_code == 200
        assert audit.json["count"] == 1
        assert audit.json["items"][0]["new_role"] == "daglig_leder"

    def test_salon_owner_cannot_change_roles(self, client, login, salon_owner_a, stylist_a, salon_a):
        resp = client.put(f"/api/users/{stylist_a.id}/role", json={
            "role": "salon_owner",
            "salon_id": salon_a.id,
        }, headers=login(salon_owner_a))
        assert resp.status_code == 403

    def test_salon_owner_lists_only_own_salon(self, client, login, salon_owner_a, stylist_a, make_user, salon_b):
        make_user("stylist", salon_id=salon_b.id)
        resp = client.get("/api/users", headers=login(salon_owner_a))
        assert resp.status_code == 200
        emails = {item["email"] for item in resp.json["items"]}
        assert emails == {salon_owner_a.email, stylist_a.email}

    def test_role_catalogue(self, client, login, salon_owner_a):
        resp = client.get("/api/users/roles", headers=login(salon_owner_a))
        assert resp.status_code == 200

        by_role = {item["role"]: item for item in resp.json["items"]}
        assert len(by_role) == 13
        assert by_role["stylist"]["label"] == "Frisør"
        assert by_role["stylist"]["requires"] == "salon_id"
        assert by_role["admin"]["requires"] is None
        insurance = by_role["district_manager"]["permissions"]["INSURANCE"]
        assert [p["code"] for p in insurance] == ["VIEW_POWER_OF_ATTORNEY", "VIEW_INSURANCE_PRODUCTS"]
