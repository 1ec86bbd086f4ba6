"""
Power of attorney (fullmakt) tests.

Verifies:
- The public form requires contact details and both consents
- Signing codes are emailed, single use, expire and lock after too many attempts
- Admin listing by derived status, stats and the semicolon CSV export
"""

from datetime import timedelta

import pytest

from salonportal.integrations import functions
from salonportal.models import PowerOfAttorney, SecurityEvent
from salonportal.services import poa_service
from salonportal.services.poa_service import OtpError
from salonportal.time_utils import utcnow
from salonportal.validation import ValidationError


def _form(**overrides):
    payload = {
        "salon_name": "Salong A",
        "org_number": "923 456 789",
        "contact_name": "Kari Nordmann",
        "email": "Kari@Salong.no",
        "phone": "99887766",
        "consent_transfer": True,
        "consent_privacy": True,
        "has_existing_insurance": True,
        "previous_insurers": [{"company": "If", "policy_number": "P-1"}],
    }
    payload.update(overrides)
    return payload


def _last_code(function_calls):
    return function_calls.bodies(functions.SEND_POA_OTP)[-1]["code"]


class TestCreatePowerOfAttorney:

    def test_links_known_salon_by_org_number(self, db_session, salon_a):
        poa = poa_service.create_power_of_attorney(_form())

        assert poa.org_number == "923456789"
        assert poa.salon_id == salon_a.id
        assert poa.email == "kari@salong.no"
        assert poa.previous_insurers == [{"company": "If", "policy_number": "P-1"}]
        assert poa.status == "pending"

    def test_unknown_org_number_is_kept_unlinked(self, db_session):
        poa = poa_service.create_power_of_attorney(_form(org_number="999888777"))
        assert poa.salon_id is None

    @pytest.mark.parametrize("field", ["salon_name", "org_number", "contact_name", "email"])
    def test_required_fields(self, db_session, field):
        with pytest.raises(ValidationError):
            poa_service.create_power_of_attorney(_form(**{field: "  "}))

    @pytest.mark.parametrize("consent", ["consent_transfer", "consent_privacy"])
    def test_both_consents_required(self, db_session, consent):
        with pytest.raises(ValidationError, match="consents"):
            poa_service.create_power_of_attorney(_form(**{consent: False}))

    def test_existing_insurance_needs_an_insurer(self, db_session):
        with pytest.raises(ValidationError):
            poa_service.create_power_of_attorney(_form(previous_insurers=[]))

    def test_insurers_dropped_without_existing_insurance(self, db_session):
        poa = poa_service.create_power_of_attorney(_form(has_existing_insurance=False))
        assert poa.previous_insurers == []

    def test_bad_org_number(self, db_session):
        with pytest.raises(ValidationError):
            poa_service.create_power_of_attorney(_form(org_number="12345"))


class TestSigning:

    @pytest.fixture
    def poa(self, db_session, function_calls):
        poa = poa_service.create_power_of_attorney(_form())
        return poa_service.issue_otp(poa.id)

    def test_code_is_emailed_and_only_hash_stored(self, poa, function_calls):
        [body] = function_calls.bodies(functions.SEND_POA_OTP)
        assert body["poaId"] == poa.id
        assert body["email"] == "kari@salong.no"
        assert len(body["code"]) == 6 and body["code"].isdigit()
        assert poa.otp_code_hash != body["code"]
        assert len(poa.otp_code_hash) == 64

    def test_correct_code_signs(self, db_session, poa, function_calls):
        signed = poa_service.verify_and_sign(poa.id, _last_code(function_calls), ip_address="10.0.0.1", user_agent="pytest")

        assert signed.signed is True
        assert signed.status == "signed"
        assert signed.signed_at is not None
        assert signed.ip_address == "10.0.0.1"
        assert signed.otp_code_hash is None

    def test_code_is_single_use(self, db_session, poa, function_calls):
        code = _last_code(function_calls)
        poa_service.verify_and_sign(poa.id, code)
        with pytest.raises(OtpError, match="Already signed"):
            poa_service.verify_and_sign(poa.id, code)

    def test_wrong_code_counts_attempts(self, db_session, poa, function_calls):
        wrong = "000000" if _last_code(function_calls) != "000000" else "111111"
        with pytest.raises(OtpError, match="Invalid code"):
            poa_service.verify_and_sign(poa.id, wrong)
        assert db_session.get(PowerOfAttorney, poa.id).otp_attempts == 1

    def test_locks_after_max_attempts(self, app, db_session, poa, function_calls):
        code = _last_code(function_calls)
        wrong = "000000" if code != "000000" else "111111"
        for _ in range(app.config["POA_OTP_MAX_ATTEMPTS"]):
            with pytest.raises(OtpError, match="Invalid code"):
                poa_service.verify_and_sign(poa.id, wrong)

        with pytest.raises(OtpError, match="Too many attempts"):
            poa_service.verify_and_sign(poa.id, code)

    def test_new_code_resets_attempts_and_replaces_old(self, db_session, poa, function_calls):
        old = _last_code(function_calls)
        wrong = "000000" if old != "000000" else "111111"
        with pytest.raises(OtpError):
            poa_service.verify_and_sign(poa.id, wrong)

        poa_service.issue_otp(poa.id)
        new = _last_code(function_calls)
        assert db_session.get(PowerOfAttorney, poa.id).otp_attempts == 0

        if new != old:
            with pytest.raises(OtpError):
                poa_service.verify_and_sign(poa.id, old)
        assert poa_service.verify_and_sign(poa.id, new).signed is True

    def test_expired_code_rejected(self, db_session, poa, function_calls):
        poa.otp_expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()

        assert poa.status == "expired"
        with pytest.raises(OtpError, match="expired"):
            poa_service.verify_and_sign(poa.id, _last_code(function_calls))

    def test_no_code_issued(self, db_session):
        poa = poa_service.create_power_of_attorney(_form())
        with pytest.raises(OtpError, match="No code"):
            poa_service.verify_and_sign(poa.id, "123456")


class TestPublicEndpoints:

    def test_create_then_sign(self, client, db_session, function_calls):
        created = client.post("/api/insurance/power-of-attorney", json=_form())
        assert created.status_code == 201
        assert created.json["status"] == "pending"
        assert created.json["otp_expires_at"].endswith("Z")

        poa_id = created.json["id"]
        signed = client.post(f"/api/insurance/power-of-attorney/{poa_id}/sign", json={"code": _last_code(function_calls)})
        assert signed.status_code == 200
        assert signed.json["status"] == "signed"

    def test_wrong_code_logged(self, client, db_session, function_calls):
        poa_id = client.post("/api/insurance/power-of-attorney", json=_form()).json["id"]
        wrong = "000000" if _last_code(function_calls) != "000000" else "111111"

        resp = client.post(f"/api/insurance/power-of-attorney/{poa_id}/sign", json={"code": wrong})

        assert resp.status_code == 400
        event = db_session.query(SecurityEvent).filter_by(event_type="OTP_FAILED").one()
        assert event.reason == "Invalid code"

    def test_missing_consent_is_400(self, client, db_session, function_calls):
        resp = client.post("/api/insurance/power-of-attorney", json=_form(consent_privacy=False))
        assert resp.status_code == 400
        assert function_calls == []

    def test_unknown_document_is_404(self, client, db_session, function_calls):
        resp = client.post("/api/insurance/power-of-attorney/4242/otp")
        assert resp.status_code == 404


class TestAdministration:

    @pytest.fixture
    def documents(self, db_session, function_calls):
        signed = poa_service.issue_otp(poa_service.create_power_of_attorney(_form(salon_name="Signert Salong")).id)
        poa_service.verify_and_sign(signed.id, _last_code(function_calls))

        expired = poa_service.issue_otp(poa_service.create_power_of_attorney(
            _form(salon_name="Gammel Salong", org_number="987654321", email="gammel@salong.no")
        ).id)
        expired.otp_expires_at = utcnow() - timedelta(hours=1)
        db_session.commit()

        pending = poa_service.issue_otp(poa_service.create_power_of_attorney(
            _form(salon_name="Ny Salong", org_number="912345678", phone="")
        ).id)
        return {"signed": signed, "expired": expired, "pending": pending}

    def test_status_filter_and_search(self, db_session, documents):
        assert [p.id for p in poa_service.list_powers_of_attorney(status="expired")] == [documents["expired"].id]
        assert [p.id for p in poa_service.list_powers_of_attorney(status="signed")] == [documents["signed"].id]
        assert [p.id for p in poa_service.list_powers_of_attorney(search="gammel")] == [documents["expired"].id]

    def test_stats(self, db_session, documents):
        assert poa_service.stats() == {"total": 3, "pending": 1, "expired": 1, "signed": 1}

    def test_csv_export(self, db_session, documents):
        data = poa_service.export_csv()

        assert data.startswith(b"\xef\xbb\xbf")
        lines = data.decode("utf-8-sig").split("\r\n")
        assert lines[0] == "Salongnavn;Org.nr;Kontaktperson;E-post;Telefon;Status;Signert dato;Opprettet"
        assert lines[-1] == ""
        assert len(lines) == 5

        by_name = {line.split(";")[0]: line.split(";") for line in lines[1:-1]}
        assert by_name["Signert Salong"][5] == "Signert"
        assert by_name["Gammel Salong"][5] == "Utløpt"
        assert by_name["Ny Salong"][4] == ""
        assert by_name["Ny Salong"][6] == ""

    def test_export_endpoint(self, client, admin_headers, documents):
        resp = client.get("/api/insurance/power-of-attorney/export", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert resp.headers["Content-Disposition"].startswith('attachment; filename="fullmakter_')

    def test_district_manager_reads_but_cannot_manage(self, client, login, district_manager, documents):
        headers = login(district_manager)
        assert client.get("/api/insurance/power-of-attorney/stats", headers=headers).status_code == 200
        resp = client.post(f"/api/insurance/power-of-attorney/{documents['pending'].id}/notified", headers=headers)
        assert resp.status_code == 403

    def test_mark_notified(self, client, admin_headers, documents):
        resp = client.post(f"/api/insurance/power-of-attorney/{documents['signed'].id}/notified", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["admin_notified_at"] is not None
