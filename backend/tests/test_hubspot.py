"""
HubSpot integration tests.

HubSpot is faked with an httpx.MockTransport injected through
HUBSPOT_TRANSPORT; no network traffic.

Verifies:
- Role mapping from stilling / leverandrrolle (chain owner before owner)
- OAuth code exchange, refresh near expiry, and the owners 401 retry
- Company import as salon or supplier, owner -> district, contact invitations
"""

import json
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from salonportal.integrations import functions
from salonportal.integrations.hubspot import HubSpotError
from salonportal.models import HubSpotConnection, HubSpotOwnerDistrictMapping, Invitation, Salon, Supplier
from salonportal.services import hubspot_service
from salonportal.services.hubspot_service import (
    HubSpotNotConnected,
    company_org_number,
    is_supplier_company,
    map_position_to_role,
    map_supplier_role,
)
from salonportal.time_utils import utcnow
from salonportal.validation import NotFoundError


# =============================================================================
# FAKE HUBSPOT
# =============================================================================


class FakeHubSpot:
    """Routes MockTransport requests to canned CRM data."""

    def __init__(self):
        self.requests = []
        self.token_grants = []
        self.valid_tokens = {"good"}
        self.next_access_token = "fresh"
        self.companies = {}
        self.contacts = {}
        self.owners = []

    def transport(self):
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        path = request.url.path

        if path == "/oauth/v1/token":
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            self.token_grants.append(form)
            if form.get("code") == "bad-code":
                return httpx.Response(400, json={"message": "invalid code"})
            self.valid_tokens.add(self.next_access_token)
            return httpx.Response(200, json={
                "access_token": self.next_access_token,
                "refresh_token": "refresh-2",
                "expires_in": 1800,
            })

        if path.startswith("/oauth/v1/access-tokens/"):
            return httpx.Response(200, json={"hub_id": 24681357, "user": "admin@har1.no"})

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if token not in self.valid_tokens:
            return httpx.Response(401, json={"message": "expired token"})

        if path == "/crm/v3/owners":
            return httpx.Response(200, json={"results": self.owners})

        if path.startswith("/crm/v3/objects/companies/") and request.method == "GET":
            company_id = path.rsplit("/", 1)[1]
            if company_id not in self.companies:
                return httpx.Response(404, json={"message": "not found"})
            return httpx.Response(200, json={"id": company_id, "properties": self.companies[company_id]})

        if path.startswith("/crm/v4/objects/companies/"):
            company_id = path.split("/")[5]
            results = [{"toObjectId": int(c["id"])} for c in self.contacts.get(company_id, [])]
            return httpx.Response(200, json={"results": results})

        if path == "/crm/v3/objects/contacts/batch/read":
            wanted = {item["id"] for item in json.loads(request.content)["inputs"]}
            everyone = [c for contacts in self.contacts.values() for c in contacts]
            return httpx.Response(200, json={"results": [c for c in everyone if c["id"] in wanted]})

        if path == "/communication-preferences/v3/definitions":
            return httpx.Response(200, json={"subscriptionDefinitions": [{"id": "1", "name": "Nyhetsbrev"}]})

        return httpx.Response(404, json={"message": f"unhandled {path}"})


@pytest.fixture
def fake_hubspot(app, db_session):
    fake = FakeHubSpot()
    app.config["HUBSPOT_TRANSPORT"] = fake.transport()
    return fake


def _connect(db_session, access_token="good", expires_in=timedelta(hours=1)):
    connection = HubSpotConnection(
        hub_id="24681357",
        access_token=access_token,
        refresh_token="refresh-1",
        expires_at=utcnow() + expires_in,
    )
    db_session.add(connection)
    db_session.commit()
    return connection


# =============================================================================
# MAPPING
# =============================================================================


class TestRoleMapping:

    @pytest.mark.parametrize(
        "stilling,expected",
        [
            ("Kjede Eier", "chain_owner"),
            ("Kjedeeier og frisør", "chain_owner"),
            ("Eier", "salon_owner"),
            ("Innehaver", "salon_owner"),
            ("Daglig leder", "daglig_leder"),
            ("Avdelingsleder", "avdelingsleder"),
            ("Styreleder", "styreleder"),
            ("Lærling", "apprentice"),
            ("Frisør", "stylist"),
            ("Resepsjonist", "stylist"),
            (None, "stylist"),
        ],
    )
    def test_position_to_role(self, stilling, expected):
        assert map_position_to_role(stilling) == expected

    def test_supplier_role_takes_precedence(self):
        assert map_position_to_role("Eier", "Salg") == "supplier_sales"

    def test_unrecognised_supplier_role_falls_back_to_position(self):
        assert map_position_to_role("Daglig leder", "Annet") == "daglig_leder"

    @pytest.mark.parametrize(
        "leverandrrolle,expected",
        [
            ("Administrator", "supplier_admin"),
            ("Salgsansvarlig", "supplier_sales"),
            ("Forretningsutvikling", "supplier_business_dev"),
            ("Annet", None),
            ("", None),
        ],
    )
    def test_supplier_role(self, leverandrrolle, expected):
        assert map_supplier_role(leverandrrolle) == expected

    @pytest.mark.parametrize("value", ["true", "Ja", "YES", "1", " true "])
    def test_supplier_company_truthy(self, value):
        assert is_supplier_company({"samarbeidspartnerleverandr": value}) is True

    @pytest.mark.parametrize("value", ["false", "nei", "", None])
    def test_supplier_company_falsy(self, value):
        assert is_supplier_company({"samarbeidspartnerleverandr": value}) is False

    def test_org_number_from_either_property(self):
        assert company_org_number({"orgnr": "NO 923 456 789 MVA"}) == "923456789"
        assert company_org_number({"organisasjonsnummer": "987654321"}) == "987654321"
        assert company_org_number({"orgnr": "12"}) is None
        assert company_org_number({}) is None


# =============================================================================
# CONNECTION
# =============================================================================


class TestConnection:

    def test_authorize_url(self, app, db_session):
        url = hubspot_service.build_authorize_url("state-123")
        parsed = urlparse(url)
        query = parse_qs(parsed.query)

        assert url.startswith("https://app-eu1.hubspot.com/oauth/authorize?")
        assert query["client_id"] == ["client-id"]
        assert query["state"] == ["state-123"]
        assert "crm.objects.owners.read" in query["scope"][0].split(" ")

    def test_exchange_code_replaces_connection(self, db_session, fake_hubspot, admin_user):
        _connect(db_session, access_token="old")

        connection = hubspot_service.exchange_code("auth-code", connected_by=admin_user)

        assert db_session.query(HubSpotConnection).count() == 1
        assert connection.hub_id == "24681357"
        assert connection.access_token == "fresh"
        assert connection.refresh_token == "refresh-2"
        assert timedelta(minutes=29) < connection.expires_at - utcnow() <= timedelta(minutes=30)
        assert fake_hubspot.token_grants[0]["grant_type"] == "authorization_code"
        assert fake_hubspot.token_grants[0]["redirect_uri"] == "https://portal.test/hubspot/callback"

    def test_rejected_code(self, db_session, fake_hubspot):
        with pytest.raises(HubSpotError) as exc:
            hubspot_service.exchange_code("bad-code")
        assert exc.value.status_code == 400
        assert db_session.query(HubSpotConnection).count() == 0

    def test_status(self, db_session):
        assert hubspot_service.connection_status() == {"connected": False}
        _connect(db_session)
        status = hubspot_service.connection_status()
        assert status["connected"] is True
        assert status["expired"] is False

    def test_refreshes_token_close_to_expiry(self, db_session, fake_hubspot):
        connection = _connect(db_session, access_token="good", expires_in=timedelta(minutes=3))

        hubspot_service.get_subscription_types()

        assert [g["grant_type"] for g in fake_hubspot.token_grants] == ["refresh_token"]
        assert fake_hubspot.token_grants[0]["refresh_token"] == "refresh-1"
        db_session.refresh(connection)
        assert connection.access_token == "fresh"
        assert connection.refresh_token == "refresh-2"

    def test_no_refresh_when_token_is_fresh(self, db_session, fake_hubspot):
        _connect(db_session)
        hubspot_service.get_subscription_types()
        assert fake_hubspot.token_grants == []

    def test_not_connected(self, db_session, fake_hubspot):
        with pytest.raises(HubSpotNotConnected):
            hubspot_service.search_companies("Salong")


class TestOwners:

    def test_owners_retry_once_after_401(self, db_session, fake_hubspot):
        _connect(db_session, access_token="revoked")
        fake_hubspot.owners = [{"id": 11, "firstName": "Ola", "lastName": "Selger", "email": "ola@har1.no"}]

        mappings = hubspot_service.sync_owners()

        assert [m.name for m in mappings] == ["Ola Selger"]
        assert [g["grant_type"] for g in fake_hubspot.token_grants] == ["refresh_token"]
        assert fake_hubspot.requests.count(("GET", "/crm/v3/owners")) == 2

    def test_other_calls_do_not_retry(self, db_session, fake_hubspot):
        _connect(db_session, access_token="revoked")
        with pytest.raises(HubSpotError) as exc:
            hubspot_service.get_subscription_types()
        assert exc.value.status_code == 401
        assert fake_hubspot.token_grants == []

    def test_sync_keeps_district_links(self, db_session, fake_hubspot, district_north):
        _connect(db_session)
        fake_hubspot.owners = [{"id": 11, "firstName": "Ola", "lastName": "Selger", "email": "ola@har1.no"}]
        [mapping] = hubspot_service.sync_owners()
        hubspot_service.set_owner_district(mapping.id, district_north.id)

        fake_hubspot.owners[0]["email"] = "ola.selger@har1.no"
        [mapping] = hubspot_service.sync_owners()

        assert mapping.district_id == district_north.id
        assert mapping.email == "ola.selger@har1.no"

    def test_unknown_district_rejected(self, db_session, fake_hubspot):
        _connect(db_session)
        fake_hubspot.owners = [{"id": 12, "email": "kari@har1.no"}]
        [mapping] = hubspot_service.sync_owners()
        with pytest.raises(NotFoundError):
            hubspot_service.set_owner_district(mapping.id, 4242)


# =============================================================================
# COMPANY IMPORT
# =============================================================================


class TestCompanyImport:

    @pytest.fixture
    def crm(self, db_session, fake_hubspot, district_north):
        _connect(db_session)
        db_session.add(HubSpotOwnerDistrictMapping(hubspot_owner_id="11", name="Ola Selger", district_id=district_north.id))
        db_session.commit()
        fake_hubspot.companies = {
            "1001": {
                "name": "Salong Nord",
                "orgnr": "912 345 678",
                "address": "Storgata 1",
                "zip": "9008",
                "city": "Tromsø",
                "hubspot_owner_id": "11",
            },
            "2002": {
                "name": "Hårpleie Engros AS",
                "organisasjonsnummer": "998877665",
                "samarbeidspartnerleverandr": "true",
            },
            "3003": {"name": "Salong A (CRM)", "orgnr": "923456789"},
        }
        fake_hubspot.contacts = {
            "1001": [
                {"id": "501", "properties": {"email": "Eier@SalongNord.no", "stilling": "Daglig leder"}},
                {"id": "502", "properties": {"email": "", "stilling": "Frisør"}},
                {"id": "503", "properties": {"email": "lev@salongnord.no", "leverandrrolle": "Salg"}},
            ],
            "2002": [
                {"id": "601", "properties": {"email": "admin@engros.no", "leverandrrolle": "Administrator"}},
                {"id": "602", "properties": {"email": "selger@engros.no"}},
            ],
        }
        return fake_hubspot

    def test_salon_import_maps_owner_to_district(self, db_session, crm, district_north):
        result = hubspot_service.import_company("1001")

        assert result.kind == "salon"
        assert result.created is True
        salon = result.record
        assert salon.org_number == "912345678"
        assert salon.hubspot_company_id == "1001"
        assert (salon.address, salon.postal_code, salon.city) == ("Storgata 1", "9008", "Tromsø")
        assert salon.district_id == district_north.id

    def test_reimport_updates_same_salon(self, db_session, crm):
        first = hubspot_service.import_company("1001")
        crm.companies["1001"]["city"] = "Bodø"

        second = hubspot_service.import_company("1001")

        assert second.created is False
        assert second.record.id == first.record.id
        assert second.record.city == "Bodø"

    def test_matches_existing_salon_by_org_number(self, db_session, crm, salon_a):
        result = hubspot_service.import_company("3003")
        assert result.created is False
        assert result.record.id == salon_a.id
        assert result.record.hubspot_company_id == "3003"

    def test_supplier_company(self, db_session, crm):
        result = hubspot_service.import_company("2002")

        assert result.kind == "supplier"
        assert isinstance(result.record, Supplier)
        assert result.record.org_number == "998877665"
        assert db_session.query(Salon).count() == 0
        assert result.to_dict()["supplier"]["name"] == "Hårpleie Engros AS"

    def test_invite_salon_contacts(self, db_session, crm, function_calls, admin_user):
        result = hubspot_service.invite_contacts("1001", created_by=admin_user)

        assert [(i.email, i.role, i.salon_id) for i in result.invited] == [
            ("eier@salongnord.no", "daglig_leder", result.record.id),
        ]
        assert result.invited[0].hubspot_contact_id == "501"
        reasons = sorted(s["reason"] for s in result.skipped)
        assert reasons == ["missing email", "role supplier_sales does not fit a salon"]
        assert len(function_calls.bodies(functions.SEND_INVITATION_EMAIL)) == 1

    def test_invite_supplier_contacts(self, db_session, crm, function_calls):
        result = hubspot_service.invite_contacts("2002")

        roles = {i.email: i.role for i in result.invited}
        assert roles == {"admin@engros.no": "supplier_admin", "selger@engros.no": "supplier_sales"}
        assert all(i.supplier_id == result.record.id for i in result.invited)

    def test_already_invited_contact_skipped(self, db_session, crm, function_calls):
        hubspot_service.invite_contacts("2002")
        again = hubspot_service.invite_contacts("2002")

        assert again.invited == []
        assert len(again.skipped) == 2
        assert db_session.query(Invitation).count() == 2

    def test_company_without_name(self, db_session, crm):
        crm.companies["4004"] = {"orgnr": "911111111"}
        with pytest.raises(ValueError):
            hubspot_service.import_company("4004")


# =============================================================================
# ENDPOINTS
# =============================================================================


class TestHubSpotEndpoints:

    def test_oauth_round_trip(self, client, admin_headers, fake_hubspot):
        started = client.get("/api/hubspot/authorize", headers=admin_headers)
        assert started.status_code == 200
        assert started.json["authorize_url"].endswith(f"state={started.json['state']}")

        mismatch = client.post("/api/hubspot/callback", json={"code": "auth-code", "state": "forged"}, headers=admin_headers)
        assert mismatch.status_code == 400

        # the mismatch consumed the stored state
        client.get("/api/hubspot/authorize", headers=admin_headers)
        with client.session_transaction() as flask_session:
            state = flask_session["hubspot_oauth_state"]

        done = client.post("/api/hubspot/callback", json={"code": "auth-code", "state": state}, headers=admin_headers)
        assert done.status_code == 200
        assert done.json["hub_id"] == "24681357"
        assert "access_token" not in done.json

    def test_not_connected_is_409(self, client, admin_headers, fake_hubspot):
        resp = client.get("/api/hubspot/companies?q=salong", headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json["connected"] is False

    def test_empty_search_is_400(self, client, admin_headers, db_session):
        resp = client.get("/api/hubspot/companies", headers=admin_headers)
        assert resp.status_code == 400

    def test_crm_failure_is_502(self, client, admin_headers, db_session, fake_hubspot):
        _connect(db_session)
        resp = client.post("/api/hubspot/companies/9999/import", headers=admin_headers)
        assert resp.status_code == 502

    def test_district_manager_denied(self, client, login, district_manager):
        assert client.get("/api/hubspot/status", headers=login(district_manager)).status_code == 403
