# Overview: Thin HubSpot REST client (OAuth token endpoint and CRM reads).

from __future__ import annotations

import logging
import time
from typing import Callable

import httpx


logger = logging.getLogger(__name__)

SCOPES = " ".join([
    "oauth",
    "crm.objects.companies.write",
    "crm.objects.companies.read",
    "crm.objects.contacts.read",
    "crm.objects.contacts.write",
    "crm.objects.subscriptions.read",
    "crm.objects.subscriptions.write",
    "crm.objects.owners.read",
    "crm.schemas.contacts.read",
])

COMPANY_PROPERTIES = [
    "name",
    "orgnr",
    "organisasjonsnummer",
    "address",
    "zip",
    "city",
    "phone",
    "domain",
    "hubspot_owner_id",
    "samarbeidspartnerleverandr",
]

CONTACT_PROPERTIES = [
    "email",
    "firstname",
    "lastname",
    "phone",
    "mobilephone",
    "jobtitle",
    "stilling",
    "leverandrrolle",
]


class HubSpotError(Exception):
    """Raised when HubSpot rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _raise_for_status(response: httpx.Response, what: str) -> None:
    if response.status_code >= 400:
        detail = response.text[:300]
        raise HubSpotError(f"{what} failed with HTTP {response.status_code}: {detail}", response.status_code)


def exchange_token(
    *,
    base_url: str,
    client_id: str,
    client_secret: str,
    redirect_uri: str | None = None,
    code: str | None = None,
    refresh_token: str | None = None,
    transport: httpx.BaseTransport | None = None,
) -> dict:
    """
    Call the OAuth token endpoint.

    Pass `code` for the authorization-code grant or `refresh_token` for a
    refresh. Returns HubSpot's JSON (access_token, refresh_token, expires_in).
    """
    if code:
        data = {
            "grant_type": "authorization_code",
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri or "",
            "code": code,
        }
    elif refresh_token:
        data = {
            "grant_type": "refresh_token",
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
        }
    else:
        raise ValueError("code or refresh_token is required")

    try:
        with httpx.Client(base_url=base_url, timeout=15, transport=transport) as client:
            response = client.post("/oauth/v1/token", data=data)
    except httpx.HTTPError as exc:
        raise HubSpotError(f"Token request failed: {exc}") from exc

    _raise_for_status(response, "Token request")
    return response.json()


class HubSpotClient:
    """
    Authenticated CRM client.

    on_unauthorized is called when a request that allows it receives a 401;
    it must return a fresh access token. The request is then retried once.
    """

    def __init__(
        self,
        *,
        base_url: str,
        access_token: str,
        on_unauthorized: Callable[[], str] | None = None,
        transport: httpx.BaseTransport | None = None,
        retry_delay: float = 1.0,
    ):
        self._access_token = access_token
        self._on_unauthorized = on_unauthorized
        self._retry_delay = retry_delay
        self._client = httpx.Client(base_url=base_url, timeout=20, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._access_token}"}
        try:
            return self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise HubSpotError(f"{method} {path} failed: {exc}") from exc

    def _request(self, method: str, path: str, *, retry_on_unauthorized: bool = False, **kwargs) -> dict:
        response = self._send(method, path, **kwargs)

        if response.status_code == 401 and retry_on_unauthorized and self._on_unauthorized:
            logger.warning("HubSpot returned 401 for %s %s; refreshing token and retrying once", method, path)
            if self._retry_delay:
                time.sleep(self._retry_delay)
            self._access_token = self._on_unauthorized()
            response = self._send(method, path, **kwargs)

        _raise_for_status(response, f"{method} {path}")
        return response.json() if response.content else {}

    # -- Companies --

    def search_companies(self, query: str, limit: int = 20) -> list[dict]:
        body = {"query": query, "limit": limit, "properties": COMPANY_PROPERTIES}
        return self._request("POST", "/crm/v3/objects/companies/search", json=body).get("results", [])

    def get_company(self, company_id: str) -> dict:
        params = {"properties": ",".join(COMPANY_PROPERTIES)}
        return self._request("GET", f"/crm/v3/objects/companies/{company_id}", params=params)

    def get_company_contacts(self, company_id: str) -> list[dict]:
        associations = self._request("GET", f"/crm/v4/objects/companies/{company_id}/associations/contacts")
        contact_ids = [str(item.get("toObjectId")) for item in associations.get("results", []) if item.get("toObjectId")]
        if not contact_ids:
            return []
        body = {
            "inputs": [{"id": contact_id} for contact_id in contact_ids],
            "properties": CONTACT_PROPERTIES,
        }
        return self._request("POST", "/crm/v3/objects/contacts/batch/read", json=body).get("results", [])

    # -- Owners / subscriptions --

    def get_owners(self) -> list[dict]:
        # Owners is the one call that tolerates a transient 401
        return self._request("GET", "/crm/v3/owners", params={"limit": 500}, retry_on_unauthorized=True).get("results", [])

    def get_subscription_types(self) -> list[dict]:
        return self._request("GET", "/communication-preferences/v3/definitions").get("subscriptionDefinitions", [])


def get_token_info(*, base_url: str, access_token: str, transport: httpx.BaseTransport | None = None) -> dict:
    """Metadata for an access token; includes the account's hub_id."""
    try:
        with httpx.Client(base_url=base_url, timeout=15, transport=transport) as client:
            response = client.get(f"/oauth/v1/access-tokens/{access_token}")
    except httpx.HTTPError as exc:
        raise HubSpotError(f"Token info request failed: {exc}") from exc

    _raise_for_status(response, "Token info request")
    return response.json()
