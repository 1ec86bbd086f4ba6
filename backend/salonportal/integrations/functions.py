# Overview: Client for the hosted serverless functions (email, onboarding, image generation).

"""
Hosted Function Invocation

WHY: Outbound email, account provisioning and image generation live in
named serverless functions owned by the hosting platform. The portal only
knows their request/response contracts: POST a JSON body, expect JSON back.

CONFIG:
- FUNCTIONS_BASE_URL: e.g. "https://<project>.functions.example/v1". Empty
  disables outbound calls; invoke() then logs and returns {"skipped": True}.
- FUNCTIONS_API_KEY: sent as Bearer token.
- FUNCTIONS_TIMEOUT_SECONDS: per-request timeout.

No retries: a failed call raises FunctionInvocationError and the caller
decides whether the surrounding change stands.
"""

from __future__ import annotations

import logging

import httpx
from flask import current_app


logger = logging.getLogger(__name__)

SEND_INVITATION_EMAIL = "send-invitation-email"
SEND_ROLE_CHANGE_NOTIFICATION = "send-role-change-notification"
CREATE_EMPLOYEE_USER = "create-employee-user"
SEND_GROWTH_BONUS_REPORT = "send-growth-bonus-report"
SEND_POA_OTP = "send-poa-otp"
GENERATE_ANNOUNCEMENT_IMAGE = "generate-announcement-image"


class FunctionInvocationError(Exception):
    """Raised when a hosted function fails or cannot be reached."""

    def __init__(self, name: str, message: str, status_code: int | None = None):
        super().__init__(f"{name}: {message}")
        self.name = name
        self.status_code = status_code


def invoke(name: str, body: dict, client: httpx.Client | None = None) -> dict:
    """
    Invoke a named function with a JSON body and return its JSON response.

    Pass `client` to reuse a connection pool or a mocked transport.
    """
    base_url = current_app.config.get("FUNCTIONS_BASE_URL") or ""
    if not base_url and client is None:
        logger.info("Hosted functions disabled; skipping %s", name)
        return {"skipped": True}

    headers = {"Content-Type": "application/json"}
    api_key = current_app.config.get("FUNCTIONS_API_KEY")
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    owns_client = client is None
    if owns_client:
        client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=current_app.config.get("FUNCTIONS_TIMEOUT_SECONDS", 15),
        )

    try:
        logger.info("Invoking hosted function %s", name)
        response = client.post(f"/{name}", json=body, headers=headers)
    except httpx.HTTPError as exc:
        raise FunctionInvocationError(name, f"request failed: {exc}") from exc
    finally:
        if owns_client:
            client.close()

    if response.status_code >= 400:
        raise FunctionInvocationError(
            name,
            f"returned HTTP {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )

    if not response.content:
        return {}
    try:
        payload = response.json()
    except ValueError as exc:
        raise FunctionInvocationError(name, "returned a non-JSON body") from exc

    # Functions report handled failures as {"error": "..."} with HTTP 200
    if isinstance(payload, dict) and payload.get("error"):
        raise FunctionInvocationError(name, str(payload["error"]), status_code=response.status_code)
    return payload if isinstance(payload, dict) else {"data": payload}
