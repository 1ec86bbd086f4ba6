# backend/salonportal/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/salonportal.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///salonportal.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Login sessions
    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_MINUTES = int(os.environ.get("SESSION_IDLE_TIMEOUT_MINUTES", "120"))
    SESSION_RETENTION_DAYS = int(os.environ.get("SESSION_RETENTION_DAYS", "30"))

    # Public portal address used in onboarding links
    PORTAL_BASE_URL = os.environ.get("PORTAL_BASE_URL", "https://har1portalen.no")
    INVITATION_TTL_DAYS = int(os.environ.get("INVITATION_TTL_DAYS", "7"))

    # Hosted functions (email, onboarding, image generation).
    # Empty base URL disables outbound calls.
    FUNCTIONS_BASE_URL = os.environ.get("FUNCTIONS_BASE_URL", "")
    FUNCTIONS_API_KEY = os.environ.get("FUNCTIONS_API_KEY", "")
    FUNCTIONS_TIMEOUT_SECONDS = float(os.environ.get("FUNCTIONS_TIMEOUT_SECONDS", "15"))

    HUBSPOT_CLIENT_ID = os.environ.get("HUBSPOT_CLIENT_ID", "")
    HUBSPOT_CLIENT_SECRET = os.environ.get("HUBSPOT_CLIENT_SECRET", "")
    HUBSPOT_REDIRECT_URI = os.environ.get("HUBSPOT_REDIRECT_URI", "")
    # EU data centre
    HUBSPOT_AUTHORIZE_URL = os.environ.get(
        "HUBSPOT_AUTHORIZE_URL", "https://app-eu1.hubspot.com/oauth/authorize"
    )
    HUBSPOT_API_BASE_URL = os.environ.get("HUBSPOT_API_BASE_URL", "https://api.hubapi.com")

    POA_OTP_TTL_MINUTES = int(os.environ.get("POA_OTP_TTL_MINUTES", "15"))
    POA_OTP_MAX_ATTEMPTS = int(os.environ.get("POA_OTP_MAX_ATTEMPTS", "5"))

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    ]

    # httpx transport override for the HubSpot client; tests inject a MockTransport
    HUBSPOT_TRANSPORT = None
