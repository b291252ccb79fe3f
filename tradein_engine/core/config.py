# tradein_engine/core/config.py
"""
This file holds *global* app settings (things that are not per-request).

Think of it like the "settings panel" for the backend:
- MongoDB connection details
- Currency used for estimates and final prices
- Whether status changes follow the strict transition table
- Where customer notifications are delivered (optional webhook)

If you set environment variables (Linux/macOS: export ..., Windows: setx),
those values override the defaults below.
"""
from __future__ import annotations

import os
from dotenv import load_dotenv
from pydantic import BaseModel

# Loads environment variables from a local ".env" file (if present).
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class AppConfig(BaseModel):
    """
    AppConfig is a structured container for environment-based settings.

    Notes:
    - "strict_transitions" switches from the permissive policy (only terminal
      states are locked) to the explicit (from, to) transition table.
    - "mail_webhook_url" empty means notifications are rendered and logged only.
    """

    # -----------------------------
    # General app settings
    # -----------------------------
    app_name: str = "Trade-In Valuation Backend"
    environment: str = os.getenv("APP_ENV", "dev")  # dev / staging / prod
    debug: bool = _env_bool("DEBUG", "true")

    # -----------------------------
    # MongoDB settings
    # -----------------------------
    mongo_uri: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    mongo_db: str = os.getenv("MONGO_DB", "tradein")

    # -----------------------------
    # Pricing / lifecycle
    # -----------------------------
    currency: str = os.getenv("TRADEIN_CURRENCY", "EUR")
    strict_transitions: bool = _env_bool("TRADEIN_STRICT_TRANSITIONS", "false")

    # Listing defaults for /trade-in/my and /admin/trade-in
    default_page_limit: int = int(os.getenv("TRADEIN_DEFAULT_PAGE_LIMIT", "10"))
    max_page_limit: int = int(os.getenv("TRADEIN_MAX_PAGE_LIMIT", "100"))

    # -----------------------------
    # Notifications
    # -----------------------------
    # If set, rendered status emails are POSTed here as JSON:
    #   MAIL_WEBHOOK_URL=https://mailer.internal/send
    mail_webhook_url: str | None = os.getenv("MAIL_WEBHOOK_URL") or None
    mail_timeout_seconds: float = float(os.getenv("MAIL_TIMEOUT_SECONDS", "10"))

    company_name: str = os.getenv("COMPANY_NAME", "Trade-In Team")
    company_address: str = os.getenv("COMPANY_ADDRESS", "")
    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    @property
    def dashboard_url(self) -> str:
        return f"{self.frontend_url.rstrip('/')}/account/trade-in"


# Global singleton used throughout the app
config = AppConfig()
