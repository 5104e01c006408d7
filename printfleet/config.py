"""Environment-backed settings for the reporting engine.

Environment:
- SUPABASE_URL: store base URL (required)
- SUPABASE_ANON_KEY: store API key; when unset, SUPABASE_KEY_SECRET names an
  AWS Secrets Manager secret holding it
- DASHBOARD_TIMEZONE, DASHBOARD_LOCALE, DASHBOARD_WINDOW_MONTHS,
  DASHBOARD_TOP_N: report shape
- SUPABASE_PAGE_SIZE, SUPABASE_TIMEOUT: store paging and timeouts. A server
  max-rows cap below the page size is fine: paging follows Content-Range

Settings are read at call time (tests set env within test functions).
"""

from __future__ import annotations

import os
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from .analytics import MONTH_LABELS
from .dates import get_zone
from .secrets import get_secret_string


def _get_supabase_url() -> str:
    """Return the store URL from environment.

    Raises:
        ValueError: if SUPABASE_URL is unset.
    """

    url = os.environ.get("SUPABASE_URL", "").strip()
    if not url:
        raise ValueError("SUPABASE_URL environment variable is required")
    return url.rstrip("/")


def _get_supabase_key() -> str:
    """Return the store API key from env, falling back to Secrets Manager."""
    key = os.environ.get("SUPABASE_ANON_KEY", "").strip()
    if key:
        return key
    secret_name = os.environ.get("SUPABASE_KEY_SECRET", "").strip()
    if not secret_name:
        raise ValueError(
            "SUPABASE_ANON_KEY or SUPABASE_KEY_SECRET environment variable is required"
        )
    return get_secret_string(secret_name).strip()


class ReportSettings(BaseModel):
    """Resolved configuration for one reporter/store."""

    supabase_url: str = Field(..., min_length=1)
    supabase_key: str = Field(..., min_length=1)
    timezone: str = "America/Lima"
    locale: str = "es"
    window_months: int = Field(default=12, ge=1)
    top_n: int = Field(default=5, ge=0)
    page_size: int = Field(default=1000, ge=1)
    timeout: float = Field(default=10.0, gt=0)

    @field_validator("timezone")
    @classmethod
    def known_zone(cls, value: str) -> str:
        try:
            get_zone(value)
        except ZoneInfoNotFoundError:
            raise ValueError(f"Unknown timezone: {value}") from None
        return value

    @field_validator("locale")
    @classmethod
    def known_locale(cls, value: str) -> str:
        if value not in MONTH_LABELS:
            raise ValueError(f"Unsupported locale: {value}")
        return value

    @property
    def zone(self) -> ZoneInfo:
        return get_zone(self.timezone)

    def now(self) -> datetime:
        """Current time in the report timezone."""
        return datetime.now(self.zone)

    @classmethod
    def from_env(cls) -> "ReportSettings":
        """Build settings from environment variables."""
        return cls(
            supabase_url=_get_supabase_url(),
            supabase_key=_get_supabase_key(),
            timezone=os.getenv("DASHBOARD_TIMEZONE", "America/Lima"),
            locale=os.getenv("DASHBOARD_LOCALE", "es"),
            window_months=int(os.getenv("DASHBOARD_WINDOW_MONTHS", "12")),
            top_n=int(os.getenv("DASHBOARD_TOP_N", "5")),
            page_size=int(os.getenv("SUPABASE_PAGE_SIZE", "1000")),
            timeout=float(os.getenv("SUPABASE_TIMEOUT", "10")),
        )
