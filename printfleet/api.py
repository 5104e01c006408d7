"""FastAPI app exposing the dashboard report.

The caller's Supabase access token is forwarded to the store so row-level
security applies to every read. One reporter is kept per user so that the
last good report survives a failed refresh.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from fastapi import FastAPI, HTTPException, Request

from .access import AccessContext, AccessDenied, AccessPolicy, Screen
from .config import ReportSettings
from .reporting import DashboardReporter, ReportError
from .supabase_store import FetchFailure, SupabaseStore

app = FastAPI(title="printfleet dashboard API")
_reporters: dict[str, DashboardReporter] = {}
_policy = AccessPolicy()
logger = logging.getLogger(__name__)


def _settings() -> ReportSettings:
    try:
        return ReportSettings.from_env()
    except ValueError as e:
        logger.error("api.settings.invalid", extra={"error": str(e)})
        raise HTTPException(status_code=500, detail="service is not configured")


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="missing bearer token")
    return token.strip()


async def _session(request: Request) -> tuple[AccessContext, str, ReportSettings]:
    """Authenticate the caller and resolve their capabilities once."""
    token = _bearer_token(request)
    settings = _settings()
    store = SupabaseStore.from_settings(settings, access_token=token)
    try:
        profile = await store.get_profile()
    except FetchFailure as e:
        if e.status_code in (401, 403):
            raise HTTPException(status_code=401, detail="invalid access token")
        raise HTTPException(status_code=502, detail=str(e))
    return _policy.context_for(profile.id, profile.role), token, settings


def _reporter_for(ctx: AccessContext, token: str, settings: ReportSettings) -> DashboardReporter:
    reporter = _reporters.get(ctx.user_id)
    if reporter is None:
        reporter = DashboardReporter.from_settings(settings, access_token=token)
        _reporters[ctx.user_id] = reporter
    else:
        # Tokens rotate; keep the reporter (and its last report) but read as the new token
        reporter.store = SupabaseStore.from_settings(settings, access_token=token)
    return reporter


def _require(ctx: AccessContext, screen: Screen) -> None:
    try:
        ctx.require(screen)
    except AccessDenied as e:
        raise HTTPException(status_code=403, detail=str(e))


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok", "env": os.getenv("ENVIRONMENT", "dev")}


@app.get("/me/screens")
async def my_screens(request: Request) -> dict[str, Any]:
    ctx, _, _ = await _session(request)
    return {
        "user_id": ctx.user_id,
        "role": ctx.role,
        "screens": sorted(s.value for s in ctx.screens),
    }


@app.get("/dashboard")
async def get_dashboard(request: Request) -> dict[str, Any]:
    """Return the caller's latest report, computing the first one on demand."""
    ctx, token, settings = await _session(request)
    _require(ctx, Screen.DASHBOARD)
    reporter = _reporter_for(ctx, token, settings)
    report = reporter.latest
    if report is None:
        try:
            report = await reporter.refresh()
        except ReportError as e:
            raise HTTPException(status_code=502, detail=str(e))
    return {
        "report": report.model_dump(mode="json"),
        "last_error": reporter.last_error,
    }


@app.post("/dashboard/refresh")
async def refresh_dashboard(request: Request) -> dict[str, Any]:
    ctx, token, settings = await _session(request)
    _require(ctx, Screen.DASHBOARD)
    reporter = _reporter_for(ctx, token, settings)
    try:
        report = await reporter.refresh()
    except ReportError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"report": report.model_dump(mode="json"), "last_error": None}


# Lambda handler (via Mangum) when running inside AWS Lambda
if os.getenv("AWS_LAMBDA_FUNCTION_NAME"):
    # Lazy import to avoid hard dependency outside Lambda runtime
    from mangum import Mangum  # type: ignore

    handler = Mangum(app)
