"""Health and readiness endpoints."""

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

router = APIRouter()

HEALTH_VERSION = "1.0.0"
SERVICE_STARTED_AT = datetime.now(timezone.utc)


def _iso_utc(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _uptime_seconds(now: datetime) -> int:
    return max(0, int((now - SERVICE_STARTED_AT).total_seconds()))


class HealthResponse(BaseModel):
    """GET /api/health response."""

    model_config = ConfigDict(extra="forbid")
    status: Annotated[str, Field(description="Always 'ok'")]
    version: Annotated[str, Field(description="Semver MAJOR.MINOR.PATCH")]
    timestamp: Annotated[str, Field(description="ISO8601 UTC")]
    started_at: Annotated[str, Field(description="ISO8601 UTC when service process started")]
    uptime_seconds: Annotated[int, Field(description="Seconds service has been up")]


class ReadyResponse(BaseModel):
    """GET /api/ready response."""

    model_config = ConfigDict(extra="forbid")
    status: Annotated[str, Field(description="Always 'ready'")]
    signing_store: Annotated[str, Field(description="Signing store backend class")]
    configured_repos: Annotated[int, Field(description="Entries in the repo CLA configuration")]


@router.get("/ready", response_model=ReadyResponse)
async def ready(request: Request):
    """Readiness check. Returns 200 when the signing store and repo config are loaded."""
    store = getattr(request.app.state, "signing_store", None)
    config = getattr(request.app.state, "cla_config", None)
    if store is None or config is None:
        raise HTTPException(status_code=503, detail="not ready")
    return ReadyResponse(
        status="ready",
        signing_store=type(store).__name__,
        configured_repos=len(config.repos),
    )


@router.get("/health", response_model=HealthResponse)
async def health():
    """Return API health status."""
    now = datetime.now(timezone.utc)
    return HealthResponse(
        status="ok",
        version=HEALTH_VERSION,
        timestamp=_iso_utc(now),
        started_at=_iso_utc(SERVICE_STARTED_AT),
        uptime_seconds=_uptime_seconds(now),
    )
