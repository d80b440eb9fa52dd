from __future__ import annotations

import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from cla_gate.adapters.signing_store import InMemorySigningStore
from cla_gate.adapters.sql_signing_store import SqlSigningStore
from cla_gate.routers import health, links, webhooks
from cla_gate.services import repo_config_service, settings
from cla_gate.services.errors import CLAGateError, ErrorKind
from cla_gate.services.gitee_client import GiteeClient
from cla_gate.services.github_client import GitHubClient
from cla_gate.services.ownership_service import StaticOwnershipChecker, load_org_owners

app = FastAPI(title="CLA Gate API", version="1.0.0")
logger = logging.getLogger("cla_gate.api")
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logger.addHandler(handler)
logger.propagate = False
logger.setLevel(logging.INFO)


def _slow_request_ms_threshold() -> float:
    raw = os.getenv("API_SLOW_REQUEST_MS", "1500").strip()
    try:
        return max(25.0, float(raw))
    except ValueError:
        return 1500.0


def _correlation_id(request: Request) -> str:
    for key in ("x-request-id", "x-github-delivery", "x-gitee-timestamp", "cf-ray"):
        value = request.headers.get(key)
        if value:
            return value
    return "none"


def configure_app_state(target: FastAPI) -> None:
    """(Re)build the signing store, ownership checker, repo config and tracker clients from the env."""
    database_url = settings.database_url()
    if database_url:
        target.state.signing_store = SqlSigningStore(database_url)
    else:
        target.state.signing_store = InMemorySigningStore()
    target.state.ownership = StaticOwnershipChecker(target.state.signing_store, load_org_owners())
    target.state.cla_config = repo_config_service.load_configuration()
    target.state.tracker_clients = {
        "github": GitHubClient(token=settings.github_token()),
        "gitee": GiteeClient(token=settings.gitee_token()),
    }


# Configure CORS
allowed_origins_str = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000")
allowed_origins = [origin.strip() for origin in allowed_origins_str.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

configure_app_state(app)


@app.exception_handler(CLAGateError)
async def handle_cla_gate_error(request: Request, exc: CLAGateError) -> JSONResponse:
    if exc.kind == ErrorKind.SYSTEM:
        logger.error("request_failed path=%s code=%s detail=%s", request.url.path, exc.code.value, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/", include_in_schema=False)
async def root():
    """Redirect to API documentation."""
    return RedirectResponse(url="/docs")


app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(links.router, prefix="/api", tags=["links"])
app.include_router(webhooks.router, prefix="/api", tags=["webhooks"])


@app.middleware("http")
async def log_slow_requests(request: Request, call_next):
    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        if elapsed_ms >= _slow_request_ms_threshold() or status_code >= 500:
            logger.warning(
                "slow_api_request method=%s path=%s status=%s elapsed_ms=%.2f correlation=%s",
                request.method,
                request.url.path,
                status_code,
                elapsed_ms,
                _correlation_id(request),
            )
