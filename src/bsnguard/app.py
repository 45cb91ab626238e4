"""bsnguard — FastAPI gateway application.

The boundary between the document-sharing network and storage.
Transport tokens come in, pseudonyms are stored, fresh tokens go out;
the BSN itself never crosses.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from bsnguard import __version__
from bsnguard.backends import make_backend
from bsnguard.config import GatewayConfig, load_config
from bsnguard.errors import (
    BackendUnavailableError,
    CodecError,
    CustodianMismatchError,
    ExchangeRejectedError,
    GatewayError,
    NotFoundError,
    RequestRejectedError,
)
from bsnguard.interface import PseudonymBackend
from bsnguard.pipeline import InterceptionPipeline
from bsnguard.routes import meta, resources
from bsnguard.store import ResourceStore

logger = logging.getLogger("bsnguard")
audit_logger = logging.getLogger("bsnguard.audit")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: build backend and pipeline. Shutdown: release the backend."""
    config: GatewayConfig = app.state.config
    if getattr(app.state, "backend", None) is None:
        app.state.backend = make_backend(config)
    backend: PseudonymBackend = app.state.backend
    app.state.pipeline = InterceptionPipeline(backend, config)
    logger.info("bsnguard gateway ready (backend: %s)", backend.name)
    yield
    backend.close()
    logger.info("bsnguard gateway shut down")


def register_exception_handlers(app: FastAPI) -> None:
    """Map gateway errors onto HTTP status codes."""

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(CustodianMismatchError)
    async def custodian_handler(request: Request, exc: CustodianMismatchError):
        return JSONResponse(status_code=403, content={"detail": str(exc)})

    @app.exception_handler(RequestRejectedError)
    async def rejected_request_handler(request: Request, exc: RequestRejectedError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(CodecError)
    async def codec_handler(request: Request, exc: CodecError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(BackendUnavailableError)
    async def unavailable_handler(request: Request, exc: BackendUnavailableError):
        logger.error("Pseudonym backend unavailable: %s", exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(ExchangeRejectedError)
    async def rejected_handler(request: Request, exc: ExchangeRejectedError):
        logger.error("Pseudonym exchange rejected request: %s", exc)
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.exception_handler(GatewayError)
    async def gateway_handler(request: Request, exc: GatewayError):
        logger.exception("Unhandled gateway error")
        return JSONResponse(status_code=500, content={"detail": str(exc)})


def create_app(
    config: GatewayConfig | None = None,
    backend: PseudonymBackend | None = None,
    store: ResourceStore | None = None,
) -> FastAPI:
    """Application factory.

    ``backend`` and ``store`` default to the ones named by ``config``; tests
    pass their own.
    """
    if config is None:
        config = load_config()

    app = FastAPI(
        title="bsnguard",
        description="BSN pseudonymisation gateway for document sharing",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.backend = backend
    app.state.store = store or ResourceStore()
    # Also built in lifespan; set here so the app works without a lifespan run.
    if backend is not None:
        app.state.pipeline = InterceptionPipeline(backend, config)

    register_exception_handlers(app)

    # ── Audit middleware ──────────────────────────────────────

    @app.middleware("http")
    async def audit_log(request: Request, call_next):
        start = time.monotonic()
        response = await call_next(request)
        elapsed = time.monotonic() - start
        audit_logger.info(
            "%s %s %d %.3fs audience=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed,
            "yes" if request.headers.get(config.audience_header) else "no",
        )
        return response

    # ── Routers ───────────────────────────────────────────────

    app.include_router(meta.router)
    app.include_router(resources.router)

    return app
