# pyright: reportUnusedFunction=false

from __future__ import annotations

import logging
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import RequestResponseEndpoint
from starlette.middleware.trustedhost import TrustedHostMiddleware

from beertracker.api.router import api_router
from beertracker.core.config import Settings, get_settings, settings
from beertracker.core.logging import configure_logging, request_id_ctx_var
from beertracker.core.version import get_app_version
from beertracker.metrics.prometheus import metrics_payload
from beertracker.services.errors import LedgerError


logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request failed path=%s reason=%s", request.url.path, exc.reason)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.reason})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("invalid request body path=%s errors=%d", request.url.path, len(exc.errors()))
        return JSONResponse(status_code=400, content={"detail": "invalid_input"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled exception path=%s", request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "internal_error"})


def create_app(app_settings: Settings | None = None) -> FastAPI:
    s = app_settings or get_settings()

    configure_logging(s.log_level)

    app_version = get_app_version()
    app = FastAPI(title="beer-tracker-server", version=app_version)

    if s.trusted_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=s.trusted_hosts)

    if s.cors_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=s.cors_allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            max_age=600,
        )

    @app.middleware("http")
    async def request_context_and_security_headers(
        request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-Id") or uuid.uuid4().hex
        token = request_id_ctx_var.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)

        response.headers["X-Request-Id"] = rid
        response.headers["X-Beertracker-Version"] = app_version
        _ = response.headers.setdefault("X-Content-Type-Options", "nosniff")
        _ = response.headers.setdefault("X-Frame-Options", "DENY")
        _ = response.headers.setdefault("Referrer-Policy", "no-referrer")
        return response

    register_exception_handlers(app)

    app.include_router(api_router, prefix=s.api_prefix)

    @app.get("/metrics", include_in_schema=False)
    async def prometheus_metrics() -> Response:
        payload, content_type = metrics_payload()
        return Response(content=payload, media_type=content_type)

    return app


app = create_app(settings)


__all__ = ["app", "create_app"]
