# ==============================
# FastAPI App Factory
# ==============================
from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config.schema import Settings
from core.dataset.facade import GENERIC_ERROR_MESSAGE, Dataset
from core.logging.logger import LogContext, with_context
from core.logging.metrics import Metrics
from core.query.engine import use_system_collation
from gateway.api import deps
from gateway.api.routes_data import ENDPOINTS, router as data_router

APP_NAME = "csv2api"
APP_VERSION = "1.0.0"

logger = logging.getLogger("csv2api.http")


def _envelope(code: str, message: str, details: Dict[str, Any] | None = None) -> Dict[str, Any]:
    return {
        "ok": False,
        "data": None,
        "error": {"code": code, "message": message, "details": details or {}},
        "meta": {},
    }


def create_app(
    *,
    dataset: Optional[Dataset] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    settings = settings or deps.get_settings()
    use_system_collation()
    app = FastAPI(title=APP_NAME, version=APP_VERSION)
    app.state.started_at = time.time()
    app.state.metrics = dataset.metrics if dataset is not None else deps.get_metrics()

    if settings.app.cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
        request_id = uuid.uuid4().hex[:8]
        metrics: Metrics = request.app.state.metrics
        log = with_context(logger, LogContext(request_id=request_id, route=request.url.path))
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        metrics.inc("http.requests")
        metrics.observe_ms("http.latency", elapsed_ms)
        response.headers["X-Request-ID"] = request_id
        log.info(
            "%s %s %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={"status": response.status_code, "latency_ms": round(elapsed_ms, 3)},
        )
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if isinstance(exc.detail, dict) and "ok" in exc.detail:
            return JSONResponse(status_code=exc.status_code, content=exc.detail)
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            body = _envelope(
                "endpoint_not_found",
                f"Route {request.method} {request.url.path} does not exist",
                {"available_endpoints": list(ENDPOINTS)},
            )
        else:
            body = _envelope("http_error", str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def request_invalid(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_envelope("bad_request", "Invalid request parameters", {"errors": jsonable_encoder(exc.errors())}),
        )

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled error on %s", request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_envelope("internal_error", GENERIC_ERROR_MESSAGE),
        )

    app.include_router(data_router)
    if dataset is not None:
        app.dependency_overrides[deps.get_dataset] = lambda: dataset
    return app
