from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from upload_api.core.config import Settings, get_settings
from upload_api.core.errors import UploadServiceError
from upload_api.core.ids import UuidIdentifierGenerator
from upload_api.core.logging_config import configure_logging
from upload_api.core.metrics import observe_http_request
from upload_api.core.middleware import (
    apply_security_headers,
    build_request_id,
    log_request_completion,
    now_ts,
    request_id_ctx,
    service_error_response,
)
from upload_api.core.otel import setup_otel
from upload_api.routers.blobs import router as blobs_router
from upload_api.routers.files import router as files_router
from upload_api.routers.health import router as health_router
from upload_api.services.images import ImageTransformer
from upload_api.storage.factory import build_blob_store

logger = logging.getLogger("upload.api")


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    shutdown = getattr(app.state, "otel_shutdown", None)
    if shutdown is not None:
        shutdown()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="File Upload API", version=settings.VERSION, lifespan=_lifespan)
    app.state.settings = settings
    app.state.blob_store = build_blob_store(settings)
    app.state.image_transformer = ImageTransformer()
    app.state.id_generator = UuidIdentifierGenerator()

    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_security_headers_and_request_context(request, call_next):  # type: ignore[no-untyped-def]
        request_id = build_request_id(request, header_name=settings.REQUEST_ID_HEADER)
        token = request_id_ctx.set(request_id)
        start_ts = now_ts()
        method = request.method
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[settings.REQUEST_ID_HEADER] = request_id
            apply_security_headers(response, settings=settings)
            return response
        finally:
            route = request.scope.get("route")
            path = getattr(route, "path", None) or request.url.path
            duration_ms = int((now_ts() - start_ts) * 1000)
            log_request_completion(
                request_id=request_id,
                method=method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=duration_ms,
            )
            if settings.ENABLE_PROMETHEUS_METRICS:
                observe_http_request(
                    method=method,
                    path=path,
                    status_code=status_code,
                    duration_ms=duration_ms,
                )
            request_id_ctx.reset(token)

    @app.exception_handler(UploadServiceError)
    async def handle_service_error(request: Request, exc: UploadServiceError) -> Response:
        if exc.status_code >= 500:
            logger.warning(
                "request.failed path=%s error=%s message=%s", request.url.path, exc.code, exc.message
            )
        return service_error_response(exc)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> Response:
        logger.error("request.unhandled path=%s", request.url.path, exc_info=exc)
        return service_error_response(UploadServiceError())

    if settings.ENABLE_PROMETHEUS_METRICS:

        @app.get(settings.PROMETHEUS_METRICS_PATH, include_in_schema=False)
        def metrics() -> Response:
            return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    otel = setup_otel(app=app, settings=settings)
    app.state.otel_tracing_enabled = otel.enabled
    app.state.otel_tracing_reason = otel.reason
    app.state.otel_shutdown = otel.shutdown

    app.include_router(health_router)
    app.include_router(files_router)
    app.include_router(blobs_router)
    return app


def get_app() -> FastAPI:
    # uvicorn factory target; settings are read from the environment at startup.
    return create_app()
