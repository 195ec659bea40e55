from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from threading import Lock
from typing import Any

from fastapi import FastAPI

from upload_api.core.config import Settings

logger = logging.getLogger("upload.api")

TRACER_NAME = "upload_api"


@dataclass(frozen=True)
class OTelSetupResult:
    enabled: bool
    reason: str
    shutdown: Callable[[], None] | None = None


# The SDK allows one global provider per process; every app built here shares it.
_provider_lock = Lock()
_provider: Any | None = None
_tracer: Any | None = None


@contextmanager
def traced_span(name: str, **attributes: Any) -> Iterator[Any]:
    """Wrap a pipeline step in a span. A no-op until tracing is enabled."""
    tracer = _tracer
    if tracer is None:
        yield None
        return
    attrs = {f"upload.{k}": v for k, v in attributes.items() if v is not None}
    with tracer.start_as_current_span(name, attributes=attrs) as span:
        yield span


def setup_otel(*, app: FastAPI, settings: Settings) -> OTelSetupResult:
    if not settings.ENABLE_OTEL_TRACING:
        return OTelSetupResult(enabled=False, reason="disabled")

    endpoint = settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT.strip()
    if not endpoint:
        logger.warning("otel.skipped reason=missing_endpoint")
        return OTelSetupResult(enabled=False, reason="missing_endpoint")

    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    except ImportError as exc:
        logger.warning("otel.skipped reason=dependency_missing error=%s", exc)
        return OTelSetupResult(enabled=False, reason="dependency_missing")

    global _provider, _tracer
    with _provider_lock:
        if _provider is None:
            _provider = _build_provider(settings=settings, endpoint=endpoint)
            _tracer = _provider.get_tracer(TRACER_NAME, settings.VERSION)

    # Health probes and scrapes stay out of traces; upload and retrieval spans
    # nest under the request span created here.
    FastAPIInstrumentor.instrument_app(
        app, tracer_provider=_provider, excluded_urls=settings.OTEL_EXCLUDED_URLS
    )
    logger.info(
        "otel.enabled service=%s endpoint=%s sample_ratio=%s",
        settings.OTEL_SERVICE_NAME,
        endpoint,
        settings.OTEL_TRACE_SAMPLE_RATIO,
    )

    def _shutdown() -> None:
        with suppress(Exception):
            FastAPIInstrumentor.uninstrument_app(app)
        with suppress(Exception):
            _provider.force_flush()

    return OTelSetupResult(enabled=True, reason="enabled", shutdown=_shutdown)


def _build_provider(*, settings: Settings, endpoint: str) -> Any:
    from opentelemetry import trace
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
    from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

    provider = TracerProvider(
        resource=Resource.create(
            {SERVICE_NAME: settings.OTEL_SERVICE_NAME, SERVICE_VERSION: settings.VERSION}
        ),
        sampler=ParentBased(TraceIdRatioBased(settings.OTEL_TRACE_SAMPLE_RATIO)),
    )
    exporter = OTLPSpanExporter(
        endpoint=endpoint, headers=_parse_otlp_headers(settings.OTEL_EXPORTER_OTLP_HEADERS) or None
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    return provider


def _parse_otlp_headers(raw: str) -> dict[str, str]:
    """Parse ``k1=v1,k2=v2`` (the OTEL_EXPORTER_OTLP_HEADERS format)."""
    headers: dict[str, str] = {}
    for piece in filter(None, (p.strip() for p in raw.split(","))):
        name, _, value = (s.strip() for s in piece.partition("="))
        if name and value:
            headers[name] = value
        else:
            logger.warning("otel.header_ignored token=%s", piece)
    return headers
