"""Optional OpenTelemetry tracing.

Nothing here runs unless ``OTEL_ENABLED`` is set. The SDK, the OTLP exporter
and the instrumentation packages ship in the ``otel`` extra.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable

from opentelemetry import trace

from app.config import settings
from app.logging import get_logger

logger = get_logger(__name__)


def _instrument_fastapi(module, app) -> None:
    module.FastAPIInstrumentor.instrument_app(app)


def _instrument_sqlalchemy(module, app) -> None:
    from app.db import get_engine

    module.SQLAlchemyInstrumentor().instrument(engine=get_engine())


def _instrument_redis(module, app) -> None:
    # Only the rate limiter talks to Redis
    if settings.redis_url:
        module.RedisInstrumentor().instrument()


_INSTRUMENTATIONS: tuple[tuple[str, str, Callable], ...] = (
    ("fastapi", "opentelemetry.instrumentation.fastapi", _instrument_fastapi),
    ("sqlalchemy", "opentelemetry.instrumentation.sqlalchemy", _instrument_sqlalchemy),
    ("redis", "opentelemetry.instrumentation.redis", _instrument_redis),
)


def _install_provider() -> bool:
    try:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError:
        logger.exception("otel_sdk_missing install the 'otel' extra to enable tracing")
        return False

    provider = TracerProvider(resource=Resource.create({"service.name": settings.otel_service_name}))
    endpoint = settings.otel_exporter_endpoint
    exporter = OTLPSpanExporter(endpoint=f"{endpoint.rstrip('/')}/v1/traces") if endpoint else OTLPSpanExporter()
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    return True


def setup_otel(app) -> bool:
    """Install the tracer provider and instrument the app.

    Each instrumentation that cannot be loaded is logged and skipped.
    Returns True when tracing was set up.
    """
    if not settings.otel_enabled:
        return False
    if not _install_provider():
        return False

    for name, module_path, instrument in _INSTRUMENTATIONS:
        try:
            instrument(importlib.import_module(module_path), app)
        except Exception:
            logger.warning("otel_instrumentation_unavailable name=%s", name, exc_info=True)
            continue
        logger.info("otel_instrumented name=%s", name)

    logger.info("otel_enabled service=%s", settings.otel_service_name)
    return True
