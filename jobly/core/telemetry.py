from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Any

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from jobly.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s span_id=%(span_id)s %(message)s"
AUTHENTICATED_ATTRIBUTE = "jobly.request.authenticated"

logger = logging.getLogger(__name__)

_default_record_factory = logging.getLogRecordFactory()
_correlation_installed = False


@dataclass(slots=True)
class TelemetryRuntime:
    app: FastAPI
    provider: TracerProvider | None = None

    @property
    def enabled(self) -> bool:
        return self.provider is not None


def configure_api_logging(settings: Settings) -> None:
    """Route API logs through one handler, tagged with the active trace and span."""
    if settings.otel_log_correlation:
        _install_log_correlation()
    else:
        _install_blank_correlation()
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)


def setup_api_telemetry(app: FastAPI, settings: Settings) -> TelemetryRuntime:
    if not settings.otel_enabled:
        return TelemetryRuntime(app=app)

    provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME: settings.otel_service_name,
                DEPLOYMENT_ENVIRONMENT: settings.environment,
            }
        ),
        sampler=ParentBased(TraceIdRatioBased(settings.otel_trace_sample_ratio)),
    )
    endpoint = _exporter_endpoint(settings)
    if endpoint:
        headers = _parse_headers(settings.otel_exporter_otlp_headers or os.getenv("OTEL_EXPORTER_OTLP_HEADERS"))
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, headers=headers or None)))
    else:
        logger.info("no OTLP endpoint configured; spans for %s stay in-process", settings.otel_service_name)

    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=provider,
        excluded_urls=settings.otel_excluded_urls,
        server_request_hook=mark_authenticated_request,
    )
    return TelemetryRuntime(app=app, provider=provider)


def shutdown_api_telemetry(runtime: TelemetryRuntime) -> None:
    """Flush spans and detach instrumentation; safe to call more than once."""
    provider = runtime.provider
    if provider is None:
        return
    runtime.provider = None
    FastAPIInstrumentor.uninstrument_app(runtime.app)
    provider.force_flush()
    provider.shutdown()


def mark_authenticated_request(span: Any, scope: dict[str, Any]) -> None:
    # Only the presence of a credential is recorded, never its value.
    if span is None or not span.is_recording():
        return
    has_credential = any(name.lower() == b"authorization" for name, _ in scope.get("headers") or ())
    span.set_attribute(AUTHENTICATED_ATTRIBUTE, has_credential)


def _exporter_endpoint(settings: Settings) -> str | None:
    return (
        settings.otel_exporter_otlp_endpoint
        or os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
        or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    )


def _parse_headers(raw: str | None) -> dict[str, str]:
    """Parse ``k1=v1,k2=v2``; entries without ``=`` or with an empty key are skipped."""
    pairs = (item.partition("=") for item in (raw or "").split(","))
    return {key.strip(): value.strip() for key, separator, value in pairs if separator and key.strip()}


def _install_log_correlation() -> None:
    global _correlation_installed
    if _correlation_installed:
        return

    def record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
        record = _default_record_factory(*args, **kwargs)
        context = trace.get_current_span().get_span_context()
        record.trace_id = trace.format_trace_id(context.trace_id) if context.is_valid else "-"
        record.span_id = trace.format_span_id(context.span_id) if context.is_valid else "-"
        return record

    logging.setLogRecordFactory(record_factory)
    _correlation_installed = True


def _install_blank_correlation() -> None:
    def record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
        record = _default_record_factory(*args, **kwargs)
        record.trace_id = "-"
        record.span_id = "-"
        return record

    if not _correlation_installed:
        logging.setLogRecordFactory(record_factory)
