from typing import IO, Optional

import structlog
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

# OpenTelemetry
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from shared.config.settings import Settings
from shared.errors import FatalStartupError
from shared.observability.filters import DirectiveList, console_directives, otel_log_directives
from shared.observability.layers import TelemetryHandle, compose_and_install
from shared.observability.providers import build_log_provider, build_resource, build_trace_provider

logger = structlog.get_logger(__name__)


# 1. Filters: defaults unless a directive string is configured
def configure_filters(settings: Settings):
    log_filter = (
        DirectiveList.parse(settings.otel_log_filter)
        if settings.otel_log_filter
        else otel_log_directives()
    )
    fmt_filter = (
        DirectiveList.parse(settings.console_log_filter)
        if settings.console_log_filter
        else console_directives()
    )
    return log_filter, fmt_filter


# 2. Logs + traces: providers, then the one global subscriber
def configure_logging_and_tracing(
    settings: Settings, stream: Optional[IO[str]] = None
) -> TelemetryHandle:
    # Bad directives fail before any exporter exists
    log_filter, fmt_filter = configure_filters(settings)

    resource = build_resource(settings.service_name, settings.service_version)
    log_provider = build_log_provider(
        settings.service_name,
        exporter=settings.log_exporter,
        endpoint=settings.otlp_endpoint,
        compression=settings.otlp_compression,
        resource=resource,
    )
    built = [log_provider]
    try:
        trace_provider = build_trace_provider(
            settings.service_name,
            settings.otlp_endpoint,
            compression=settings.otlp_compression,
            exporter=settings.trace_exporter,
            resource=resource,
        )
        built.append(trace_provider)
        return compose_and_install(log_provider, trace_provider, log_filter, fmt_filter, stream)
    except FatalStartupError:
        for provider in built:
            provider.shutdown()
        raise


# 3. Request spans for every route except the probes
def configure_tracing(app: FastAPI, telemetry: TelemetryHandle):
    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=telemetry.trace_provider,
        excluded_urls="/health,/metrics",
    )


# 4. Prometheus request metrics plus the ota_* counters at /metrics
def configure_metrics(app: FastAPI):
    Instrumentator().instrument(app).expose(app, include_in_schema=False)


# --- THE MASTER SETUP FUNCTIONS ---
def setup_observability(settings: Settings, stream: Optional[IO[str]] = None) -> TelemetryHandle:
    """
    Bootstraps logging and tracing for the process.
    Call this once, before anything else logs; a second call raises
    SubscriberInstallError.
    """
    telemetry = configure_logging_and_tracing(settings, stream)
    logger.info(
        "telemetry_installed",
        service=settings.service_name,
        log_exporter=settings.log_exporter,
        trace_exporter=settings.trace_exporter,
        layers=[layer.name for layer in telemetry.layers],
    )
    return telemetry


def instrument_app(app: FastAPI, telemetry: TelemetryHandle):
    configure_tracing(app, telemetry)
    configure_metrics(app)
    app.state.telemetry = telemetry
