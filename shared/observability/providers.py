from typing import Optional
from urllib.parse import urlparse

from grpc import Compression

# OpenTelemetry
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

# Logs are still beta in the SDK
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import ConsoleLogRecordExporter, SimpleLogRecordProcessor
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter

from shared.errors import ExporterConfigError

EXPORTERS = ("stdout", "otlp")

_COMPRESSION = {
    "gzip": Compression.Gzip,
    "deflate": Compression.Deflate,
    "none": Compression.NoCompression,
}


def validate_endpoint(endpoint: Optional[str]) -> str:
    """Return the endpoint if it is a usable http(s) URL, else raise."""
    if not endpoint or not endpoint.strip():
        raise ExporterConfigError("Exporter endpoint is empty")
    endpoint = endpoint.strip()
    parsed = urlparse(endpoint)
    if parsed.scheme not in ("http", "https"):
        raise ExporterConfigError(f"Exporter endpoint '{endpoint}' must use http or https")
    try:
        port = parsed.port
    except ValueError as e:
        raise ExporterConfigError(f"Exporter endpoint '{endpoint}' has an invalid port: {e}") from e
    if not parsed.hostname:
        raise ExporterConfigError(f"Exporter endpoint '{endpoint}' has no host")
    if port == 0:
        raise ExporterConfigError(f"Exporter endpoint '{endpoint}' has an invalid port: 0")
    return endpoint


def parse_compression(name: Optional[str]) -> Optional[Compression]:
    if name is None:
        return None
    try:
        return _COMPRESSION[name.strip().lower()]
    except KeyError:
        raise ExporterConfigError(
            f"Unsupported compression '{name}', expected one of {sorted(_COMPRESSION)}"
        ) from None


def _check_kind(exporter: str) -> None:
    if exporter not in EXPORTERS:
        raise ExporterConfigError(f"Unknown exporter '{exporter}', expected one of {EXPORTERS}")


def build_resource(service_name: str, service_version: Optional[str] = None) -> Resource:
    attributes = {SERVICE_NAME: service_name}
    if service_version:
        attributes[SERVICE_VERSION] = service_version
    return Resource.create(attributes)


def build_log_provider(
    service_name: str,
    exporter: str = "stdout",
    endpoint: Optional[str] = None,
    compression: Optional[str] = None,
    resource: Optional[Resource] = None,
) -> LoggerProvider:
    """
    Log provider with one exporter in simple mode (one export per record).

    The stdout exporter does no I/O here. The OTLP exporter validates its
    endpoint first so a bad collector URL stops startup.
    """
    _check_kind(exporter)
    resource = resource or build_resource(service_name)

    if exporter == "otlp":
        log_exporter = OTLPLogExporter(
            endpoint=validate_endpoint(endpoint),
            compression=parse_compression(compression),
        )
    else:
        log_exporter = ConsoleLogRecordExporter()

    provider = LoggerProvider(resource=resource)
    provider.add_log_record_processor(SimpleLogRecordProcessor(log_exporter))
    return provider


def build_trace_provider(
    service_name: str,
    endpoint: Optional[str],
    compression: Optional[str] = "gzip",
    exporter: str = "otlp",
    resource: Optional[Resource] = None,
) -> TracerProvider:
    """
    Trace provider exporting each finished span immediately.

    Installs the provider as the global tracer source, so trace.get_tracer()
    anywhere in the process resolves through it.
    """
    _check_kind(exporter)
    resource = resource or build_resource(service_name)

    if exporter == "otlp":
        span_exporter = OTLPSpanExporter(
            endpoint=validate_endpoint(endpoint),
            compression=parse_compression(compression),
        )
    else:
        span_exporter = ConsoleSpanExporter(service_name=service_name)

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    trace.set_tracer_provider(provider)
    return provider
