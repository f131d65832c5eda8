"""Shared fixtures: in-memory telemetry so tests never touch a collector."""

import io
import socket

import pytest
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import InMemoryLogRecordExporter, SimpleLogRecordProcessor
from opentelemetry.sdk.trace import TracerProvider

from shared.config.settings import Settings
from shared.observability.filters import console_directives, otel_log_directives
from shared.observability.layers import compose_and_install, reset_subscriber_for_tests


@pytest.fixture(autouse=True)
def clean_subscriber():
    """Every test starts and ends without an installed subscriber."""
    reset_subscriber_for_tests()
    yield
    reset_subscriber_for_tests()


@pytest.fixture
def log_exporter() -> InMemoryLogRecordExporter:
    return InMemoryLogRecordExporter()


@pytest.fixture
def log_provider(log_exporter):
    provider = LoggerProvider(shutdown_on_exit=False)
    provider.add_log_record_processor(SimpleLogRecordProcessor(log_exporter))
    yield provider
    provider.shutdown()


@pytest.fixture
def trace_provider():
    provider = TracerProvider(shutdown_on_exit=False)
    yield provider
    provider.shutdown()


@pytest.fixture
def console_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def telemetry(log_provider, trace_provider, console_stream):
    """The real pipeline with default filters, sinks captured in memory."""
    return compose_and_install(
        log_provider,
        trace_provider,
        otel_log_directives(),
        console_directives(),
        stream=console_stream,
    )


@pytest.fixture
def offline_settings() -> Settings:
    """Settings whose exporters write to stdout instead of a collector."""
    return Settings(log_exporter="stdout", trace_exporter="stdout")


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def occupied_port():
    """A port with a live listener on it for the duration of the test."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("0.0.0.0", 0))
        s.listen(1)
        yield s.getsockname()[1]


@pytest.fixture
def exported_bodies(log_exporter):
    """Bodies of every record the bridge layer has exported so far."""

    def _bodies() -> list:
        return [item.log_record.body for item in log_exporter.get_finished_logs()]

    return _bodies
