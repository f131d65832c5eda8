import logging
import sys
import threading
import warnings
from dataclasses import dataclass, field
from typing import IO, List, Optional, Sequence

import structlog
from structlog.processors import CallsiteParameter

# OpenTelemetry
from opentelemetry import trace
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider

from shared.errors import SubscriberInstallError
from shared.observability.filters import DirectiveFilter, DirectiveList


@dataclass(frozen=True)
class Layer:
    """A sink (logging handler) and the directives deciding what reaches it."""

    name: str
    handler: logging.Handler
    directives: DirectiveList


def _filtered(name: str, handler: logging.Handler, directives: DirectiveList) -> Layer:
    handler.addFilter(DirectiveFilter(directives))
    return Layer(name=name, handler=handler, directives=directives)


def bridge_layer(log_provider: LoggerProvider, directives: DirectiveList) -> Layer:
    """Forward stdlib log records into the OpenTelemetry log provider."""
    with warnings.catch_warnings():
        # The SDK handler is deprecated in favour of a contrib package
        warnings.simplefilter("ignore", DeprecationWarning)
        handler = LoggingHandler(logger_provider=log_provider)
    return _filtered("otel-logs", handler, directives)


def drop_formatted_message(logger, log_method, event_dict):
    # Set on the shared record by whichever handler formatted it first
    event_dict.pop("message", None)
    return event_dict


def console_layer(directives: DirectiveList, stream: Optional[IO[str]] = None) -> Layer:
    """Human readable lines on stderr, with the emitting thread's name."""
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
            foreign_pre_chain=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.ExtraAdder(),
                drop_formatted_message,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.CallsiteParameterAdder({CallsiteParameter.THREAD_NAME}),
            ],
        )
    )
    return _filtered("console", handler, directives)


def build_layers(
    log_provider: LoggerProvider,
    log_filter: DirectiveList,
    fmt_filter: DirectiveList,
    stream: Optional[IO[str]] = None,
) -> List[Layer]:
    return [
        bridge_layer(log_provider, log_filter),
        console_layer(fmt_filter, stream),
    ]


# The root logger is the process's single subscriber. It is the only global
# this package writes to, and only through install_subscriber().
_install_lock = threading.Lock()
_installed: List[Layer] = []


def install_subscriber(layers: Sequence[Layer]) -> None:
    with _install_lock:
        if _installed:
            raise SubscriberInstallError(
                "Global log subscriber is already installed "
                f"({', '.join(layer.name for layer in _installed)})"
            )
        if not layers:
            raise SubscriberInstallError("Cannot install a subscriber without layers")

        root = logging.getLogger()
        for layer in layers:
            root.addHandler(layer.handler)
        # Handler filters decide per sink; the root must let everything through to them
        root.setLevel(min(layer.directives.min_threshold for layer in layers))
        _installed.extend(layers)


def installed_layers() -> List[Layer]:
    return list(_installed)


def reset_subscriber_for_tests() -> None:
    """Detach installed layers so a test can install a fresh pipeline."""
    with _install_lock:
        root = logging.getLogger()
        for layer in _installed:
            root.removeHandler(layer.handler)
        _installed.clear()
        root.setLevel(logging.WARNING)
    structlog.reset_defaults()


# Structlog processor: injects trace/span IDs into every log line
def add_otel_ids(logger, log_method, event_dict):
    span = trace.get_current_span()
    if span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = trace.format_trace_id(ctx.trace_id)
        event_dict["span_id"] = trace.format_span_id(ctx.span_id)
    return event_dict


def configure_structlog() -> None:
    """Route structlog through stdlib logging so the installed layers apply.

    Bound key/values travel as LogRecord extras: the console layer renders
    them and the bridge exports them as log attributes.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.PositionalArgumentsFormatter(),
            add_otel_ids,
            structlog.stdlib.render_to_log_kwargs,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@dataclass
class TelemetryHandle:
    """Everything the bootstrap built, passed explicitly to whoever emits."""

    resource: Resource
    log_provider: LoggerProvider
    trace_provider: TracerProvider
    layers: List[Layer]
    _closed: bool = field(default=False, init=False, repr=False)

    def get_tracer(self, name: str) -> trace.Tracer:
        return self.trace_provider.get_tracer(name)

    def get_logger(self, name: Optional[str] = None):
        return structlog.get_logger(name)

    def shutdown(self) -> None:
        """Flush in-flight spans and log records, then close the exporters."""
        if self._closed:
            return
        self._closed = True
        for provider in (self.trace_provider, self.log_provider):
            provider.force_flush()
            provider.shutdown()


def compose_and_install(
    log_provider: LoggerProvider,
    trace_provider: TracerProvider,
    log_filter: DirectiveList,
    fmt_filter: DirectiveList,
    stream: Optional[IO[str]] = None,
) -> TelemetryHandle:
    """
    Build the bridge and console layers and install them as the process's
    subscriber. Call this exactly once; a second call raises
    SubscriberInstallError.
    """
    layers = build_layers(log_provider, log_filter, fmt_filter, stream)
    install_subscriber(layers)
    configure_structlog()
    return TelemetryHandle(
        resource=trace_provider.resource,
        log_provider=log_provider,
        trace_provider=trace_provider,
        layers=layers,
    )
