from .setup import setup_observability, instrument_app
from .layers import TelemetryHandle, compose_and_install, reset_subscriber_for_tests
from .filters import DirectiveList, console_directives, otel_log_directives
from .providers import build_log_provider, build_trace_provider
from .metrics import (
    ota_firmware_downloads_total,
    ota_health_checks_total
)
