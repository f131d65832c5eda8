import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

load_dotenv()

SERVICE_NAME = "ota-server"
SERVICE_VERSION = "0.1.0"

PORT_ENV_VAR = "PORT"
DEFAULT_PORT = 3000  # Used when PORT is unset; a warning is logged
DEFAULT_HOST = "0.0.0.0"

DEFAULT_OTLP_ENDPOINT = "http://localhost:4317"
DEFAULT_OTLP_COMPRESSION = "gzip"


@dataclass(frozen=True)
class Settings:
    service_name: str = SERVICE_NAME
    service_version: str = SERVICE_VERSION
    host: str = DEFAULT_HOST
    otlp_endpoint: str = DEFAULT_OTLP_ENDPOINT
    otlp_compression: str = DEFAULT_OTLP_COMPRESSION
    log_exporter: str = "stdout"  # minimal configuration
    trace_exporter: str = "otlp"
    otel_log_filter: Optional[str] = None
    console_log_filter: Optional[str] = None
    firmware_path: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            service_name=env.get("SERVICE_NAME") or SERVICE_NAME,
            host=env.get("HOST") or DEFAULT_HOST,
            otlp_endpoint=env.get("OTLP_ENDPOINT") or DEFAULT_OTLP_ENDPOINT,
            otlp_compression=env.get("OTLP_COMPRESSION") or DEFAULT_OTLP_COMPRESSION,
            log_exporter=(env.get("LOG_EXPORTER") or "stdout").lower(),
            trace_exporter=(env.get("TRACE_EXPORTER") or "otlp").lower(),
            otel_log_filter=env.get("OTEL_LOG_FILTER") or None,
            console_log_filter=env.get("CONSOLE_LOG_FILTER") or None,
            firmware_path=env.get("FIRMWARE_PATH") or None,
        )
