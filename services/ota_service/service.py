from pathlib import Path
from typing import Optional

import structlog
from opentelemetry import trace

from shared.config.settings import SERVICE_VERSION
from shared.observability import ota_firmware_downloads_total, ota_health_checks_total

from .schemas import HealthResponse

logger = structlog.get_logger(__name__)

# Served when no usable firmware image is configured
STUB_FIRMWARE = bytes([1, 2, 3, 4])
FIRMWARE_FILENAME = "firmware.bin"


class HealthService:

    @staticmethod
    def check() -> HealthResponse:
        ota_health_checks_total.inc()
        return HealthResponse(status="healthy", version=SERVICE_VERSION)


def load_firmware_image(firmware_path: Optional[str]) -> Optional[bytes]:
    """Read the configured image once; None when unset, unreadable or empty."""
    if not firmware_path:
        return None
    try:
        data = Path(firmware_path).read_bytes()
    except OSError as e:
        logger.warning("firmware_image_unreadable", path=firmware_path, reason=e.strerror or str(e))
        return None
    if not data:
        logger.warning("firmware_image_empty", path=firmware_path)
        return None
    logger.info("firmware_image_loaded", path=firmware_path, size=len(data))
    return data


class FirmwareService:
    """Serves the image loaded at startup, or the stub when there is none."""

    def __init__(self, firmware_path: Optional[str] = None):
        self.firmware_path = firmware_path
        self.image = load_firmware_image(firmware_path)

    @property
    def source(self) -> str:
        return "stub" if self.image is None else "file"

    async def get_firmware_data(self) -> bytes:
        tracer = trace.get_tracer(__name__)
        with tracer.start_as_current_span("get_firmware_data") as span:
            source = self.source
            data = STUB_FIRMWARE if self.image is None else self.image
            span.set_attribute("firmware.source", source)
            span.set_attribute("firmware.size", len(data))
            ota_firmware_downloads_total.labels(source=source).inc()
            logger.info("firmware_served", source=source, size=len(data))
            return data
