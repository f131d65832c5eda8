from typing import Optional

from fastapi import FastAPI

from shared.config.settings import SERVICE_VERSION, Settings
from shared.observability import TelemetryHandle, instrument_app

from .router import FIRMWARE_TAG, HEALTH_TAG, router
from .service import FirmwareService

OPENAPI_TAGS = [
    {"name": HEALTH_TAG, "description": "Health check endpoints"},
    {"name": FIRMWARE_TAG, "description": "Firmware image distribution"},
]


def create_app(settings: Settings, telemetry: Optional[TelemetryHandle] = None) -> FastAPI:
    ota_app = FastAPI(
        title="OTA Service",
        version=SERVICE_VERSION,
        docs_url="/docs",
        openapi_url="/api-docs/openapi.json",
        openapi_tags=OPENAPI_TAGS,
    )
    ota_app.state.firmware_service = FirmwareService(settings.firmware_path)

    # --- OBSERVABILITY ---
    if telemetry is not None:
        instrument_app(ota_app, telemetry)

    ota_app.include_router(router)
    return ota_app
