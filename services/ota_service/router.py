from fastapi import APIRouter, Depends, Request, Response, status

from .schemas import HealthResponse
from .service import FIRMWARE_FILENAME, FirmwareService, HealthService

HEALTH_TAG = "health"
FIRMWARE_TAG = "firmware"

router = APIRouter()


def get_firmware_service(request: Request) -> FirmwareService:
    return request.app.state.firmware_service


@router.get(
    "/health",
    response_model=HealthResponse,
    tags=[HEALTH_TAG],
    summary="Service health and version",
)
async def health_check():
    return HealthService.check()


@router.get(
    "/firmware",
    tags=[FIRMWARE_TAG],
    summary="Get firmware binary",
    response_class=Response,
    responses={
        status.HTTP_200_OK: {
            "description": "Firmware binary",
            "content": {"application/octet-stream": {}},
        }
    },
)
async def get_firmware(firmware_service: FirmwareService = Depends(get_firmware_service)):
    """Returns the firmware binary file for OTA updates."""
    data = await firmware_service.get_firmware_data()
    return Response(
        content=data,
        status_code=status.HTTP_200_OK,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{FIRMWARE_FILENAME}"'},
    )
