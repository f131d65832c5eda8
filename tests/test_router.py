import pytest
from fastapi.testclient import TestClient

from services.ota_service.main import create_app
from services.ota_service.service import STUB_FIRMWARE
from shared.config.settings import SERVICE_VERSION, Settings


@pytest.fixture(name="client")
def client_fixture():
    return TestClient(create_app(Settings()))


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": SERVICE_VERSION}


def test_firmware_download(client):
    response = client.get("/firmware")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/octet-stream"
    assert response.headers["content-disposition"] == 'attachment; filename="firmware.bin"'
    assert response.content == STUB_FIRMWARE


def test_firmware_from_configured_file(tmp_path):
    image = tmp_path / "image.bin"
    image.write_bytes(b"\x7fELF firmware")
    client = TestClient(create_app(Settings(firmware_path=str(image))))

    response = client.get("/firmware")

    assert response.status_code == 200
    assert response.content == b"\x7fELF firmware"


@pytest.mark.parametrize("make_path", [
    lambda tmp_path: tmp_path / "missing.bin",
    lambda tmp_path: tmp_path,
])
def test_unreadable_firmware_path_serves_the_stub(tmp_path, make_path):
    client = TestClient(create_app(Settings(firmware_path=str(make_path(tmp_path)))))

    response = client.get("/firmware")

    assert response.status_code == 200
    assert response.content == STUB_FIRMWARE


def test_empty_firmware_file_serves_the_stub(tmp_path):
    image = tmp_path / "empty.bin"
    image.write_bytes(b"")
    client = TestClient(create_app(Settings(firmware_path=str(image))))

    response = client.get("/firmware")

    assert response.status_code == 200
    assert response.content == STUB_FIRMWARE


def test_image_is_read_once_at_startup(tmp_path):
    image = tmp_path / "image.bin"
    image.write_bytes(b"v1")
    client = TestClient(create_app(Settings(firmware_path=str(image))))
    image.unlink()

    assert client.get("/firmware").content == b"v1"


def test_openapi_document(client):
    response = client.get("/api-docs/openapi.json")

    assert response.status_code == 200
    document = response.json()
    assert document["info"]["version"] == SERVICE_VERSION
    assert set(document["paths"]) == {"/health", "/firmware"}
    assert "application/octet-stream" in document["paths"]["/firmware"]["get"]["responses"]["200"]["content"]
    assert {tag["name"] for tag in document["tags"]} == {"health", "firmware"}


def test_interactive_docs(client):
    response = client.get("/docs")

    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]


def test_instrumented_app_exposes_metrics(telemetry):
    client = TestClient(create_app(Settings(), telemetry))
    client.get("/firmware")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "http_request_duration_seconds" in response.text
    assert "ota_firmware_downloads_total" in response.text


def test_metrics_route_stays_out_of_the_api_document(telemetry):
    client = TestClient(create_app(Settings(), telemetry))

    paths = client.get("/api-docs/openapi.json").json()["paths"]

    assert set(paths) == {"/health", "/firmware"}
