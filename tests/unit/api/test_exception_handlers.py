from unittest.mock import patch

import pytest

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from api.middleware.exception_handlers import register_exception_handlers
from core.constants import ERROR_INCOMPATIBLE_VERSION, ERROR_INVALID_FORMAT, Settings
from core.exceptions import (
    ChatNotFoundError,
    DuplicateIdError,
    PayloadValidationError,
    ProviderError,
    StreamAbortedError,
)
from models.error_models import ErrorCode


@pytest.fixture
def test_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    return app


@pytest.fixture
def client(test_app: FastAPI) -> TestClient:
    # raise_server_exceptions=False returns the 500 envelope instead of re-raising
    return TestClient(test_app, raise_server_exceptions=False)


def _raise_from(app: FastAPI, path: str, exc: Exception) -> None:
    @app.get(path)
    def raiser() -> None:
        raise exc


def test_chat_not_found(test_app: FastAPI, client: TestClient) -> None:
    _raise_from(test_app, "/missing", ChatNotFoundError("chat_1"))

    response = client.get("/missing")

    assert response.status_code == 404
    data = response.json()["error"]
    assert data["code"] == ErrorCode.CHAT_NOT_FOUND.value
    assert data["message"] == "Chat 'chat_1' not found"
    assert data["path"] == "/missing"
    assert "timestamp" in data


def test_duplicate_id(test_app: FastAPI, client: TestClient) -> None:
    _raise_from(test_app, "/dup", DuplicateIdError("chat_1"))

    response = client.get("/dup")

    assert response.status_code == 409
    assert response.json()["error"]["code"] == ErrorCode.RESOURCE_ALREADY_EXISTS.value


def test_invalid_import_payload(test_app: FastAPI, client: TestClient) -> None:
    details = [{"field": "chats.0.id", "message": "Field required"}]
    _raise_from(test_app, "/import", PayloadValidationError(ERROR_INVALID_FORMAT, details))

    response = client.get("/import")

    assert response.status_code == 422
    data = response.json()["error"]
    assert data["code"] == ErrorCode.VALIDATION_INVALID_FORMAT.value
    assert data["details"] == [{"field": "chats.0.id", "message": "Field required"}]


def test_incompatible_version(test_app: FastAPI, client: TestClient) -> None:
    _raise_from(test_app, "/version", PayloadValidationError(ERROR_INCOMPATIBLE_VERSION))

    response = client.get("/version")

    data = response.json()["error"]
    assert data["code"] == ErrorCode.VALIDATION_INCOMPATIBLE_VERSION.value
    assert "details" not in data


def test_stream_aborted(test_app: FastAPI, client: TestClient) -> None:
    _raise_from(test_app, "/aborted", StreamAbortedError())

    response = client.get("/aborted")

    assert response.status_code == 499
    assert response.json()["error"]["message"] == "Stream aborted"


def test_provider_error_debug_info(test_app: FastAPI, client: TestClient) -> None:
    _raise_from(test_app, "/provider", ProviderError("gemini", 500, "boom"))
    settings = Settings(_env_file=None, debug=True)  # type: ignore[call-arg]

    with patch("api.middleware.exception_handlers.get_settings", return_value=settings):
        response = client.get("/provider")

    data = response.json()["error"]
    assert response.status_code == 502
    assert data["code"] == ErrorCode.GEMINI_ERROR.value
    assert data["debug"] == {"provider": "gemini", "upstream_status": 500}


def test_provider_error_hides_debug(test_app: FastAPI, client: TestClient) -> None:
    _raise_from(test_app, "/provider", ProviderError("unknown", None))
    settings = Settings(_env_file=None, debug=False)  # type: ignore[call-arg]

    with patch("api.middleware.exception_handlers.get_settings", return_value=settings):
        response = client.get("/provider")

    data = response.json()["error"]
    assert data["code"] == ErrorCode.EXTERNAL_SERVICE_ERROR.value
    assert "debug" not in data


def test_http_exception(test_app: FastAPI, client: TestClient) -> None:
    _raise_from(test_app, "/http", HTTPException(status_code=404, detail="Nope"))

    response = client.get("/http")

    assert response.status_code == 404
    assert response.json()["error"] == {
        "code": ErrorCode.RESOURCE_NOT_FOUND.value,
        "message": "Nope",
        "timestamp": response.json()["error"]["timestamp"],
        "path": "/http",
    }


def test_unexpected_exception(test_app: FastAPI, client: TestClient) -> None:
    _raise_from(test_app, "/boom", RuntimeError("kaboom"))
    settings = Settings(_env_file=None, debug=False)  # type: ignore[call-arg]

    with patch("api.middleware.exception_handlers.get_settings", return_value=settings):
        response = client.get("/boom")

    assert response.status_code == 500
    data = response.json()["error"]
    assert data["code"] == ErrorCode.INTERNAL_UNEXPECTED.value
    assert data["message"] == "An unexpected error occurred"
