from __future__ import annotations

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field
from sqlalchemy.exc import OperationalError

from hirepanel.common.exceptions import register_exception_handlers
from hirepanel.common.middleware import register_middleware
from hirepanel.core.rbac import (
    DuplicateAssignmentError,
    FallbackRoleMisconfiguredError,
    RoleNotFoundError,
    TransientStoreError,
)


class _Payload(BaseModel):
    names: list[str] = Field(min_length=1)


@pytest.fixture()
def client() -> TestClient:
    app = FastAPI()
    register_middleware(app)
    register_exception_handlers(app)

    @app.get("/transient")
    def transient() -> None:
        raise TransientStoreError("assign role failed: the data store is unavailable")

    @app.get("/locked")
    def locked() -> None:
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    @app.get("/duplicate")
    def duplicate() -> None:
        raise DuplicateAssignmentError("HR")

    @app.get("/missing")
    def missing() -> None:
        raise RoleNotFoundError("Role 42 not found")

    @app.get("/misconfigured")
    def misconfigured() -> None:
        raise FallbackRoleMisconfiguredError("User", "missing")

    @app.get("/forbidden")
    def forbidden() -> None:
        raise HTTPException(status_code=403, detail="Insufficient permissions")

    @app.get("/boom")
    def boom() -> None:
        raise RuntimeError("secret internals")

    @app.post("/validate")
    def validate(payload: _Payload) -> dict[str, int]:
        return {"count": len(payload.names)}

    return TestClient(app, raise_server_exceptions=False)


def test_transient_store_error_is_retryable(client: TestClient) -> None:
    response = client.get("/transient")

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert response.headers["content-type"].startswith("application/problem+json")
    body = response.json()
    assert body["type"] == "service_unavailable"
    assert body["detail"] == "assign role failed: the data store is unavailable"


def test_store_failure_outside_rbac_operation_is_retryable(client: TestClient) -> None:
    response = client.get("/locked")

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    body = response.json()
    assert body["type"] == "service_unavailable"
    assert "database is locked" not in response.text


def test_policy_error_maps_to_conflict(client: TestClient) -> None:
    response = client.get("/duplicate", headers={"X-Request-ID": "abc123"})

    assert response.status_code == 409
    body = response.json()
    assert body == {
        "type": "conflict",
        "title": "Conflict",
        "status": 409,
        "detail": "User is already assigned to the 'HR' role",
        "instance": "/duplicate",
        "requestId": "abc123",
    }


def test_not_found(client: TestClient) -> None:
    response = client.get("/missing")

    assert response.status_code == 404
    assert response.json()["type"] == "not_found"
    assert "Retry-After" not in response.headers


def test_fallback_misconfiguration_is_logged(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level("ERROR", logger="hirepanel.rbac.errors"):
        response = client.get("/misconfigured")

    assert response.status_code == 500
    assert response.json()["detail"] == "Fallback role 'User' is missing"
    assert any(record.message == "rbac.fallback_role.misconfigured" for record in caplog.records)


def test_http_exception(client: TestClient) -> None:
    response = client.get("/forbidden")

    assert response.status_code == 403
    assert response.json()["type"] == "forbidden"
    assert response.json()["detail"] == "Insufficient permissions"


def test_unhandled_exception_is_opaque(client: TestClient) -> None:
    response = client.get("/boom")

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"
    assert "secret" not in response.text


def test_validation_errors_list_paths(client: TestClient) -> None:
    response = client.post("/validate", json={"names": []})

    assert response.status_code == 422
    body = response.json()
    assert body["detail"] == "Invalid request"
    assert body["errors"][0]["path"] == "names"
