"""Tests for the error envelope produced by the exception handlers."""

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError, OperationalError

from omnivault.exceptions import NotFoundError, ValidationError
from omnivault.middleware.exception_handler import register_exception_handlers


def _app_raising(exc: Exception) -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/boom")
    def boom():
        raise exc

    return TestClient(app, raise_server_exceptions=False)


class TestEnvelope:

    def test_unknown_route(self, client):
        resp = client.get("/api/nowhere")
        assert resp.status_code == 404
        body = resp.json()
        assert body["status"] == 404
        assert body["error"] == "NOT_FOUND"
        assert body["path"] == "/api/nowhere"
        assert body["timestamp"]

    def test_wrong_method(self, client):
        resp = client.patch("/health")
        assert resp.status_code == 405
        assert resp.json()["error"] == "METHOD_NOT_ALLOWED"

    def test_validation_field_map(self, client, auth_headers):
        resp = client.post("/api/contents/link", headers=auth_headers, json={"title": "x", "url": "ftp://x"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert list(body["errors"]) == ["url"]

    def test_malformed_query_parameter(self, client, auth_headers):
        resp = client.get("/api/contents", headers=auth_headers, params={"page": "abc"})
        assert resp.status_code == 400
        assert "page" in resp.json()["errors"]

    def test_service_errors(self):
        resp = _app_raising(NotFoundError("Folder")).get("/boom")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Folder not found"

        resp = _app_raising(ValidationError("Too long", field="title")).get("/boom")
        assert resp.status_code == 400
        assert resp.json()["errors"] == {"title": "Too long"}


class TestInternalsAreHidden:

    def test_integrity_error_is_conflict(self):
        exc = IntegrityError("INSERT INTO folders ...", {}, Exception("UNIQUE constraint failed"))
        resp = _app_raising(exc).get("/boom")
        assert resp.status_code == 409
        assert "INSERT" not in resp.text

    def test_database_error(self):
        exc = OperationalError("SELECT secret FROM users", {}, Exception("disk I/O error"))
        resp = _app_raising(exc).get("/boom")
        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "DATABASE_ERROR"
        assert "secret" not in resp.text

    def test_unexpected_exception(self):
        resp = _app_raising(RuntimeError("stack details")).get("/boom")
        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "INTERNAL_ERROR"
        assert body["message"] == "An unexpected error occurred"
        assert "stack details" not in resp.text
