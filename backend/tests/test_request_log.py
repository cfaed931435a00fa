import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from category_tree.middleware.request_log import RequestLoggingMiddleware, resolve_request_id


def test_resolve_request_id_keeps_plain_tokens() -> None:
    assert resolve_request_id("abc-123") == "abc-123"
    assert resolve_request_id("trace:42.a_b") == "trace:42.a_b"


@pytest.mark.parametrize("value", [None, "", "has space", "x" * 65, "semi;colon"])
def test_resolve_request_id_replaces_unsafe_values(value: str | None) -> None:
    request_id = resolve_request_id(value)
    assert request_id != value
    assert len(request_id) == 32


def test_unsafe_request_id_header_is_replaced(client: TestClient) -> None:
    response = client.get("/api/v1/health", headers={"X-Request-ID": "evil value"})
    assert response.status_code == 200
    assert response.headers["X-Request-ID"] != "evil value"


def test_requests_are_logged_and_health_is_quiet(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="category_tree.request"):
        client.get("/api/v1/health")
        client.get("/api/v1/categories")

    logged = [record for record in caplog.records if record.name == "category_tree.request"]
    assert [record.path for record in logged] == ["/api/v1/categories"]
    assert logged[0].status_code == 200
    assert logged[0].levelno == logging.INFO


def test_unhandled_errors_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/boom")
    async def boom() -> None:
        raise RuntimeError("boom")

    with caplog.at_level(logging.INFO, logger="category_tree.request"):
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/boom")

    assert response.status_code == 500
    failed = [record for record in caplog.records if record.getMessage() == "request_failed"]
    assert len(failed) == 1
    assert failed[0].path == "/boom"
    assert failed[0].exc_info is not None
