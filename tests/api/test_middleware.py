"""
Middleware test suite for request correlation and timing headers.

Tests verify that the middleware generates or preserves X-Request-ID headers
for distributed tracing and reports per-request processing time.
"""
import uuid

from fastapi.testclient import TestClient


def test_request_id_generation(client: TestClient):
    """Verify middleware generates a valid UUID when X-Request-ID is not provided."""
    response = client.get("/health/live")

    assert response.status_code == 200
    req_id = response.headers.get("X-Request-ID")

    assert req_id is not None
    assert uuid.UUID(req_id)


def test_request_id_passthrough(client: TestClient):
    """Verify middleware preserves client-provided X-Request-ID headers."""
    custom_trace_id = "trace-abc-123"
    response = client.get(
        "/health/live",
        headers={"X-Request-ID": custom_trace_id}
    )

    assert response.headers.get("X-Request-ID") == custom_trace_id


def test_process_time_header(client: TestClient):
    """Verify every response reports a non-negative processing time."""
    response = client.get("/providers/stats")

    assert response.status_code == 200
    assert float(response.headers["X-Process-Time-Ms"]) >= 0.0
