"""Tests for metrics functionality."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from voicetasks.core.metrics import setup_metrics


def test_metrics_endpoint(client: TestClient) -> None:
    """Test Prometheus metrics endpoint exists and returns metrics."""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]

    content = response.text
    assert "http_requests_total" in content or "http_request_duration" in content
    assert "HELP" in content
    assert "TYPE" in content


def test_metrics_collect_after_request(client: TestClient) -> None:
    """Test that metrics are collected after making requests."""
    client.get("/api/tasks")

    content = client.get("/metrics").text
    assert "/api/tasks" in content


def test_setup_metrics_is_idempotent(app: FastAPI) -> None:
    # create_app() already set up metrics; a second call must not register twice
    setup_metrics(app, "0.1.0")

    assert app.state._metrics_initialized is True
