"""Unit tests for RequestLoggingMiddleware."""

from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from muzak.infrastructure.observability.middleware import RequestLoggingMiddleware

LOGGER = "muzak.infrastructure.observability.middleware.logger"


class TestRequestLoggingMiddleware:
    """Test suite for RequestLoggingMiddleware."""

    @pytest.fixture
    def app(self) -> FastAPI:
        """Create a FastAPI app with middleware for testing."""
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"message": "test"}

        @app.get("/api/health")
        async def health():
            return {"status": "healthy"}

        @app.get("/error")
        async def error_endpoint():
            raise ValueError("Test error")

        return app

    @pytest.fixture
    def client(self, app: FastAPI) -> TestClient:
        """Create a test client."""
        return TestClient(app, raise_server_exceptions=False)

    def test_request_start_and_completion_logged(self, client: TestClient):
        """Test that a request logs its start and its outcome."""
        with patch(LOGGER) as mock_logger:
            response = client.get("/test")

        assert response.status_code == 200
        assert mock_logger.info.call_count == 2
        completion = mock_logger.info.call_args_list[1][0][0]
        assert "GET /test" in completion
        assert "200" in completion
        assert "ms" in completion

    def test_correlation_id_is_echoed(self, client: TestClient):
        """Test that the incoming X-Correlation-ID comes back on the response."""
        response = client.get("/test", headers={"X-Correlation-ID": "custom-id"})

        assert response.headers["X-Correlation-ID"] == "custom-id"

    def test_correlation_id_is_generated(self, client: TestClient):
        """Test that a missing header gets a generated id."""
        response = client.get("/test")

        assert len(response.headers["X-Correlation-ID"]) == 36

    def test_health_probe_is_not_logged(self, client: TestClient):
        """Test that health checks stay out of the log."""
        with patch(LOGGER) as mock_logger:
            response = client.get("/api/health")

        assert response.status_code == 200
        mock_logger.info.assert_not_called()

    def test_failing_request_is_logged(self, client: TestClient):
        """Test that handler exceptions are logged with the request."""
        with patch(LOGGER) as mock_logger:
            response = client.get("/error")

        assert response.status_code == 500
        mock_logger.exception.assert_called_once()
        assert "GET /error" in mock_logger.exception.call_args[0][0]
