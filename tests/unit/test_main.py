"""Test main FastAPI application configuration."""
import pytest
from fastapi.testclient import TestClient

from trimline.core.config import settings
from trimline.main import app


class TestMainApp:
    """Test main FastAPI application configuration."""

    @pytest.fixture
    def client(self):
        """Create test client."""
        return TestClient(app)

    def test_revision_routes_mounted_with_prefix(self):
        paths = {route.path for route in app.routes}
        assert f"{settings.API_V1_STR}/word-count-revision/books/{{book_id}}/start" in paths
        assert f"{settings.API_V1_STR}/word-count-revision/{{revision_id}}/generate-all" in paths

    def test_no_duplicate_api_prefix(self, client):
        """Ensure routes don't have duplicate /api/v1/api/v1."""
        response = client.get(f"{settings.API_V1_STR}/openapi.json")
        assert response.status_code == 200
        for path in response.json().get("paths", {}):
            assert path.count("/api/v1") <= 1, f"Path {path} contains duplicate /api/v1"

    def test_cors_headers_for_allowed_origin(self, client):
        origin = settings.BACKEND_CORS_ORIGINS[0]
        response = client.options(
            "/health",
            headers={"Origin": origin, "Access-Control-Request-Method": "GET"},
        )
        assert response.headers.get("access-control-allow-origin") == origin

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["service"] == "trimline-api"

    def test_api_prefix_in_settings(self):
        """Ensure API prefix matches settings."""
        assert not settings.API_V1_STR.endswith("/")
        assert settings.API_V1_STR.startswith("/")
