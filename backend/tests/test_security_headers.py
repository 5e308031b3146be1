"""
Tests for security headers middleware.

Validates OWASP-recommended security headers are present in responses.
"""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from reportes.middleware.security_headers import (
    API_CSP,
    DOCS_CSP,
    SecurityHeadersMiddleware,
)


class TestSecurityHeaders:
    """Integration tests for security headers middleware."""

    @pytest.fixture
    def client(self):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/api/v1/conductor")
        async def conductor_endpoint():
            return {"message": "success"}

        @app.get("/api/v1/missing")
        async def missing_endpoint():
            raise HTTPException(status_code=404, detail="Reporte no encontrado")

        return TestClient(app)

    def test_basic_headers(self, client):
        response = client.get("/api/v1/conductor")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-XSS-Protection"] == "1; mode=block"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"

    def test_permissions_policy_blocks_device_apis(self, client):
        policy = client.get("/api/v1/conductor").headers["Permissions-Policy"]

        assert "geolocation=()" in policy
        assert "camera=()" in policy
        assert "microphone=()" in policy

    def test_api_paths_get_api_csp(self, client):
        response = client.get("/api/v1/conductor")

        assert response.headers["Content-Security-Policy"] == API_CSP
        assert "'unsafe-inline'" not in API_CSP

    def test_docs_get_docs_csp(self, client):
        response = client.get("/docs")

        assert response.headers["Content-Security-Policy"] == DOCS_CSP

    def test_api_responses_not_cached(self, client):
        assert client.get("/api/v1/conductor").headers["Cache-Control"] == "no-store"

    def test_headers_on_error_responses(self, client):
        response = client.get("/api/v1/missing")

        assert response.status_code == 404
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "Content-Security-Policy" in response.headers


class TestSecurityHeadersConfiguration:

    def _client(self, **kwargs) -> TestClient:
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware, **kwargs)

        @app.get("/test")
        async def test_endpoint():
            return {"message": "success"}

        return TestClient(app)

    def test_custom_csp_policy(self):
        response = self._client(csp_policy="default-src 'self'").get("/test")

        assert response.headers["Content-Security-Policy"] == "default-src 'self'"

    def test_disable_csp(self):
        response = self._client(enable_csp=False).get("/test")

        assert "Content-Security-Policy" not in response.headers
        assert response.headers["X-Content-Type-Options"] == "nosniff"
