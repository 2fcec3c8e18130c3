"""
Integration tests for OpenAPI documentation.

Verifies OpenAPI schema is correctly generated for all endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from src.api.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client for the application (lifespan not run)."""
    return TestClient(app)


@pytest.fixture
def schema(client: TestClient) -> dict:
    response = client.get("/openapi.json")
    assert response.status_code == 200
    return response.json()


class TestOpenAPISchema:
    """Tests for OpenAPI schema generation."""

    def test_openapi_title_and_description(self, schema: dict) -> None:
        assert schema["info"]["title"] == "identity-recovery"
        assert "OTP-based password reset" in schema["info"]["description"]
        assert schema["info"]["version"] == "0.1.0"

    @pytest.mark.parametrize(
        ("path", "method"),
        [
            ("/v1/register", "post"),
            ("/v1/confirm-email", "post"),
            ("/v1/login", "post"),
            ("/v1/logout", "post"),
            ("/v1/session", "get"),
            ("/v1/session/refresh", "post"),
            ("/v1/password-reset/request", "post"),
            ("/v1/password-reset/verify", "post"),
            ("/v1/password-reset/complete", "post"),
            ("/health", "get"),
        ],
    )
    def test_endpoint_documented(self, schema: dict, path: str, method: str) -> None:
        assert method in schema["paths"][path]

    def test_register_request_schema(self, schema: dict) -> None:
        register = schema["components"]["schemas"]["RegisterRequest"]
        assert set(register["required"]) == {
            "email",
            "password",
            "first_name",
            "last_name",
            "phone",
            "dob",
        }

    def test_verify_otp_documents_pattern(self, schema: dict) -> None:
        otp = schema["components"]["schemas"]["VerifyOtpRequest"]["properties"]["otp"]
        assert otp["pattern"] == r"^\d{6}$"

    def test_reset_request_documents_errors(self, schema: dict) -> None:
        responses = schema["paths"]["/v1/password-reset/request"]["post"]["responses"]
        assert "202" in responses
        assert "503" in responses

    def test_docs_reachable_without_session(self, client: TestClient) -> None:
        assert client.get("/docs").status_code == 200
