"""HTTP tests for the registration, login and health endpoints."""

import pytest
from fastapi.testclient import TestClient

from cpf_auth.config import AuthSettings
from cpf_auth.directory.memory import InMemoryDirectory
from cpf_auth.exceptions import DirectoryFailureError
from cpf_auth.main import create_app

from conftest import OTHER_VALID_CPF, VALID_CPF, VALID_CPF_MASKED, StubDirectory

REGISTER_BODY = {"name": "João Silva", "cpf": VALID_CPF_MASKED, "email": "joao@example.com"}


class UnreachableDirectory(StubDirectory):
    name = "cognito"

    async def find_by_key(self, key):
        raise DirectoryFailureError("EndpointConnectionError: Could not connect")


def make_client(directory) -> TestClient:
    settings = AuthSettings(
        _env_file=None,
        events_enabled=False,
        directory_backend="memory",
        user_password="Shared-Password-123!",
    )
    return TestClient(create_app(settings=settings, directory=directory))


@pytest.fixture
def client():
    with make_client(InMemoryDirectory(token_secret="test-secret", hash_rounds=4)) as test_client:
        yield test_client


class TestRegister:
    def test_register_created(self, client):
        response = client.post("/api/v1/register", json=REGISTER_BODY)

        assert response.status_code == 201
        assert response.json() == {"message": "User registered successfully", "userId": VALID_CPF}

    def test_register_duplicate_cpf(self, client):
        client.post("/api/v1/register", json=REGISTER_BODY)

        response = client.post(
            "/api/v1/register", json={**REGISTER_BODY, "email": "other@example.com"}
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_CPF"

    def test_register_duplicate_email(self, client):
        client.post("/api/v1/register", json=REGISTER_BODY)

        response = client.post("/api/v1/register", json={**REGISTER_BODY, "cpf": OTHER_VALID_CPF})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_EMAIL"

    def test_register_invalid_cpf(self, client):
        response = client.post("/api/v1/register", json={**REGISTER_BODY, "cpf": "11111111111"})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_CPF"
        assert error["message"] == "CPF cannot have all equal digits"
        assert error["stage"] == "received"
        assert error["details"] == {}
        assert set(error) == {"code", "message", "stage", "details", "timestamp"}

    def test_register_missing_name(self, client):
        response = client.post("/api/v1/register", json={"cpf": VALID_CPF, "email": "joao@example.com"})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Name is required"


class TestLogin:
    def test_login_registered_user(self, client):
        client.post("/api/v1/register", json=REGISTER_BODY)

        response = client.post("/api/v1/login", json={"cpf": VALID_CPF_MASKED})

        assert response.status_code == 200
        body = response.json()
        assert set(body["tokens"]) == {"idToken", "refreshToken"}
        assert body["user"] == {"id": VALID_CPF, "name": "João Silva", "type": "authenticated"}

    def test_login_unknown_cpf(self, client):
        response = client.post("/api/v1/login", json={"cpf": VALID_CPF})

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "User not found with provided CPF"

    def test_login_anonymous(self, client):
        response = client.post("/api/v1/login", json={"name": "  Visitante  "})

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["name"] == "Visitante"
        assert user["type"] == "anonymous"
        assert user["id"] != VALID_CPF

    def test_login_anonymous_twice_gives_distinct_ids(self, client):
        first = client.post("/api/v1/login", json={"name": "Visitante"}).json()["user"]["id"]
        second = client.post("/api/v1/login", json={"name": "Visitante"}).json()["user"]["id"]

        assert first != second

    @pytest.mark.parametrize(
        "body, code",
        [
            ({"cpf": VALID_CPF, "name": "João"}, "AMBIGUOUS_REQUEST"),
            ({}, "MISSING_IDENTIFIER"),
            ({"cpf": "   ", "name": ""}, "MISSING_IDENTIFIER"),
        ],
    )
    def test_login_bad_request(self, client, body, code):
        response = client.post("/api/v1/login", json=body)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == code


class TestDirectoryUnavailable:
    def test_error_hides_diagnostic(self):
        with make_client(UnreachableDirectory()) as client:
            response = client.post("/api/v1/login", json={"cpf": VALID_CPF})

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "DIRECTORY_UNAVAILABLE"
        assert "EndpointConnectionError" not in response.text
        assert error["stage"] == "validated"


class TestHealth:
    def test_memory_directory_is_degraded(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json() == {"status": "degraded", "directory": "memory", "service": "cpf-auth"}

    def test_remote_directory_is_healthy(self):
        with make_client(UnreachableDirectory()) as client:
            assert client.get("/api/v1/health").json()["status"] == "healthy"

    def test_root(self, client):
        body = client.get("/").json()
        assert body["api"]["v1"]["login"] == "/api/v1/login"
