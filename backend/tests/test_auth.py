# tests/test_auth.py — Token verification & error rendering
from datetime import timedelta

import pytest
from httpx import AsyncClient
from jose import jwt

from auth import create_access_token, verify_token, ALGORITHM, SECRET_KEY
from errors import AuthorizationError
from tests.conftest import get_auth_headers


class TestTokens:
    def test_roundtrip(self):
        payload = verify_token(create_access_token("profile-1", email="a@b.test"))
        assert payload["sub"] == "profile-1"
        assert payload["aud"] == "authenticated"

    def test_expired(self):
        token = create_access_token("profile-1", expires_delta=timedelta(seconds=-5))
        with pytest.raises(AuthorizationError) as exc:
            verify_token(token)
        assert exc.value.message == "Token expired"

    def test_wrong_audience(self):
        token = jwt.encode({"sub": "profile-1", "aud": "anon"}, SECRET_KEY, algorithm=ALGORITHM)
        with pytest.raises(AuthorizationError):
            verify_token(token)

    def test_wrong_signature(self):
        token = jwt.encode({"sub": "profile-1", "aud": "authenticated"}, "x" * 40, algorithm=ALGORITHM)
        with pytest.raises(AuthorizationError):
            verify_token(token)


@pytest.mark.asyncio
class TestAuthDependencies:
    async def test_missing_header(self, client: AsyncClient):
        resp = await client.get("/api/v1/projects")
        assert resp.status_code == 401
        assert resp.json()["error"] == "Missing authorization header"

    async def test_garbage_token(self, client: AsyncClient):
        resp = await client.get("/api/v1/projects", headers={"Authorization": "Bearer not.a.jwt"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "FG-AUTH-001"

    async def test_unknown_profile(self, client: AsyncClient):
        token = create_access_token("ghost")
        resp = await client.get("/api/v1/projects", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "Profile not found"

    async def test_valid_profile(self, client: AsyncClient, test_user):
        resp = await client.get("/api/v1/projects", headers=get_auth_headers(test_user))
        assert resp.status_code == 200


@pytest.mark.asyncio
class TestHealthAndHeaders:
    async def test_root(self, client: AsyncClient):
        resp = await client.get("/")
        assert resp.status_code == 200
        assert resp.json()["name"] == "4Gears Platform"

    async def test_correlation_headers(self, client: AsyncClient):
        resp = await client.get("/", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"
        assert resp.headers["X-Correlation-ID"] == "req-123"
        assert "X-Response-Time" in resp.headers
        assert resp.headers["X-Content-Type-Options"] == "nosniff"

    async def test_error_carries_request_id(self, client: AsyncClient):
        resp = await client.get("/api/v1/projects", headers={"X-Request-ID": "req-456"})
        assert resp.json()["request_id"] == "req-456"

    async def test_unknown_route_uses_error_shape(self, client: AsyncClient):
        resp = await client.get("/api/v1/nowhere")
        assert resp.status_code == 404
        assert "error" in resp.json()

    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert set(resp.json()) == {"status", "version", "environment", "database"}
