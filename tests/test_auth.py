"""
Tests for login and identity resolution.
"""

import uuid

import pytest

from cargo_api.core.security import TokenError, create_access_token, decode_token
from cargo_api.database.models import WorkerRole
from cargo_api.services.auth.service import (
    ActingIdentity,
    AuthService,
    InvalidCredentialsError,
    UnknownWorkerError,
)

TEST_PASSWORD = "correct-horse-battery"

LOGIN = "/api/auth/login"


class TestAuthService:
    @pytest.mark.asyncio
    async def test_login_issues_token(self, db_session, worker):
        result = await AuthService(db_session).login("bat@cargo.mn", TEST_PASSWORD)

        payload = decode_token(result.token)
        assert payload["sub"] == str(worker.id)
        assert payload["role"] == "worker"
        assert payload["jti"]
        assert result.name == "Bat Erdene"
        assert result.expires_in > 0

    @pytest.mark.asyncio
    async def test_login_ignores_email_case(self, db_session, worker):
        result = await AuthService(db_session).login("BAT@Cargo.MN", TEST_PASSWORD)

        assert result.worker_id == worker.id

    @pytest.mark.asyncio
    async def test_wrong_password(self, db_session, worker):
        with pytest.raises(InvalidCredentialsError):
            await AuthService(db_session).login("bat@cargo.mn", "wrong")

    @pytest.mark.asyncio
    async def test_unknown_email(self, db_session, worker):
        with pytest.raises(InvalidCredentialsError):
            await AuthService(db_session).login("nobody@cargo.mn", TEST_PASSWORD)

    @pytest.mark.asyncio
    async def test_resolve_identity(self, db_session, executive):
        token = create_access_token(executive.id, "executive", executive.email)

        identity = await AuthService(db_session).resolve_identity(token)

        assert identity == ActingIdentity(
            worker_id=executive.id,
            role=WorkerRole.EXECUTIVE,
            name="Oyun Manager",
        )
        assert identity.is_executive

    @pytest.mark.asyncio
    async def test_worker_row_decides_role(self, db_session, worker):
        token = create_access_token(worker.id, "executive", worker.email)

        identity = await AuthService(db_session).resolve_identity(token)

        assert identity.role == WorkerRole.WORKER

    @pytest.mark.asyncio
    async def test_resolve_unknown_worker(self, db_session):
        token = create_access_token(uuid.uuid4(), "worker", "ghost@cargo.mn")

        with pytest.raises(UnknownWorkerError):
            await AuthService(db_session).resolve_identity(token)

    @pytest.mark.asyncio
    async def test_resolve_invalid_token(self, db_session):
        with pytest.raises(TokenError):
            await AuthService(db_session).resolve_identity("abc.def.ghi")


class TestLoginEndpoint:
    @pytest.mark.asyncio
    async def test_login_success(self, async_client, worker):
        response = await async_client.post(
            LOGIN, json={"email": "bat@cargo.mn", "password": TEST_PASSWORD}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user_id"] == str(worker.id)
        assert body["role"] == "worker"
        assert body["name"] == "Bat Erdene"

        orders = await async_client.get(
            "/api/orders",
            headers={"Authorization": f"Bearer {body['token']}"},
        )
        assert orders.status_code == 200

    @pytest.mark.asyncio
    async def test_login_failure(self, async_client, worker):
        response = await async_client.post(
            LOGIN, json={"email": "bat@cargo.mn", "password": "nope"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_validation(self, async_client):
        response = await async_client.post(LOGIN, json={"email": "not-an-email"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_token_for_deleted_worker_rejected(self, async_client):
        token = create_access_token(uuid.uuid4(), "worker", "ghost@cargo.mn")

        response = await async_client.get(
            "/api/orders", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401
