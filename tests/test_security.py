"""
Tests for password hashing and identity tokens.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from cargo_api.core.config import get_settings
from cargo_api.core.security import (
    PasswordError,
    TokenError,
    create_access_token,
    decode_token,
    hash_password,
    token_worker_id,
    verify_password,
)

settings = get_settings()


# ============================================================================
# Password Hashing
# ============================================================================


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("s3cret-pass")

        assert hashed != "s3cret-pass"
        assert hashed.startswith("$2b$")
        assert verify_password("s3cret-pass", hashed)

    def test_wrong_password(self):
        hashed = hash_password("s3cret-pass")

        assert not verify_password("other-pass", hashed)

    def test_salts_differ(self):
        assert hash_password("same") != hash_password("same")

    def test_empty_password_rejected(self):
        with pytest.raises(PasswordError) as exc_info:
            hash_password("")

        assert exc_info.value.code == "EMPTY_PASSWORD"

    def test_malformed_hash_does_not_verify(self):
        assert not verify_password("anything", "not-a-bcrypt-hash")
        assert not verify_password("", "not-a-bcrypt-hash")


# ============================================================================
# Identity Tokens
# ============================================================================


class TestIdentityTokens:
    def test_claims(self):
        worker_id = uuid.uuid4()

        payload = decode_token(
            create_access_token(worker_id, "executive", "boss@cargo.mn")
        )

        assert payload["sub"] == str(worker_id)
        assert payload["role"] == "executive"
        assert payload["email"] == "boss@cargo.mn"
        assert payload["iss"] == settings.jwt_issuer
        assert payload["aud"] == settings.jwt_audience
        assert payload["exp"] > payload["iat"]

    def test_token_ids_unique(self):
        worker_id = uuid.uuid4()

        first = decode_token(create_access_token(worker_id, "worker", "a@cargo.mn"))
        second = decode_token(create_access_token(worker_id, "worker", "a@cargo.mn"))

        assert first["jti"] != second["jti"]

    def test_expired_token(self):
        token = create_access_token(
            uuid.uuid4(), "worker", "a@cargo.mn", expires_delta=timedelta(seconds=-5)
        )

        with pytest.raises(TokenError) as exc_info:
            decode_token(token)

        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_wrong_signature(self):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "sub": str(uuid.uuid4()),
                "iss": settings.jwt_issuer,
                "aud": settings.jwt_audience,
                "exp": now + timedelta(minutes=5),
            },
            "some-other-secret",
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(TokenError) as exc_info:
            decode_token(token)

        assert exc_info.value.code == "TOKEN_INVALID"

    def test_wrong_audience(self):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "sub": str(uuid.uuid4()),
                "iss": settings.jwt_issuer,
                "aud": "someone-else",
                "exp": now + timedelta(minutes=5),
            },
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(TokenError):
            decode_token(token)

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
    def test_malformed_tokens(self, token):
        with pytest.raises(TokenError) as exc_info:
            decode_token(token)

        assert exc_info.value.code in ("EMPTY_TOKEN", "TOKEN_INVALID")

    def test_token_worker_id(self):
        worker_id = uuid.uuid4()

        assert token_worker_id({"sub": str(worker_id)}) == worker_id

    def test_token_worker_id_not_uuid(self):
        with pytest.raises(TokenError):
            token_worker_id({"sub": "bat"})
