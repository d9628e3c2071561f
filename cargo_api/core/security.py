"""
Security utilities for password hashing and identity tokens.

Passwords are hashed with bcrypt through passlib. Identity tokens are
HS256 JWTs carrying the worker id (``sub``), role, email and a unique
token id (``jti``), bound to the configured issuer and audience.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from cargo_api.core.config import get_settings
from cargo_api.core.logging import get_logger

settings = get_settings()
logger = get_logger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=12,
    bcrypt__ident="2b",
)


class SecurityError(Exception):
    """Base exception for security-related errors."""

    def __init__(self, message: str, code: str, **context):
        super().__init__(message)
        self.code = code
        self.context = context


class TokenError(SecurityError):
    """Exception raised for token-related errors."""

    pass


class PasswordError(SecurityError):
    """Exception raised for password-related errors."""

    pass


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Raises:
        PasswordError: If the password is empty

    Example:
        >>> hashed = hash_password("SecurePass123!")
        >>> verify_password("SecurePass123!", hashed)
        True
    """
    if not password:
        raise PasswordError("Password cannot be empty", code="EMPTY_PASSWORD")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    Empty values never verify. A malformed stored hash is logged and treated
    as a mismatch.
    """
    if not plain_password or not hashed_password:
        return False

    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error(
            "Password verification failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return False


def create_access_token(
    worker_id: uuid.UUID,
    role: str,
    email: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed identity token for a worker.

    Args:
        worker_id: Worker the token identifies
        role: Worker role at issue time
        email: Worker email
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta
        or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )

    claims: Dict[str, Any] = {
        "sub": str(worker_id),
        "role": role,
        "email": email,
        "jti": str(uuid.uuid4()),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": expire,
    }

    token = jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)

    logger.info(
        "Access token created",
        subject=claims["sub"],
        role=role,
        expires_at=expire.isoformat(),
    )

    return token


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate an identity token.

    Signature, expiry, issuer and audience are all checked.

    Raises:
        TokenError: If token is empty, expired or invalid
    """
    if not token:
        raise TokenError("Token cannot be empty", code="EMPTY_TOKEN")

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except ExpiredSignatureError as e:
        logger.warning("Token has expired")
        raise TokenError("Token has expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        logger.warning(
            "Invalid token",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise TokenError("Invalid token", code="TOKEN_INVALID") from e

    if not payload.get("sub"):
        raise TokenError("Token missing subject", code="TOKEN_INVALID")

    return payload


def token_worker_id(payload: Dict[str, Any]) -> uuid.UUID:
    """
    Extract the worker id from a decoded token payload.

    Raises:
        TokenError: If the subject is not a UUID
    """
    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError as e:
        raise TokenError("Invalid token subject", code="TOKEN_INVALID") from e
