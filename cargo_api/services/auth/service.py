"""
Authentication service and identity context.

Exchanges email and password for a signed identity token, and resolves a
verified token back into the ``ActingIdentity`` that every order operation
receives explicitly.
"""

import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from cargo_api.core.config import get_settings
from cargo_api.core.logging import get_logger
from cargo_api.core.security import (
    create_access_token,
    decode_token,
    token_worker_id,
    verify_password,
)
from cargo_api.database.models.worker import Worker, WorkerRole
from cargo_api.services.auth.repository import WorkerRepository

logger = get_logger(__name__)
settings = get_settings()


class AuthenticationError(Exception):
    """Base exception for authentication errors."""

    def __init__(self, message: str, code: str = "AUTH_ERROR"):
        super().__init__(message)
        self.code = code


class InvalidCredentialsError(AuthenticationError):
    """Raised when email or password do not match a worker."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message, code="INVALID_CREDENTIALS")


class UnknownWorkerError(AuthenticationError):
    """Raised when a valid token names a worker that no longer exists."""

    def __init__(self, message: str = "Worker not found"):
        super().__init__(message, code="UNKNOWN_WORKER")


@dataclass(frozen=True)
class ActingIdentity:
    """Who is calling: resolved once per request and passed to every operation."""

    worker_id: uuid.UUID
    role: WorkerRole
    name: str

    @property
    def is_executive(self) -> bool:
        return self.role == WorkerRole.EXECUTIVE

    @classmethod
    def from_worker(cls, worker: Worker) -> "ActingIdentity":
        return cls(worker_id=worker.id, role=worker.role, name=worker.name)


@dataclass(frozen=True)
class LoginResult:
    token: str
    expires_in: int
    worker_id: uuid.UUID
    email: str
    name: str
    role: WorkerRole


class AuthService:
    """
    Authentication service for workers.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.workers = WorkerRepository(session)

    async def login(self, email: str, password: str) -> LoginResult:
        """
        Authenticate a worker and issue an identity token.

        Raises:
            InvalidCredentialsError: If email is unknown or password is wrong
        """
        logger.info("Login attempt", email=email)

        worker = await self.workers.get_by_email(email)
        if worker is None:
            logger.warning("Login failed - worker not found", email=email)
            raise InvalidCredentialsError()

        if not verify_password(password, worker.password_hash):
            logger.warning("Login failed - invalid password", worker_id=str(worker.id))
            raise InvalidCredentialsError()

        token = create_access_token(
            worker_id=worker.id,
            role=worker.role.value,
            email=worker.email,
        )

        logger.info(
            "Login successful",
            worker_id=str(worker.id),
            role=worker.role.value,
        )

        return LoginResult(
            token=token,
            expires_in=settings.jwt_access_token_expire_minutes * 60,
            worker_id=worker.id,
            email=worker.email,
            name=worker.name,
            role=worker.role,
        )

    async def resolve_identity(self, token: str) -> ActingIdentity:
        """
        Turn a bearer token into the acting identity.

        The worker row is authoritative for role and display name, so a role
        change takes effect without reissuing tokens.

        Raises:
            TokenError: If the token is invalid or expired
            UnknownWorkerError: If the worker no longer exists
        """
        payload = decode_token(token)
        worker_id = token_worker_id(payload)

        worker = await self.workers.get_by_id(worker_id)
        if worker is None:
            logger.warning("Token refers to unknown worker", worker_id=str(worker_id))
            raise UnknownWorkerError()

        return ActingIdentity.from_worker(worker)
