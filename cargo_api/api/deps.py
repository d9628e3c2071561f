"""
FastAPI dependencies for authentication, authorization and services.

Every authenticated route receives an ``ActingIdentity`` resolved here once
per request from the bearer token and the worker row.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from cargo_api.core.logging import get_logger, set_worker_id
from cargo_api.core.security import TokenError
from cargo_api.database.connection import get_db
from cargo_api.services.auth.service import (
    ActingIdentity,
    AuthService,
    UnknownWorkerError,
)
from cargo_api.services.orders.service import OrderLifecycleService
from cargo_api.services.storage.photos import PhotoStorage

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)

_photo_storage: Optional[PhotoStorage] = None


def get_photo_storage() -> PhotoStorage:
    """Shared S3 photo store, created on first use."""
    global _photo_storage
    if _photo_storage is None:
        _photo_storage = PhotoStorage()
    return _photo_storage


async def get_auth_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AuthService:
    return AuthService(db)


async def get_order_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    photo_storage: Annotated[PhotoStorage, Depends(get_photo_storage)],
) -> OrderLifecycleService:
    return OrderLifecycleService(db, photo_storage=photo_storage)


async def get_current_identity(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> ActingIdentity:
    """
    Validate the bearer token and resolve the acting identity.

    Raises:
        HTTPException: 401 if token is missing, invalid, expired, or the
            worker no longer exists
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        logger.warning("Authentication failed: No credentials provided")
        raise credentials_exception

    try:
        identity = await auth_service.resolve_identity(credentials.credentials)
    except TokenError as e:
        logger.warning(
            "Authentication failed: token rejected",
            error=str(e),
            code=e.code,
        )
        raise credentials_exception
    except UnknownWorkerError:
        raise credentials_exception

    set_worker_id(str(identity.worker_id))
    return identity


async def require_executive(
    identity: Annotated[ActingIdentity, Depends(get_current_identity)],
) -> ActingIdentity:
    """
    Allow only executives through.

    Raises:
        HTTPException: 403 for worker role
    """
    if not identity.is_executive:
        logger.warning(
            "Access denied: executive role required",
            worker_id=str(identity.worker_id),
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "forbidden",
                "message": "Executive role required",
            },
        )
    return identity


CurrentIdentity = Annotated[ActingIdentity, Depends(get_current_identity)]
ExecutiveIdentity = Annotated[ActingIdentity, Depends(require_executive)]
OrderServiceDep = Annotated[OrderLifecycleService, Depends(get_order_service)]
