"""
Authentication API endpoints.

Login exchanges email and password for a signed identity token. Attempts are
rate limited per client address.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from cargo_api.api.deps import get_auth_service
from cargo_api.core.config import get_settings
from cargo_api.core.logging import get_logger
from cargo_api.core.rate_limit import limiter
from cargo_api.schemas.auth import LoginRequest, LoginResponse
from cargo_api.services.auth.service import AuthService, InvalidCredentialsError
from cargo_api.services.orders.errors import PersistenceError

logger = get_logger(__name__)
settings = get_settings()
router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Worker login",
    description="Authenticate with email and password. Returns a bearer token.",
)
@limiter.limit(settings.login_rate_limit)
async def login(
    request: Request,
    credentials: LoginRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> LoginResponse:
    """
    Authenticate worker and issue a token.

    Raises:
        HTTPException: 401 for invalid credentials
        HTTPException: 500 if the worker store is unavailable
    """
    try:
        result = await auth_service.login(credentials.email, credentials.password)
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    except PersistenceError as e:
        logger.error("Login failed - storage error", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to log in. Please try again later.",
        )

    return LoginResponse(
        token=result.token,
        expires_in=result.expires_in,
        user_id=result.worker_id,
        email=result.email,
        name=result.name,
        role=result.role,
    )
