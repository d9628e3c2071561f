"""
FastAPI application for the cargo order service.

Wires CORS, request correlation, login throttling, the JSON error handlers,
the health probes and the auth and order routers.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from cargo_api.api.v1 import auth_router, orders_router
from cargo_api.core.config import get_settings
from cargo_api.core.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    log_performance,
    set_request_id,
)
from cargo_api.core.rate_limit import limiter
from cargo_api.database.connection import (
    check_database_health,
    close_database_connections,
)

REQUEST_ID_HEADER = "X-Request-ID"

configure_logging()
logger = get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Announce startup; dispose of pooled connections on shutdown."""
    logger.info(
        "Cargo API starting",
        environment=settings.environment,
        debug=settings.debug,
        version=settings.app_version,
    )

    yield

    with log_performance(logger, "application_shutdown"):
        await close_database_connections()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Cargo shipment ordering backend API",
    lifespan=lifespan,
    debug=settings.debug,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
    expose_headers=[REQUEST_ID_HEADER],
)


@app.middleware("http")
async def correlate_requests(request: Request, call_next):
    """
    Bind a request id for the duration of the request and time it.

    The id comes from the client's ``X-Request-ID`` header when present and
    is always echoed back on the response.
    """
    request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
    try:
        with log_performance(
            logger,
            "http_request",
            method=request.method,
            path=request.url.path,
        ) as timer:
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "Request handled",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=timer.duration_ms,
        )
        return response
    finally:
        clear_context()


def _error_body(error: str, message: str, **extra: Any) -> dict[str, Any]:
    return {
        "error": error,
        "message": message,
        **extra,
        "request_id": get_request_id(),
    }


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ctx may hold exception instances that JSON cannot encode
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = jsonable_errors(exc)
    logger.info(
        "Request rejected by validation",
        path=request.url.path,
        fields=[".".join(str(part) for part in e.get("loc", ())) for e in details],
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(
            "Validation Error", "Request validation failed", details=details
        ),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Last resort: log with traceback, answer 500 without internals."""
    logger.error(
        "Unhandled exception",
        method=request.method,
        path=request.url.path,
        error_type=type(exc).__name__,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("Internal Server Error", "An unexpected error occurred"),
    )


def _service_info(**extra: str) -> dict[str, str]:
    return {"service": settings.app_name, "version": settings.app_version, **extra}


@app.get("/health", tags=["Health"], summary="Process health")
async def health_check() -> dict[str, str]:
    return _service_info(status="healthy", environment=settings.environment)


@app.get("/live", tags=["Health"], summary="Liveness probe")
async def liveness_check() -> dict[str, str]:
    return _service_info(status="alive")


@app.get("/ready", tags=["Health"], summary="Readiness probe")
async def readiness_check():
    """503 until the database answers a trivial query."""
    if await check_database_health(max_retries=1):
        return _service_info(status="ready", database="healthy")

    logger.warning("Readiness probe failed", database="unhealthy")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=_service_info(status="not_ready", database="unhealthy"),
    )


app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(orders_router, prefix=settings.api_prefix)
