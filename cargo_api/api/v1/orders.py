"""
Order API endpoints.

Routes translate lifecycle service errors into HTTP responses carrying a
stable ``code`` so the mobile client can tell "not your order" apart from
"status already locked" or "malformed input".
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Response, status

from cargo_api.api.deps import CurrentIdentity, ExecutiveIdentity, OrderServiceDep
from cargo_api.core.logging import get_logger
from cargo_api.schemas.orders import (
    HistoryEntryResponse,
    NextOrderNumberResponse,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    OrderUpdateRequest,
    PhotoUploadRequest,
    PhotoUploadResponse,
)
from cargo_api.services.orders.errors import OrderServiceError
from cargo_api.services.storage.photos import PhotoStorageError

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])

ERROR_STATUS_CODES = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "invalid_status": status.HTTP_400_BAD_REQUEST,
    "invalid_worker_code": status.HTTP_400_BAD_REQUEST,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "edit_not_allowed": status.HTTP_409_CONFLICT,
    "order_number_conflict": status.HTTP_409_CONFLICT,
    "persistence_failure": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _to_http_exception(error: OrderServiceError) -> HTTPException:
    status_code = ERROR_STATUS_CODES.get(
        error.code, status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    if status_code >= 500:
        logger.error(
            "Order operation failed",
            code=error.code,
            error=str(error),
            details=error.context,
        )
        message = "Order operation failed. Please try again later."
    else:
        logger.info("Order request rejected", code=error.code, reason=str(error))
        message = str(error)

    return HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": message},
    )


@router.get(
    "/next-order-number",
    response_model=NextOrderNumberResponse,
    summary="Preview next order number",
)
async def get_next_order_number(
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> NextOrderNumberResponse:
    """Number the caller's next order would get. Nothing is reserved."""
    try:
        order_number = await service.preview_next_order_number(identity)
    except OrderServiceError as e:
        raise _to_http_exception(e)
    return NextOrderNumberResponse(order_number=order_number)


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="Own orders for workers, all orders for executives.",
)
async def list_orders(
    identity: CurrentIdentity,
    service: OrderServiceDep,
    search: Optional[str] = Query(
        None,
        max_length=100,
        description="Substring of order number, sender or receiver name",
    ),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(50, ge=1, le=200, description="Maximum records to return"),
) -> OrderListResponse:
    try:
        orders, total_count = await service.list_orders(
            identity, search=search, skip=skip, limit=limit
        )
    except OrderServiceError as e:
        raise _to_http_exception(e)

    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total_count=total_count,
        skip=skip,
        limit=limit,
    )


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order",
)
async def create_order(
    payload: OrderCreateRequest,
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> OrderResponse:
    """
    Register a shipment under the caller's next order number.

    A photo that cannot be stored does not fail the request; the order is
    returned with ``photo_url`` null.
    """
    try:
        order = await service.create_order(
            identity,
            payload.order_fields(),
            photo_base64=payload.photo_base64,
        )
    except OrderServiceError as e:
        raise _to_http_exception(e)
    return OrderResponse.model_validate(order)


@router.post(
    "/upload-photo",
    response_model=PhotoUploadResponse,
    summary="Upload a package photo",
)
async def upload_photo(
    payload: PhotoUploadRequest,
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> PhotoUploadResponse:
    try:
        photo_url = service.upload_photo(payload.photo_base64, payload.order_number)
    except PhotoStorageError as e:
        logger.warning(
            "Photo upload rejected",
            worker_id=str(identity.worker_id),
            error=str(e),
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "storage_failure", "message": str(e)},
        )
    return PhotoUploadResponse(photo_url=photo_url)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
)
async def get_order(
    order_id: UUID,
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> OrderResponse:
    try:
        order = await service.get_order(identity, order_id)
    except OrderServiceError as e:
        raise _to_http_exception(e)
    return OrderResponse.model_validate(order)


@router.get(
    "/{order_id}/history",
    response_model=list[HistoryEntryResponse],
    summary="Get order history",
)
async def get_order_history(
    order_id: UUID,
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> list[HistoryEntryResponse]:
    try:
        entries = await service.list_history(identity, order_id)
    except OrderServiceError as e:
        raise _to_http_exception(e)
    return [HistoryEntryResponse.model_validate(entry) for entry in entries]


@router.put(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Update order",
)
async def update_order(
    order_id: UUID,
    payload: OrderUpdateRequest,
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> OrderResponse:
    """Apply the fields present in the body; absent fields are left alone."""
    try:
        order = await service.update_order(identity, order_id, payload.patch())
    except OrderServiceError as e:
        raise _to_http_exception(e)
    return OrderResponse.model_validate(order)


@router.put(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
)
async def update_order_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> OrderResponse:
    try:
        order = await service.update_status(identity, order_id, payload.status)
    except OrderServiceError as e:
        raise _to_http_exception(e)
    return OrderResponse.model_validate(order)


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete order",
    description="Permanently delete an order and its history. Executives only.",
)
async def delete_order(
    order_id: UUID,
    identity: ExecutiveIdentity,
    service: OrderServiceDep,
) -> Response:
    try:
        await service.delete_order(identity, order_id)
    except OrderServiceError as e:
        raise _to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
