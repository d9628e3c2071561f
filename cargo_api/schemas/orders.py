"""
Order Pydantic schemas for API request/response validation.

Request schemas enforce the required sender, receiver, cargo and price
fields before an order reaches the lifecycle service; response schemas are
read straight from the ORM rows.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)

from cargo_api.services.orders.enums import HistoryAction, OrderStatus

REQUIRED_TEXT_FIELDS = (
    "sender_name",
    "sender_phone",
    "receiver_name",
    "receiver_phone",
    "cargo_type",
)


class OrderCreateRequest(BaseModel):
    """Request schema for registering a new shipment."""

    model_config = ConfigDict(str_strip_whitespace=True)

    sender_name: str = Field(..., min_length=1, max_length=255)
    sender_phone: str = Field(..., min_length=1, max_length=50)
    receiver_name: str = Field(..., min_length=1, max_length=255)
    receiver_phone: str = Field(..., min_length=1, max_length=50)
    cargo_type: str = Field(..., min_length=1, max_length=255)
    weight: Optional[Decimal] = Field(
        None,
        ge=0,
        max_digits=10,
        decimal_places=2,
        description="Cargo weight",
    )
    price: Decimal = Field(
        ...,
        ge=0,
        max_digits=12,
        decimal_places=2,
        description="Shipment price",
    )
    notes: Optional[str] = Field(None, max_length=2000)
    photo_base64: Optional[str] = Field(
        None,
        description="Package photo as base64, optionally a data URI",
    )

    def order_fields(self) -> dict[str, Any]:
        return self.model_dump(exclude={"photo_base64"})


class OrderUpdateRequest(BaseModel):
    """
    Partial order update.

    Only fields present in the request body are applied. Required text fields
    may be changed but not cleared.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    sender_name: Optional[str] = Field(None, min_length=1, max_length=255)
    sender_phone: Optional[str] = Field(None, min_length=1, max_length=50)
    receiver_name: Optional[str] = Field(None, min_length=1, max_length=255)
    receiver_phone: Optional[str] = Field(None, min_length=1, max_length=50)
    cargo_type: Optional[str] = Field(None, min_length=1, max_length=255)
    weight: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = Field(None, max_length=2000)
    photo_url: Optional[str] = Field(None, max_length=1024)
    status: Optional[str] = Field(
        None,
        description="Target status; checked against the caller's role",
    )
    worker_id: Optional[UUID] = Field(
        None,
        description="New owning worker, executives only",
    )

    @field_validator(*REQUIRED_TEXT_FIELDS, "price", mode="before")
    @classmethod
    def reject_explicit_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Field cannot be cleared")
        return value

    def patch(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class OrderStatusUpdate(BaseModel):
    """Request schema for the status-only update."""

    status: str = Field(..., min_length=1, description="Target status")


class OrderResponse(BaseModel):
    """Response schema for one order."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    sender_name: str
    sender_phone: str
    receiver_name: str
    receiver_phone: str
    cargo_type: str
    weight: Optional[Decimal] = None
    price: Optional[Decimal] = None
    notes: Optional[str] = None
    photo_url: Optional[str] = None
    status: OrderStatus
    worker_id: UUID
    worker_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_serializer("weight", "price")
    def serialize_decimal(self, value: Optional[Decimal]) -> Optional[float]:
        return float(value) if value is not None else None


class OrderListResponse(BaseModel):
    """Paginated order list."""

    orders: list[OrderResponse]
    total_count: int
    skip: int
    limit: int


class HistoryEntryResponse(BaseModel):
    """Response schema for one audit entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    worker_id: Optional[UUID] = None
    worker_name: str
    action: HistoryAction
    old_status: Optional[OrderStatus] = None
    new_status: Optional[OrderStatus] = None
    changes: Optional[dict[str, Any]] = None
    created_at: datetime


class NextOrderNumberResponse(BaseModel):
    order_number: str


class PhotoUploadRequest(BaseModel):
    photo_base64: str = Field(..., min_length=1)
    order_number: Optional[str] = Field(None, max_length=50)


class PhotoUploadResponse(BaseModel):
    photo_url: str
