"""
Order and order history models.

An order is one cargo shipment registered by a worker. Every accepted
mutation of an order appends one ``OrderHistory`` row; history rows are
never updated and disappear only with their order.
"""

import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cargo_api.database.base import Base, BaseModel, CreatedAtMixin, UUIDMixin
from cargo_api.database.models.worker import Worker
from cargo_api.services.orders.enums import HistoryAction, OrderStatus


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Order(BaseModel):
    """
    Cargo shipment order.

    Attributes:
        id: Unique order identifier (UUID)
        order_number: Human-readable number, worker code prefix plus counter
        sender_name: Sender display name
        sender_phone: Sender phone number
        receiver_name: Receiver display name
        receiver_phone: Receiver phone number
        cargo_type: Free text cargo description
        weight: Optional weight
        price: Agreed price
        notes: Free text notes
        photo_url: Public URL of the package photo
        status: Current lifecycle status
        worker_id: Worker who owns the order
        created_at: Creation timestamp (from BaseModel)
        updated_at: Last modification timestamp (from BaseModel)
    """

    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="Human-readable order number",
    )

    sender_name: Mapped[str] = mapped_column(String(255), nullable=False)
    sender_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    receiver_name: Mapped[str] = mapped_column(String(255), nullable=False)
    receiver_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    cargo_type: Mapped[str] = mapped_column(String(255), nullable=False)

    weight: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=True,
        comment="Cargo weight",
    )

    price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=True,
        comment="Shipment price",
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    photo_url: Mapped[Optional[str]] = mapped_column(
        String(1024),
        nullable=True,
        comment="Public URL of the package photo",
    )

    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(
            OrderStatus,
            name="order_status",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=OrderStatus.RECEIVED_PACKAGE,
        index=True,
        comment="Current order status",
    )

    worker_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("workers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Worker who owns the order",
    )

    worker: Mapped[Worker] = relationship(
        Worker,
        foreign_keys=[worker_id],
        lazy="selectin",
    )

    history: Mapped[list["OrderHistory"]] = relationship(
        "OrderHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
        order_by="OrderHistory.created_at.desc()",
    )

    __table_args__ = (
        Index("ix_orders_worker_created", "worker_id", "created_at"),
        CheckConstraint(
            "weight IS NULL OR weight >= 0",
            name="ck_orders_weight_non_negative",
        ),
        CheckConstraint(
            "price IS NULL OR price >= 0",
            name="ck_orders_price_non_negative",
        ),
        {"comment": "Cargo shipment orders"},
    )

    @property
    def worker_name(self) -> Optional[str]:
        return self.worker.name if self.worker is not None else None

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, order_number={self.order_number}, "
            f"worker_id={self.worker_id}, status={self.status.value})>"
        )


class OrderHistory(Base, UUIDMixin, CreatedAtMixin):
    """
    Immutable audit record for one accepted order mutation.

    Attributes:
        id: Unique history record identifier (UUID)
        order_id: Parent order
        worker_id: Acting worker, cleared if the worker is removed
        worker_name: Acting worker's display name at the time of the change
        action: created, status_changed or updated
        old_status: Status before the change, for status changes
        new_status: Status after the change
        changes: Field level diff, ``{field: {"from": old, "to": new}}``
        created_at: When the change was recorded
    """

    __tablename__ = "order_history"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        comment="Parent order identifier",
    )

    worker_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("workers.id", ondelete="SET NULL"),
        nullable=True,
        comment="Worker who made the change",
    )

    worker_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name snapshot of the acting worker",
    )

    action: Mapped[HistoryAction] = mapped_column(
        SQLEnum(
            HistoryAction,
            name="history_action",
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    old_status: Mapped[Optional[OrderStatus]] = mapped_column(
        SQLEnum(
            OrderStatus,
            name="order_status",
            values_callable=_enum_values,
        ),
        nullable=True,
    )

    new_status: Mapped[Optional[OrderStatus]] = mapped_column(
        SQLEnum(
            OrderStatus,
            name="order_status",
            values_callable=_enum_values,
        ),
        nullable=True,
    )

    changes: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
        comment="Field level changes stored as JSON",
    )

    order: Mapped[Order] = relationship(
        Order,
        back_populates="history",
        lazy="raise",
    )

    __table_args__ = (
        Index("ix_order_history_order_created", "order_id", "created_at"),
        {"comment": "Append-only audit trail of order changes"},
    )

    def __repr__(self) -> str:
        return (
            f"<OrderHistory(id={self.id}, order_id={self.order_id}, "
            f"action={self.action.value})>"
        )
