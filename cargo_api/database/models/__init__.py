"""
Database models package.

Importing the models here registers them with ``Base.metadata`` for table
creation and Alembic.
"""

from cargo_api.database.base import Base, BaseModel, CreatedAtMixin, TimestampMixin, UUIDMixin
from cargo_api.database.models.order import Order, OrderHistory
from cargo_api.database.models.worker import Worker, WorkerRole

__all__ = [
    "Base",
    "BaseModel",
    "CreatedAtMixin",
    "TimestampMixin",
    "UUIDMixin",
    "Order",
    "OrderHistory",
    "Worker",
    "WorkerRole",
]
