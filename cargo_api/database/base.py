"""
Declarative base and the column mixins used by the cargo tables.

An async-aware DeclarativeBase plus UUID primary key and
timestamp mixins shared by the worker and order tables. Column types are
the generic SQLAlchemy ones so the schema maps to PostgreSQL natively and
to SQLite in tests.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Uuid, func
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


def utcnow() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Base(AsyncAttrs, DeclarativeBase):
    """Declarative base; `AsyncAttrs` allows awaiting lazy attributes."""

    __abstract__ = True


class UUIDMixin:
    """UUID primary key, generated client side on insert."""

    @declared_attr
    def id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid(as_uuid=True),
            primary_key=True,
            default=uuid.uuid4,
            nullable=False,
            comment="Row identifier",
        )


class CreatedAtMixin:
    """
    Mixin for an insert timestamp.

    Set client side at microsecond resolution so rows created in quick
    succession keep a stable newest-first order.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            server_default=func.now(),
            index=True,
            comment="Insert time (UTC)",
        )


class TimestampMixin(CreatedAtMixin):
    """Adds `updated_at`, refreshed on every ORM update."""

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            onupdate=utcnow,
            server_default=func.now(),
            comment="Last update time (UTC)",
        )


class BaseModel(Base, UUIDMixin, TimestampMixin):
    """
    Base model with UUID primary key and timestamps.

    Example:
        class Worker(BaseModel):
            __tablename__ = "workers"

            email: Mapped[str] = mapped_column(String(255), unique=True)
    """

    __abstract__ = True
