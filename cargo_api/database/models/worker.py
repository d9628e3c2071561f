"""
Worker model with role management.

A worker is a registered operator: field crew register shipments, while
executives see and manage every order. The assigned ``code`` seeds the
worker's order numbers.
"""

import enum
from typing import Optional

from sqlalchemy import Enum as SQLEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from cargo_api.database.base import BaseModel


class WorkerRole(str, enum.Enum):
    """Worker role enumeration for role-based access control."""

    WORKER = "worker"
    EXECUTIVE = "executive"

    @classmethod
    def from_string(cls, value: str) -> "WorkerRole":
        """
        Convert string to WorkerRole enum.

        Raises:
            ValueError: If value is not a valid role
        """
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Invalid role: {value}")


class Worker(BaseModel):
    """
    Worker account.

    Attributes:
        id: Unique worker identifier (UUID)
        email: Login email (unique, stored lower case)
        password_hash: Bcrypt hashed password
        name: Display name shown on orders and history entries
        code: Order number seed such as ``HS12``; letters then digits
        role: ``worker`` or ``executive``
    """

    __tablename__ = "workers"

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Login email address",
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name",
    )

    code: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
        comment="Order number seed, letter prefix followed by digits",
    )

    role: Mapped[WorkerRole] = mapped_column(
        SQLEnum(
            WorkerRole,
            name="worker_role",
            values_callable=lambda roles: [r.value for r in roles],
        ),
        nullable=False,
        default=WorkerRole.WORKER,
        comment="Access role",
    )

    @property
    def is_executive(self) -> bool:
        return self.role == WorkerRole.EXECUTIVE

    def __repr__(self) -> str:
        return f"<Worker(id={self.id}, email={self.email}, role={self.role})>"
