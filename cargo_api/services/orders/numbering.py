"""
Order number allocation.

A worker code such as ``HS12`` splits into a letter prefix (``HS``) and a
zero-padded counter (``12``, two digits wide). A worker's first order gets
the code itself; every later order continues from the trailing digits of the
worker's most recent order with the same prefix.
"""

import re
import uuid
from dataclasses import dataclass
from typing import Optional

from cargo_api.core.logging import get_logger
from cargo_api.services.auth.repository import WorkerRepository
from cargo_api.services.orders.errors import (
    InvalidWorkerCodeError,
    WorkerNotFoundError,
)
from cargo_api.services.orders.repository import OrderRepository

logger = get_logger(__name__)

WORKER_CODE_PATTERN = re.compile(r"^([A-Za-z]+)(\d+)$")
TRAILING_DIGITS_PATTERN = re.compile(r"(\d+)$")


@dataclass(frozen=True)
class WorkerCode:
    """Parsed worker code."""

    prefix: str
    starting_number: int
    digit_width: int

    @classmethod
    def parse(cls, code: Optional[str]) -> "WorkerCode":
        """
        Split a worker code into prefix and counter.

        Raises:
            InvalidWorkerCodeError: If code is missing or not letters then digits
        """
        if code is None:
            raise InvalidWorkerCodeError("Worker has no assigned code")

        match = WORKER_CODE_PATTERN.match(code.strip())
        if match is None:
            raise InvalidWorkerCodeError(
                f"Invalid worker code: {code!r}",
                code=code,
            )

        prefix, digits = match.groups()
        return cls(
            prefix=prefix,
            starting_number=int(digits),
            digit_width=len(digits),
        )

    def format(self, number: int) -> str:
        # Wider numbers are never truncated
        return f"{self.prefix}{number:0{self.digit_width}d}"


def next_order_number(code: WorkerCode, last_order_number: Optional[str]) -> str:
    """Compute the number that follows ``last_order_number`` for ``code``."""
    if last_order_number is None:
        return code.format(code.starting_number)

    match = TRAILING_DIGITS_PATTERN.search(last_order_number)
    if match is None:
        logger.warning(
            "Unparseable order number, restarting from worker code",
            last_order_number=last_order_number,
            prefix=code.prefix,
        )
        return code.format(code.starting_number)

    return code.format(int(match.group(1)) + 1)


class OrderNumberAllocator:
    """
    Computes the next order number for a worker.

    Allocation is a read followed by a computation; nothing is persisted
    here. The unique constraint on ``orders.order_number`` rejects a number
    issued twice under concurrent creation, and the caller retries.
    """

    def __init__(self, orders: OrderRepository, workers: WorkerRepository):
        self.orders = orders
        self.workers = workers

    async def allocate(
        self, worker_id: uuid.UUID, collided_with: Optional[str] = None
    ) -> str:
        """
        Allocate the next order number for a worker.

        ``collided_with`` is a number the previous attempt could not insert.
        The next candidate then continues from it rather than from the
        worker's latest order, which may sit below a number that is already
        taken (an order reassigned away, or a prefix shared with another
        worker).

        Raises:
            WorkerNotFoundError: If worker does not exist
            InvalidWorkerCodeError: If the worker's code is malformed
        """
        worker = await self.workers.get_by_id(worker_id)
        if worker is None:
            raise WorkerNotFoundError(
                "Worker not found",
                worker_id=str(worker_id),
            )

        code = WorkerCode.parse(worker.code)
        if collided_with is not None:
            order_number = next_order_number(code, collided_with)
            logger.debug(
                "Order number allocated after collision",
                worker_id=str(worker_id),
                order_number=order_number,
                collided_with=collided_with,
            )
            return order_number

        last = await self.orders.get_latest_for_prefix(worker_id, code.prefix)
        order_number = next_order_number(
            code,
            last.order_number if last is not None else None,
        )

        logger.debug(
            "Order number allocated",
            worker_id=str(worker_id),
            order_number=order_number,
            previous=last.order_number if last is not None else None,
        )
        return order_number
