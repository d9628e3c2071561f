"""
Order persistence.

Loading, listing, inserting and deleting orders. Storage failures are logged
and re-raised as ``PersistenceError``; a duplicate order number on insert is
reported as ``OrderNumberConflictError`` so the caller can allocate again.
"""

import uuid
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cargo_api.core.logging import get_logger
from cargo_api.database.models.order import Order
from cargo_api.services.orders.errors import (
    OrderNumberConflictError,
    PersistenceError,
)

logger = get_logger(__name__)


class OrderRepository:
    """Order queries and writes bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, order_id: uuid.UUID) -> Optional[Order]:
        """
        Get order by ID with its owning worker loaded.

        Raises:
            PersistenceError: If query fails
        """
        try:
            return await self.session.get(Order, order_id)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch order",
                order_id=str(order_id),
                error=str(e),
            )
            raise PersistenceError(
                "Failed to fetch order",
                order_id=str(order_id),
                error=str(e),
            ) from e

    async def get_latest_for_prefix(
        self, worker_id: uuid.UUID, prefix: str
    ) -> Optional[Order]:
        """
        Get the worker's most recently created order whose number starts
        with ``prefix``.

        Raises:
            PersistenceError: If query fails
        """
        try:
            result = await self.session.execute(
                select(Order)
                .where(
                    Order.worker_id == worker_id,
                    Order.order_number.startswith(prefix, autoescape=True),
                )
                .order_by(Order.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch latest order for prefix",
                worker_id=str(worker_id),
                prefix=prefix,
                error=str(e),
            )
            raise PersistenceError(
                "Failed to fetch latest order",
                worker_id=str(worker_id),
                error=str(e),
            ) from e

    def _list_filters(
        self, worker_id: Optional[uuid.UUID], search: Optional[str]
    ) -> list:
        filters = []
        if worker_id is not None:
            filters.append(Order.worker_id == worker_id)
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(
                or_(
                    Order.order_number.ilike(pattern),
                    Order.sender_name.ilike(pattern),
                    Order.receiver_name.ilike(pattern),
                )
            )
        return filters

    async def list_orders(
        self,
        worker_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Order], int]:
        """
        List orders newest first with optional owner and search filters.

        Args:
            worker_id: Restrict to this worker's orders; ``None`` for all
            search: Substring matched against order number, sender and
                receiver name, ignoring case
            skip: Number of records to skip
            limit: Maximum records to return

        Returns:
            Tuple of (orders, total_count)

        Raises:
            PersistenceError: If query fails
        """
        filters = self._list_filters(worker_id, search)
        try:
            count_result = await self.session.execute(
                select(func.count()).select_from(Order).where(*filters)
            )
            total_count = count_result.scalar_one()

            result = await self.session.execute(
                select(Order)
                .where(*filters)
                .order_by(Order.created_at.desc())
                .offset(skip)
                .limit(limit)
            )
            orders = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(
                "Failed to list orders",
                worker_id=str(worker_id) if worker_id else None,
                search=search,
                error=str(e),
            )
            raise PersistenceError("Failed to list orders", error=str(e)) from e

        logger.debug(
            "Orders retrieved",
            worker_id=str(worker_id) if worker_id else None,
            count=len(orders),
            total_count=total_count,
        )
        return orders, total_count

    async def add(self, order: Order) -> Order:
        """
        Insert a new order.

        A failed insert rolls back the session's transaction, so callers
        must re-read any state they need afterwards.

        Raises:
            OrderNumberConflictError: If the order number is already taken
            PersistenceError: If the insert fails for any other reason
        """
        order_number = order.order_number
        try:
            self.session.add(order)
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            if "order_number" in str(e.orig):
                logger.warning(
                    "Order number already taken",
                    order_number=order_number,
                )
                raise OrderNumberConflictError(
                    "Order number already exists",
                    order_number=order_number,
                ) from e
            logger.error(
                "Order insert failed - integrity error",
                order_number=order_number,
                error=str(e),
            )
            raise PersistenceError(
                "Order creation failed due to data integrity violation",
                order_number=order_number,
                error=str(e),
            ) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Order insert failed - database error",
                order_number=order_number,
                error=str(e),
            )
            raise PersistenceError(
                "Order creation failed due to database error",
                order_number=order_number,
                error=str(e),
            ) from e

        return order

    async def save(self, order: Order) -> Order:
        """
        Flush pending changes on an order.

        Raises:
            PersistenceError: If the update fails
        """
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Order update failed",
                order_id=str(order.id),
                error=str(e),
            )
            raise PersistenceError(
                "Failed to update order",
                order_id=str(order.id),
                error=str(e),
            ) from e
        return order

    async def delete(self, order: Order) -> None:
        """
        Delete an order; its history goes with it through the foreign key.

        Raises:
            PersistenceError: If the delete fails
        """
        try:
            await self.session.delete(order)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Order delete failed",
                order_id=str(order.id),
                error=str(e),
            )
            raise PersistenceError(
                "Failed to delete order",
                order_id=str(order.id),
                error=str(e),
            ) from e
