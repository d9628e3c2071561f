"""
Append-only audit ledger for orders.

The ledger has no update or delete path; rows leave only when their order
is deleted and the database cascades. Callers are trusted to have checked
read access before listing.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cargo_api.core.logging import get_logger
from cargo_api.database.models.order import OrderHistory
from cargo_api.services.orders.changes import ChangeSet
from cargo_api.services.orders.enums import HistoryAction, OrderStatus
from cargo_api.services.orders.errors import PersistenceError

logger = get_logger(__name__)


def build_entry(
    order_id: uuid.UUID,
    worker_id: uuid.UUID,
    worker_name: str,
    action: HistoryAction,
    old_status: Optional[OrderStatus] = None,
    new_status: Optional[OrderStatus] = None,
    changes: Optional[ChangeSet] = None,
) -> OrderHistory:
    return OrderHistory(
        order_id=order_id,
        worker_id=worker_id,
        worker_name=worker_name,
        action=action,
        old_status=old_status,
        new_status=new_status,
        changes=changes.to_json() if changes else None,
    )


class AuditLedger:
    """
    Store of order history entries.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, entry: OrderHistory) -> OrderHistory:
        """
        Persist one history entry.

        Raises:
            PersistenceError: If the insert fails
        """
        try:
            self.session.add(entry)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to append history entry",
                order_id=str(entry.order_id),
                action=entry.action.value,
                error=str(e),
            )
            raise PersistenceError(
                "Failed to record order history",
                order_id=str(entry.order_id),
                error=str(e),
            ) from e

        logger.info(
            "History entry recorded",
            order_id=str(entry.order_id),
            action=entry.action.value,
            changed_fields=sorted(entry.changes) if entry.changes else [],
        )
        return entry

    async def list_by_order(self, order_id: uuid.UUID) -> list[OrderHistory]:
        """
        List history entries for an order, newest first.

        Raises:
            PersistenceError: If query fails
        """
        try:
            result = await self.session.execute(
                select(OrderHistory)
                .where(OrderHistory.order_id == order_id)
                .order_by(OrderHistory.created_at.desc())
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(
                "Failed to list order history",
                order_id=str(order_id),
                error=str(e),
            )
            raise PersistenceError(
                "Failed to list order history",
                order_id=str(order_id),
                error=str(e),
            ) from e
