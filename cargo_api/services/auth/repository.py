"""
Worker data access.
"""

import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cargo_api.core.logging import get_logger
from cargo_api.database.models.worker import Worker
from cargo_api.services.orders.errors import PersistenceError

logger = get_logger(__name__)


class WorkerRepository:
    """
    Repository for worker lookups.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, worker_id: uuid.UUID) -> Optional[Worker]:
        """
        Get worker by ID.

        Raises:
            PersistenceError: If query fails
        """
        try:
            return await self.session.get(Worker, worker_id)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch worker",
                worker_id=str(worker_id),
                error=str(e),
            )
            raise PersistenceError(
                "Failed to fetch worker",
                worker_id=str(worker_id),
                error=str(e),
            ) from e

    async def get_by_email(self, email: str) -> Optional[Worker]:
        """
        Get worker by email, ignoring case.

        Raises:
            PersistenceError: If query fails
        """
        try:
            result = await self.session.execute(
                select(Worker).where(func.lower(Worker.email) == email.strip().lower())
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Failed to fetch worker by email", error=str(e))
            raise PersistenceError(
                "Failed to fetch worker by email",
                error=str(e),
            ) from e
