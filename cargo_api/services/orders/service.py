"""
Order lifecycle service.

Creates orders with allocated numbers, applies role-gated status changes
and field edits, deletes orders for executives, and writes exactly one audit
entry per accepted mutation. Every check runs before the first write, so a
rejected call leaves neither a row change nor a history entry behind.
"""

import uuid
from typing import Any, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cargo_api.core.config import get_settings
from cargo_api.core.logging import get_logger
from cargo_api.database.base import utcnow
from cargo_api.database.models.order import Order, OrderHistory
from cargo_api.database.models.worker import Worker
from cargo_api.services.auth.repository import WorkerRepository
from cargo_api.services.auth.service import ActingIdentity
from cargo_api.services.orders.changes import (
    EDITABLE_FIELD_NAMES,
    ChangeSet,
    apply_changes,
    diff_fields,
)
from cargo_api.services.orders.enums import HistoryAction, OrderStatus
from cargo_api.services.orders.errors import (
    EditNotAllowedError,
    ForbiddenError,
    InvalidStatusError,
    OrderNotFoundError,
    OrderNumberConflictError,
    PersistenceError,
    WorkerNotFoundError,
)
from cargo_api.services.orders.history import AuditLedger, build_entry
from cargo_api.services.orders.numbering import OrderNumberAllocator
from cargo_api.services.orders.repository import OrderRepository
from cargo_api.services.orders.state_machine import OrderStateMachine
from cargo_api.services.storage.photos import PhotoStorage, PhotoStorageError

logger = get_logger(__name__)
settings = get_settings()

CREATE_FIELDS = (
    "sender_name",
    "sender_phone",
    "receiver_name",
    "receiver_phone",
    "cargo_type",
    "weight",
    "price",
    "notes",
)


class OrderLifecycleService:
    """
    Order service orchestrating numbering, lifecycle rules and auditing.

    Attributes:
        orders: Order repository for data access
        workers: Worker repository for owner lookups
        ledger: Append-only order history store
        allocator: Order number allocator
        state_machine: Status transition and edit rules
        photo_storage: Optional photo store used on create and delete
    """

    def __init__(
        self,
        session: AsyncSession,
        photo_storage: Optional[PhotoStorage] = None,
        allocator: Optional[OrderNumberAllocator] = None,
    ):
        """
        Initialize order lifecycle service.

        Args:
            session: Async database session
            photo_storage: Optional photo store; without one, photos are skipped
            allocator: Optional allocator override
        """
        self.orders = OrderRepository(session)
        self.workers = WorkerRepository(session)
        self.ledger = AuditLedger(session)
        self.allocator = allocator or OrderNumberAllocator(self.orders, self.workers)
        self.state_machine = OrderStateMachine()
        self.photo_storage = photo_storage

    async def _require_worker(self, worker_id: uuid.UUID) -> Worker:
        worker = await self.workers.get_by_id(worker_id)
        if worker is None:
            raise WorkerNotFoundError("Worker not found", worker_id=str(worker_id))
        return worker

    async def _get_accessible_order(
        self, identity: ActingIdentity, order_id: uuid.UUID
    ) -> Order:
        order = await self.orders.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError("Order not found", order_id=str(order_id))

        if not identity.is_executive and order.worker_id != identity.worker_id:
            logger.warning(
                "Order access denied",
                order_id=str(order_id),
                worker_id=str(identity.worker_id),
            )
            raise ForbiddenError(
                "Not authorized to access this order",
                order_id=str(order_id),
            )
        return order

    def _store_photo(self, photo_base64: str, order_number: str) -> Optional[str]:
        if self.photo_storage is None:
            logger.warning(
                "Photo supplied but no storage configured",
                order_number=order_number,
            )
            return None
        try:
            return self.photo_storage.upload_order_photo(photo_base64, order_number)
        except PhotoStorageError as e:
            logger.warning(
                "Photo upload failed, order kept without photo",
                order_number=order_number,
                error=str(e),
                details=e.context,
            )
            return None

    async def preview_next_order_number(self, identity: ActingIdentity) -> str:
        """Number the caller's next order would receive; nothing is reserved."""
        return await self.allocator.allocate(identity.worker_id)

    async def create_order(
        self,
        identity: ActingIdentity,
        fields: Mapping[str, Any],
        photo_base64: Optional[str] = None,
    ) -> Order:
        """
        Create an order owned by the acting worker.

        Allocation and insert are retried when another request claims the
        same number first. A photo that cannot be stored is dropped and the
        order is created without one.

        Args:
            identity: Acting worker
            fields: Validated sender, receiver, cargo and price fields
            photo_base64: Optional base64 photo payload

        Returns:
            Created order

        Raises:
            WorkerNotFoundError: If the acting worker no longer exists
            InvalidWorkerCodeError: If the worker's code is malformed
            OrderNumberConflictError: If every allocation attempt collided
            PersistenceError: If the row store fails
        """
        logger.info("Creating order", worker_id=str(identity.worker_id))

        max_attempts = settings.order_number_max_attempts
        order: Optional[Order] = None
        order_number: Optional[str] = None
        collided_with: Optional[str] = None

        for attempt in range(1, max_attempts + 1):
            worker = await self._require_worker(identity.worker_id)
            order_number = await self.allocator.allocate(
                identity.worker_id, collided_with=collided_with
            )

            candidate = Order(
                order_number=order_number,
                status=OrderStatus.RECEIVED_PACKAGE,
                worker_id=worker.id,
                worker=worker,
                **{name: fields.get(name) for name in CREATE_FIELDS},
            )
            try:
                order = await self.orders.add(candidate)
                break
            except OrderNumberConflictError:
                logger.warning(
                    "Order number collision, allocating again",
                    order_number=order_number,
                    attempt=attempt,
                    max_attempts=max_attempts,
                )
                collided_with = order_number

        if order is None:
            raise OrderNumberConflictError(
                f"Could not allocate a free order number after {max_attempts} attempts",
                worker_id=str(identity.worker_id),
                last_order_number=order_number,
            )

        photo_url = None
        if photo_base64:
            photo_url = self._store_photo(photo_base64, order.order_number)

        try:
            if photo_url is not None:
                order.photo_url = photo_url
                await self.orders.save(order)

            await self.ledger.append(
                build_entry(
                    order_id=order.id,
                    worker_id=identity.worker_id,
                    worker_name=identity.name,
                    action=HistoryAction.CREATED,
                    new_status=OrderStatus.RECEIVED_PACKAGE,
                )
            )
        except PersistenceError:
            if photo_url is not None:
                # no order row will reference the uploaded object
                self.photo_storage.delete_photo(photo_url)
            raise

        logger.info(
            "Order created successfully",
            order_id=str(order.id),
            order_number=order.order_number,
            has_photo=order.photo_url is not None,
        )
        return order

    async def get_order(self, identity: ActingIdentity, order_id: uuid.UUID) -> Order:
        """
        Get one order.

        Raises:
            OrderNotFoundError: If order does not exist
            ForbiddenError: If a worker asks for another worker's order
        """
        return await self._get_accessible_order(identity, order_id)

    async def list_orders(
        self,
        identity: ActingIdentity,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Order], int]:
        """
        List orders visible to the caller: all of them for executives, own
        orders for workers.
        """
        owner_id = None if identity.is_executive else identity.worker_id
        return await self.orders.list_orders(
            worker_id=owner_id,
            search=search,
            skip=skip,
            limit=limit,
        )

    async def list_history(
        self, identity: ActingIdentity, order_id: uuid.UUID
    ) -> list[OrderHistory]:
        """
        List an order's audit entries, newest first.

        Raises:
            OrderNotFoundError: If order does not exist
            ForbiddenError: If a worker asks for another worker's order
        """
        order = await self._get_accessible_order(identity, order_id)
        return await self.ledger.list_by_order(order.id)

    async def update_order(
        self,
        identity: ActingIdentity,
        order_id: uuid.UUID,
        patch: Mapping[str, Any],
    ) -> Order:
        """
        Apply a partial update to an order.

        ``patch`` may carry ``status``, ``worker_id`` and any editable field.
        Keys that are absent are left alone. A patch equal to the current
        values changes nothing and records nothing.

        Raises:
            OrderNotFoundError: If order does not exist
            ForbiddenError: If the caller may not touch the order or reassign it
            InvalidStatusError: If ``status`` is not a known status
            InvalidTransitionError: If the caller's role may not make the change
            WorkerNotFoundError: If the reassignment target does not exist
            EditNotAllowedError: If a worker edits fields of a locked order
            PersistenceError: If the row store fails
        """
        order = await self._get_accessible_order(identity, order_id)
        current_status = order.status

        target_status: Optional[OrderStatus] = None
        if patch.get("status") is not None:
            try:
                requested = OrderStatus.from_string(patch["status"])
            except ValueError as e:
                raise InvalidStatusError(str(e), status=patch["status"]) from e
            if requested != current_status:
                self.state_machine.ensure_transition(
                    identity.role, current_status, requested
                )
                target_status = requested

        new_worker: Optional[Worker] = None
        requested_worker_id = patch.get("worker_id")
        if requested_worker_id is not None and requested_worker_id != order.worker_id:
            if not identity.is_executive:
                raise ForbiddenError(
                    "Only executives can reassign orders",
                    order_id=str(order_id),
                )
            new_worker = await self._require_worker(requested_worker_id)

        field_patch = {k: v for k, v in patch.items() if k in EDITABLE_FIELD_NAMES}
        field_changes = diff_fields(order, field_patch)

        if field_changes and not self.state_machine.can_edit(
            identity.role, current_status
        ):
            if target_status is None:
                raise EditNotAllowedError(
                    f"Order fields cannot be edited once status is "
                    f"{current_status.value}",
                    order_id=str(order_id),
                    status=current_status.value,
                    fields=field_changes.names(),
                )
            logger.info(
                "Ignoring field edits on locked order, status change accepted",
                order_id=str(order_id),
                fields=field_changes.names(),
            )
            field_changes = ChangeSet()

        changes = ChangeSet()
        if target_status is not None:
            changes.record("status", current_status, target_status)
        if new_worker is not None:
            changes.record("worker_id", order.worker_id, new_worker.id)
        changes.merge(field_changes)

        if not changes:
            logger.debug("Update produced no changes", order_id=str(order_id))
            return order

        apply_changes(order, field_changes)
        if target_status is not None:
            order.status = target_status
        if new_worker is not None:
            order.worker = new_worker
            order.worker_id = new_worker.id
        order.updated_at = utcnow()
        await self.orders.save(order)

        action = (
            HistoryAction.STATUS_CHANGED
            if target_status is not None
            else HistoryAction.UPDATED
        )
        await self.ledger.append(
            build_entry(
                order_id=order.id,
                worker_id=identity.worker_id,
                worker_name=identity.name,
                action=action,
                old_status=current_status if target_status is not None else None,
                new_status=target_status,
                changes=changes,
            )
        )

        logger.info(
            "Order updated",
            order_id=str(order.id),
            action=action.value,
            changed_fields=changes.names(),
        )
        return order

    async def update_status(
        self, identity: ActingIdentity, order_id: uuid.UUID, status: str
    ) -> Order:
        """Shorthand for ``update_order`` with only ``status`` set."""
        return await self.update_order(identity, order_id, {"status": status})

    async def delete_order(self, identity: ActingIdentity, order_id: uuid.UUID) -> None:
        """
        Permanently delete an order and its history. Executives only.

        Raises:
            ForbiddenError: If the caller is not an executive
            OrderNotFoundError: If order does not exist
            PersistenceError: If the row store fails
        """
        if not identity.is_executive:
            raise ForbiddenError(
                "Only executives can delete orders",
                order_id=str(order_id),
            )

        order = await self.orders.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError("Order not found", order_id=str(order_id))

        photo_url = order.photo_url
        await self.orders.delete(order)

        if photo_url and self.photo_storage is not None:
            self.photo_storage.delete_photo(photo_url)

        logger.info(
            "Order deleted",
            order_id=str(order_id),
            deleted_by=str(identity.worker_id),
        )

    def upload_photo(self, photo_base64: str, order_number: Optional[str] = None) -> str:
        """
        Store a standalone photo and return its URL.

        Raises:
            PhotoStorageError: If no store is configured or the upload fails
        """
        if self.photo_storage is None:
            raise PhotoStorageError("Photo storage is not configured")
        return self.photo_storage.upload_order_photo(
            photo_base64, order_number or "photo"
        )
