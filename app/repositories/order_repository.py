"""
Order repository.

The only place that reads or writes order rows. Every write queues a
change event on the session; events are published to the change feed
after commit (see app.services.order_events).
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import logging
import uuid

from sqlalchemy import select, func, update, and_, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateTrackingCodeError, NotFoundError, StorageError
from app.models.order import Order, SupplierPaymentStatus
from app.repositories.base import storage_errors
from app.services.order_events import ChangeEvent, ChangeType, queue_change

logger = logging.getLogger(__name__)


def order_snapshot(order: Order) -> Dict[str, Any]:
    """JSON-ready copy of an order for change subscribers."""
    from app.schemas.order import OrderResponse

    return OrderResponse.model_validate(order).model_dump(mode="json")


class OrderRepository:
    """Persistence for the Order aggregate and its child rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _queue(self, change_type: ChangeType, order: Order) -> None:
        record = order_snapshot(order) if change_type != ChangeType.DELETE else None
        updated_at = order.updated_at if change_type != ChangeType.DELETE else None
        change = ChangeEvent(change_type=change_type, order_id=str(order.id), record=record)
        if updated_at is not None:
            change.updated_at = updated_at
        queue_change(self.db.info, change)

    # ==================== READ ====================

    async def find_by_id(self, order_id: uuid.UUID, refresh: bool = False) -> Optional[Order]:
        stmt = select(Order).where(Order.id == order_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        with storage_errors("load order"):
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()

    async def find_by_tracking_code(self, tracking_code: str) -> Optional[Order]:
        stmt = select(Order).where(Order.tracking_code == tracking_code)
        with storage_errors("load order"):
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()

    async def tracking_code_exists(self, tracking_code: str) -> bool:
        stmt = select(func.count(Order.id)).where(Order.tracking_code == tracking_code)
        with storage_errors("check tracking code"):
            return ((await self.db.execute(stmt)).scalar() or 0) > 0

    async def find_all(
        self,
        status: Optional[str] = None,
        supplier_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Order], int]:
        """Orders newest first, with the total matching count."""
        filters = []
        if status:
            filters.append(Order.status == status)
        if supplier_id:
            filters.append(Order.supplier_id == supplier_id)
        if search:
            search_filter = f"%{search}%"
            filters.append(
                or_(
                    Order.client_name.ilike(search_filter),
                    Order.client_email.ilike(search_filter),
                    Order.product_name.ilike(search_filter),
                    Order.tracking_code.ilike(search_filter),
                )
            )

        stmt = select(Order).order_by(Order.created_at.desc())
        count_stmt = select(func.count(Order.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))
        if skip:
            stmt = stmt.offset(skip)
        if limit:
            stmt = stmt.limit(limit)

        with storage_errors("list orders"):
            total = (await self.db.execute(count_stmt)).scalar() or 0
            result = await self.db.execute(stmt)
            return list(result.scalars().all()), total

    async def find_due_for_auto_verification(self, cutoff: datetime) -> List[uuid.UUID]:
        """Ids of orders whose supplier payment has been pending since at or before `cutoff`."""
        stmt = select(Order.id).where(
            and_(
                Order.supplier_payment_status == SupplierPaymentStatus.PENDING_VERIFICATION.value,
                Order.supplier_payment_date.is_not(None),
                Order.supplier_payment_date <= cutoff,
            )
        )
        with storage_errors("scan pending payments"):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    # ==================== WRITE ====================

    async def insert(self, order: Order) -> Order:
        """
        Insert a new order with its progress rows.

        Raises DuplicateTrackingCodeError if the tracking code is taken; the
        savepoint is rolled back so the session stays usable for a retry.
        """
        try:
            async with self.db.begin_nested():
                self.db.add(order)
                await self.db.flush()
        except IntegrityError as e:
            logger.warning(f"Tracking code collision on insert: {order.tracking_code}")
            raise DuplicateTrackingCodeError(order.tracking_code) from e
        except SQLAlchemyError as e:
            logger.error(f"Database error creating order: {e}")
            raise StorageError("Could not create order, please try again") from e
        self._queue(ChangeType.INSERT, order)
        return order

    async def update(self, order_id: uuid.UUID, changes: Dict[str, Any]) -> Order:
        """
        Write only the given columns and re-derive profit in the same statement.

        Profit is computed by the database from the new price (if sent) or the
        stored one, so a concurrent update of the other price cannot leave it
        stale. Columns not in `changes` are left exactly as stored.
        """
        values = dict(changes)
        values["profit"] = (
            values.get("price_client", Order.price_client)
            - values.get("cost_supplier", Order.cost_supplier)
        )
        stmt = (
            update(Order)
            .where(Order.id == order_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with storage_errors("update order"):
            result = await self.db.execute(stmt)
        if result.rowcount == 0:
            raise NotFoundError("Order", str(order_id))
        return await self.publish_refreshed(order_id)

    async def save(self, order: Order) -> Order:
        """Flush in-memory changes made by the aggregate. Only dirty columns are written."""
        with storage_errors("save order"):
            await self.db.flush()
        self._queue(ChangeType.UPDATE, order)
        return order

    async def transition_payment_status(
        self,
        order_id: uuid.UUID,
        from_status: str,
        values: Dict[str, Any],
        paid_before: Optional[datetime] = None,
    ) -> bool:
        """
        Compare-and-set on supplier_payment_status.

        `paid_before` additionally requires supplier_payment_date <= paid_before,
        so the sweep never verifies a payment that was re-marked after its scan.

        Returns:
            True if this call made the transition; False if the stored status
            was no longer `from_status` (another actor or sweep got there first)
        """
        conditions = [
            Order.id == order_id,
            Order.supplier_payment_status == from_status,
        ]
        if paid_before is not None:
            conditions.append(Order.supplier_payment_date <= paid_before)

        stmt = (
            update(Order)
            .where(and_(*conditions))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with storage_errors("update supplier payment"):
            result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def publish_refreshed(self, order_id: uuid.UUID) -> Order:
        """Reload an order after a Core-level write and queue its change event."""
        order = await self.find_by_id(order_id, refresh=True)
        if order is None:
            raise NotFoundError("Order", str(order_id))
        self._queue(ChangeType.UPDATE, order)
        return order

    async def delete(self, order: Order) -> None:
        with storage_errors("delete order"):
            await self.db.delete(order)
            await self.db.flush()
        self._queue(ChangeType.DELETE, order)
