from typing import Any, Callable, Dict, List, Optional, Tuple
from datetime import datetime
from decimal import Decimal
import uuid
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.clock import utc_now
from app.core.exceptions import (
    DuplicateTrackingCodeError,
    ForbiddenError,
    InvalidPackageError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
)
from app.core.permissions import Actor, PermissionChecker, SYSTEM_ACTOR
from app.models.order import Order, SupplierPaymentStatus
from app.repositories import OrderRepository, PackageRepository, SupplierRepository
from app.repositories.base import storage_errors
from app.services import order_aggregate, payment_state_machine
from app.services.activity_log_service import ActivityLogService
from app.services.order_aggregate import PackageSnapshot, to_decimal
from app.services.progress import SupplierStepPayload
from app.services.workflow_engine import DashboardStats, dashboard_stats

logger = logging.getLogger(__name__)


class OrderService:
    """
    Service for campaign orders.

    Every mutation takes the acting user explicitly, runs the aggregate
    (which enforces the role gate and returns audit events), persists
    through OrderRepository and then writes the audit events.
    """

    def __init__(
        self,
        db: AsyncSession,
        tracking_code_factory: Callable[[], str] = order_aggregate.generate_tracking_code,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        self.db = db
        self.orders = OrderRepository(db)
        self.suppliers = SupplierRepository(db)
        self.packages = PackageRepository(db)
        self.activity = ActivityLogService(db)
        self.tracking_code_factory = tracking_code_factory
        self.ip_address = ip_address
        self.user_agent = user_agent

    async def _dispatch(self, actor: Actor, events: list) -> None:
        if events:
            await self.activity.dispatch(actor, events, ip_address=self.ip_address, user_agent=self.user_agent)

    async def _get(self, order_id: uuid.UUID) -> Order:
        order = await self.orders.find_by_id(order_id)
        if order is None:
            raise NotFoundError("Order", str(order_id))
        return order

    # ==================== QUERIES ====================

    async def get_order(self, actor: Actor, order_id: uuid.UUID) -> Order:
        order = await self._get(order_id)
        PermissionChecker(actor).require_view(order)
        return order

    async def get_by_tracking_code(self, tracking_code: str) -> Order:
        """Public lookup. Input is case-insensitive."""
        code = order_aggregate.normalize_tracking_code(tracking_code)
        order = await self.orders.find_by_tracking_code(code)
        if order is None:
            raise NotFoundError("Order", code)
        return order

    async def list_orders(
        self,
        actor: Actor,
        status: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Order], int]:
        """Agency sees every order; a supplier only their own."""
        if actor.is_agency:
            return await self.orders.find_all(status=status, search=search, skip=skip, limit=limit)
        if actor.is_supplier and actor.supplier_id:
            return await self.orders.find_all(
                status=status, supplier_id=actor.supplier_id, search=search, skip=skip, limit=limit
            )
        raise ForbiddenError("Cannot list orders", details={"role": actor.role})

    async def list_supplier_orders(self, actor: Actor, supplier_id: uuid.UUID) -> List[Order]:
        PermissionChecker(actor).require_supplier_profile(supplier_id)
        orders, _ = await self.orders.find_all(supplier_id=supplier_id)
        return orders

    async def get_dashboard_stats(self, actor: Actor) -> DashboardStats:
        PermissionChecker(actor).require_agency("view dashboard stats")
        orders, _ = await self.orders.find_all()
        return dashboard_stats(orders)

    # ==================== CREATE / UPDATE / DELETE ====================

    async def _resolve_snapshot(
        self,
        package_id: Optional[uuid.UUID],
        custom_package: Optional[Dict[str, Any]],
        price_discount: Decimal,
    ) -> PackageSnapshot:
        if package_id is not None:
            package = await self.packages.find_by_id(package_id)
            if package is None:
                raise NotFoundError("Package", str(package_id))
            if not package.is_active:
                raise InvalidPackageError(
                    f"Package '{package.name}' is not active",
                    details={"package_id": str(package_id)},
                )
            return PackageSnapshot.from_package(package, price_discount)

        if custom_package:
            affiliate_count = custom_package.get("affiliate_count") or 0
            per_affiliate = custom_package.get("video_count_per_affiliate") or 1
            discount = to_decimal(price_discount or 0, "price_discount")
            return PackageSnapshot(
                package_id=None,
                package_name=custom_package.get("package_name") or "Custom Package",
                affiliate_count=affiliate_count,
                video_count_per_affiliate=per_affiliate,
                total_videos=affiliate_count * per_affiliate,
                price_client=to_decimal(custom_package.get("price"), "price", InvalidPackageError) - discount,
                price_discount=discount,
                cost_supplier=to_decimal(custom_package.get("supplier_cost"), "supplier_cost", InvalidPackageError),
                commission_rate=to_decimal(custom_package.get("commission_rate", 10), "commission_rate", InvalidPackageError),
            )

        raise InvalidPackageError("Choose a package or enter custom package terms")

    async def create_order(
        self,
        actor: Actor,
        data: Dict[str, Any],
        compliance: Dict[str, bool],
        package_id: Optional[uuid.UUID] = None,
        custom_package: Optional[Dict[str, Any]] = None,
        price_discount: Decimal = Decimal("0"),
        supplier_id: Optional[uuid.UUID] = None,
    ) -> Order:
        """
        Create an order.

        A tracking code already in use is detected either by the pre-check or
        by the unique constraint on insert; both lead to a fresh code, up to
        TRACKING_CODE_MAX_ATTEMPTS times.
        """
        PermissionChecker(actor).require_agency("create orders")
        order_aggregate.check_compliance(compliance)
        snapshot = await self._resolve_snapshot(package_id, custom_package, price_discount)

        supplier = None
        if supplier_id is not None:
            supplier = await self.suppliers.find_by_id(supplier_id)
            if supplier is None:
                raise NotFoundError("Supplier", str(supplier_id))

        for attempt in range(1, settings.TRACKING_CODE_MAX_ATTEMPTS + 1):
            tracking_code = self.tracking_code_factory()
            if await self.orders.tracking_code_exists(tracking_code):
                logger.warning(f"Tracking code {tracking_code} already taken (attempt {attempt})")
                continue

            now = utc_now()
            order, events = order_aggregate.build_order(actor, data, compliance, snapshot, tracking_code, now)
            if supplier is not None:
                events += order_aggregate.assign_supplier(order, actor, supplier, now)

            try:
                await self.orders.insert(order)
            except DuplicateTrackingCodeError:
                continue

            logger.info(f"Order created: {order.tracking_code} for {order.client_name}")
            await self._dispatch(actor, events)
            return order

        raise StorageError(
            "Could not allocate a unique tracking code, please try again",
            details={"attempts": settings.TRACKING_CODE_MAX_ATTEMPTS},
        )

    async def update_order(self, actor: Actor, order_id: uuid.UUID, partial: Dict[str, Any]) -> Order:
        """
        Apply a partial update with field-level last-write-wins.

        Only the columns in `partial` that differ from the stored values are
        written; profit is re-derived in the same statement. Concurrent
        updates of different fields both survive. Concurrent updates of the
        same field race and the later write wins.
        """
        order = await self._get(order_id)
        changes, events = order_aggregate.prepare_update(order, actor, partial, utc_now())
        if not changes:
            return order

        order = await self.orders.update(order.id, changes)
        await self._dispatch(actor, events)
        return order

    async def delete_order(self, actor: Actor, order_id: uuid.UUID, confirmation_code: str) -> None:
        order = await self._get(order_id)
        events = order_aggregate.confirm_deletion(order, actor, confirmation_code)
        await self.orders.delete(order)
        logger.info(f"Order deleted: {order.tracking_code}")
        await self._dispatch(actor, events)

    async def cancel_order(self, actor: Actor, order_id: uuid.UUID) -> Order:
        order = await self._get(order_id)
        events = order_aggregate.cancel_order(order, actor, utc_now())
        await self.orders.save(order)
        await self._dispatch(actor, events)
        return order

    # ==================== PROGRESS ====================

    async def set_agency_progress(self, actor: Actor, order_id: uuid.UUID, flag: str, value: bool) -> Order:
        order = await self._get(order_id)
        changed, events = order_aggregate.set_agency_progress(order, actor, flag, value, utc_now())
        if changed:
            await self.orders.save(order)
            await self._dispatch(actor, events)
        return order

    async def set_supplier_progress(
        self,
        actor: Actor,
        order_id: uuid.UUID,
        flag: str,
        value: bool,
        payload: Optional[SupplierStepPayload] = None,
    ) -> Order:
        order = await self._get(order_id)
        changed, events = order_aggregate.set_supplier_progress(order, actor, flag, value, utc_now(), payload)
        if changed:
            await self.orders.save(order)
            await self._dispatch(actor, events)
        return order

    # ==================== SUPPLIER PAYMENT ====================

    async def _apply_payment(self, actor: Actor, order: Order, values: Dict[str, Any], events: list, now: datetime) -> Order:
        old_status = order.supplier_payment_status
        new_status = values["supplier_payment_status"]

        if not await self.orders.transition_payment_status(order.id, old_status, values):
            current = await self.orders.find_by_id(order.id, refresh=True)
            current_status = current.supplier_payment_status if current else old_status
            raise InvalidTransitionError(
                current_status,
                new_status,
                payment_state_machine.get_allowed_transitions(current_status),
            )

        with storage_errors("record payment history"):
            self.db.add(order_aggregate.history_entry(
                order, "supplier_payment_status", old_status, new_status, actor, now
            ))
            await self.db.flush()

        order = await self.orders.publish_refreshed(order.id)
        logger.info(f"Supplier payment on {order.tracking_code}: {old_status} -> {new_status} by {actor.email}")
        await self._dispatch(actor, events)
        return order

    async def record_supplier_payment_marked(
        self,
        actor: Actor,
        order_id: uuid.UUID,
        proof_url: Optional[str] = None,
    ) -> Order:
        order = await self._get(order_id)
        now = utc_now()
        values, events = order_aggregate.record_supplier_payment_marked(order, actor, now, proof_url)
        return await self._apply_payment(actor, order, values, events, now)

    async def record_supplier_payment_verified(self, actor: Actor, order_id: uuid.UUID) -> Order:
        order = await self._get(order_id)
        now = utc_now()
        values, events = order_aggregate.record_supplier_payment_verified(order, actor, now)
        return await self._apply_payment(actor, order, values, events, now)

    async def record_supplier_payment_disputed(self, actor: Actor, order_id: uuid.UUID) -> Order:
        order = await self._get(order_id)
        now = utc_now()
        values, events = order_aggregate.record_supplier_payment_disputed(order, actor, now)
        return await self._apply_payment(actor, order, values, events, now)

    async def reset_supplier_payment(self, actor: Actor, order_id: uuid.UUID) -> Order:
        order = await self._get(order_id)
        now = utc_now()
        values, events = order_aggregate.reset_supplier_payment(order, actor, now)
        return await self._apply_payment(actor, order, values, events, now)

    async def auto_verify_payments(
        self,
        now: Optional[datetime] = None,
        hours: Optional[int] = None,
    ) -> List[uuid.UUID]:
        """
        Verify every supplier payment pending for at least `hours`.

        Safe to run concurrently with itself and with manual payment actions:
        each order is moved with a compare-and-set on the pending state, so an
        order is verified at most once and its verified date never rewritten.

        Returns:
            Ids of the orders this run verified
        """
        now = now or utc_now()
        hours = settings.PAYMENT_AUTO_VERIFY_HOURS if hours is None else hours
        cutoff = payment_state_machine.auto_verify_cutoff(now, hours)
        pending = SupplierPaymentStatus.PENDING_VERIFICATION.value
        verified = SupplierPaymentStatus.VERIFIED.value

        verified_ids = []
        for order_id in await self.orders.find_due_for_auto_verification(cutoff):
            order = await self.orders.find_by_id(order_id, refresh=True)
            if order is None or not payment_state_machine.is_due_for_auto_verification(order, now, hours):
                continue

            values = payment_state_machine.transition_values(verified, now)
            values["updated_at"] = now
            if not await self.orders.transition_payment_status(order_id, pending, values, paid_before=cutoff):
                continue

            with storage_errors("record payment history"):
                self.db.add(order_aggregate.history_entry(order, "supplier_payment_status", pending, verified, SYSTEM_ACTOR, now))
                await self.db.flush()
            order = await self.orders.publish_refreshed(order_id)
            await self._dispatch(SYSTEM_ACTOR, [order_aggregate.auto_verification_event(order, hours)])
            verified_ids.append(order_id)

        if verified_ids:
            logger.info(f"Auto-verified {len(verified_ids)} supplier payment(s)")
        return verified_ids

    # ==================== ASSIGNMENT / SHIPMENT ====================

    async def assign_supplier(self, actor: Actor, order_id: uuid.UUID, supplier_id: Optional[uuid.UUID]) -> Order:
        order = await self._get(order_id)
        supplier = None
        if supplier_id is not None:
            supplier = await self.suppliers.find_by_id(supplier_id)
            if supplier is None:
                raise NotFoundError("Supplier", str(supplier_id))

        events = order_aggregate.assign_supplier(order, actor, supplier, utc_now())
        if events:
            await self.orders.save(order)
            await self._dispatch(actor, events)
        return order

    async def record_client_shipment_proof(self, actor: Actor, order_id: uuid.UUID, proof_url: Optional[str]) -> Order:
        order = await self._get(order_id)
        events = order_aggregate.record_client_shipment_proof(order, actor, proof_url, utc_now())
        if events:
            await self.orders.save(order)
            await self._dispatch(actor, events)
        return order

    # ==================== AFFILIATES ====================

    async def add_affiliate(self, actor: Actor, order_id: uuid.UUID, data: Dict[str, Any]) -> Order:
        order = await self._get(order_id)
        _, events = order_aggregate.add_affiliate(order, actor, data, utc_now())
        await self.orders.save(order)
        await self._dispatch(actor, events)
        return order

    async def update_affiliate(self, actor: Actor, order_id: uuid.UUID, affiliate_id: uuid.UUID, data: Dict[str, Any]) -> Order:
        order = await self._get(order_id)
        _, events = order_aggregate.update_affiliate(order, actor, affiliate_id, data, utc_now())
        if events:
            await self.orders.save(order)
            await self._dispatch(actor, events)
        return order

    async def remove_affiliate(self, actor: Actor, order_id: uuid.UUID, affiliate_id: uuid.UUID) -> Order:
        order = await self._get(order_id)
        events = order_aggregate.remove_affiliate(order, actor, affiliate_id, utc_now())
        await self.orders.save(order)
        await self._dispatch(actor, events)
        return order

    # ==================== NOTES ====================

    async def add_note(self, actor: Actor, order_id: uuid.UUID, content: str) -> Order:
        order = await self._get(order_id)
        _, events = order_aggregate.add_note(order, actor, content, utc_now())
        await self.orders.save(order)
        await self._dispatch(actor, events)
        return order

    async def delete_note(self, actor: Actor, order_id: uuid.UUID, note_id: uuid.UUID) -> Order:
        order = await self._get(order_id)
        events = order_aggregate.delete_note(order, actor, note_id, utc_now())
        await self.orders.save(order)
        await self._dispatch(actor, events)
        return order
