"""OrderService against a real (SQLite) database."""
from datetime import timedelta
from decimal import Decimal
import itertools
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from app.core.audit import AuditEvent
from app.core.clock import utc_now
from app.core.exceptions import (
    ForbiddenError,
    InvalidPackageError,
    InvalidTransitionError,
    StorageError,
    ValidationError,
)
from app.database import async_session_factory
from app.models.activity_log import ActivityLog, ActivityAction
from app.models.order import Order, OrderStatus, SupplierPaymentStatus
from app.services.activity_log_service import ActivityLogService
from app.services.order_service import OrderService
from app.services.progress import SupplierStepPayload

from tests.conftest import CLIENT_DATA, FULL_COMPLIANCE


async def _create(session, actor, **kwargs):
    service = OrderService(session, **kwargs.pop("service_kwargs", {}))
    order = await service.create_order(actor, dict(CLIENT_DATA), FULL_COMPLIANCE, **kwargs)
    await session.commit()
    return order


async def _reload(order_id) -> Order:
    async with async_session_factory() as db:
        return (await db.execute(select(Order).where(Order.id == order_id))).scalar_one()


class TestCreate:

    async def test_snapshot_from_package(self, session, owner, package):
        order = await _create(session, owner, package_id=package.id, price_discount=Decimal("300"))
        stored = await _reload(order.id)

        assert stored.package_name == "Growth 20"
        assert stored.price_client == Decimal("2500.00")
        assert stored.profit == Decimal("800.00")
        assert stored.agency_progress is not None
        assert stored.supplier_progress is not None

    async def test_package_edit_does_not_touch_existing_orders(self, session, owner, package):
        order = await _create(session, owner, package_id=package.id)
        package.current_price = Decimal("9999")
        await session.commit()
        assert (await _reload(order.id)).price_client == Decimal("2800.00")

    async def test_inactive_package_rejected(self, session, owner, package):
        package.is_active = False
        await session.commit()
        with pytest.raises(InvalidPackageError):
            await OrderService(session).create_order(owner, dict(CLIENT_DATA), FULL_COMPLIANCE, package_id=package.id)

    async def test_custom_package(self, session, owner):
        order = await _create(
            session, owner,
            custom_package={"package_name": "Raya Special", "affiliate_count": 8, "price": "1200", "supplier_cost": "700"},
        )
        assert order.total_videos == 8
        assert order.profit == Decimal("500")

    @pytest.mark.parametrize("terms", [
        {"affiliate_count": 8, "price": "twelve hundred", "supplier_cost": "700"},
        {"affiliate_count": 8, "supplier_cost": "700"},
    ])
    async def test_non_numeric_custom_terms_rejected(self, session, owner, terms):
        with pytest.raises(InvalidPackageError):
            await OrderService(session).create_order(owner, dict(CLIENT_DATA), FULL_COMPLIANCE, custom_package=terms)

    async def test_non_numeric_discount_rejected(self, session, owner, package):
        with pytest.raises(ValidationError):
            await OrderService(session).create_order(
                owner, dict(CLIENT_DATA), FULL_COMPLIANCE, package_id=package.id, price_discount="half"
            )

    async def test_initial_supplier_assignment(self, session, owner, package, supplier):
        order = await _create(session, owner, package_id=package.id, supplier_id=supplier.id)
        stored = await _reload(order.id)
        assert stored.supplier_id == supplier.id
        assert stored.supplier_name == supplier.name

    async def test_taken_tracking_code_is_retried(self, session, owner, package):
        first = await _create(session, owner, package_id=package.id, service_kwargs={
            "tracking_code_factory": lambda: "TAKEN001",
        })
        codes = iter(["TAKEN001", "FRESH002"])
        second = await _create(session, owner, package_id=package.id, service_kwargs={
            "tracking_code_factory": lambda: next(codes),
        })
        assert first.tracking_code == "TAKEN001"
        assert second.tracking_code == "FRESH002"

    async def test_gives_up_after_max_attempts(self, session, owner, package):
        await _create(session, owner, package_id=package.id, service_kwargs={
            "tracking_code_factory": lambda: "TAKEN001",
        })
        attempts = itertools.count()

        def always_taken():
            next(attempts)
            return "TAKEN001"

        with pytest.raises(StorageError):
            await OrderService(session, tracking_code_factory=always_taken).create_order(
                owner, dict(CLIENT_DATA), FULL_COMPLIANCE, package_id=package.id
            )
        assert next(attempts) == 5

    async def test_create_is_logged(self, session, owner, package):
        order = await _create(session, owner, package_id=package.id)
        logs = (await session.execute(select(ActivityLog))).scalars().all()
        assert [(log.action_type, log.related_entity_id) for log in logs] == [
            (ActivityAction.ORDER_CREATE.value, str(order.id))
        ]


class TestUpdate:

    async def test_disjoint_concurrent_updates_both_survive(self, db_schema, owner):
        async with async_session_factory() as db:
            order = await OrderService(db).create_order(
                owner, dict(CLIENT_DATA), FULL_COMPLIANCE,
                custom_package={"affiliate_count": 5, "price": "800", "supplier_cost": "500"},
            )
            await db.commit()

        async with async_session_factory() as a, async_session_factory() as b:
            # Both sessions hold the same stale copy before either writes
            await OrderService(a).get_order(owner, order.id)
            await a.commit()
            await OrderService(b).get_order(owner, order.id)
            await b.commit()

            await OrderService(a).update_order(owner, order.id, {"client_phone": "+60111111111"})
            await a.commit()
            await OrderService(b).update_order(owner, order.id, {"product_name": "Sambal Hijau"})
            await b.commit()

        stored = await _reload(order.id)
        assert stored.client_phone == "+60111111111"
        assert stored.product_name == "Sambal Hijau"

    async def test_profit_follows_price_changes(self, session, owner, package):
        order = await _create(session, owner, package_id=package.id)
        service = OrderService(session)

        updated = await service.update_order(owner, order.id, {"price_client": Decimal("3000")})
        assert updated.profit == Decimal("1300.00")
        updated = await service.update_order(owner, order.id, {"cost_supplier": Decimal("2000")})
        await session.commit()
        assert (await _reload(order.id)).profit == Decimal("1000.00")

    async def test_supplier_cannot_update(self, session, owner, supplier_actor, package, supplier):
        order = await _create(session, owner, package_id=package.id, supplier_id=supplier.id)
        with pytest.raises(ForbiddenError):
            await OrderService(session).update_order(supplier_actor, order.id, {"client_phone": "x"})


class TestProgress:

    async def test_agency_progress_derives_status(self, session, owner, package):
        order = await _create(session, owner, package_id=package.id)
        service = OrderService(session)
        order = await service.set_agency_progress(owner, order.id, "client_paid", True)
        await session.commit()

        stored = await _reload(order.id)
        assert stored.status == OrderStatus.PAID.value
        assert stored.agency_progress.client_paid_date is not None
        assert sorted(h.field for h in stored.status_history) == ["client_paid", "status"]

    async def test_activity_log_failure_does_not_fail_progress(self, session, owner, package):
        order = await _create(session, owner, package_id=package.id)
        failing = AsyncMock(side_effect=StorageError("activity log unavailable"))

        with patch.object(ActivityLogService, "log", failing):
            await OrderService(session).set_agency_progress(owner, order.id, "client_paid", True)
            await session.commit()

        assert failing.await_count == 1
        assert (await _reload(order.id)).agency_progress.client_paid is True
        logs = (await session.execute(select(ActivityLog))).scalars().all()
        assert [log.action_type for log in logs] == [ActivityAction.ORDER_CREATE.value]

    async def test_rejected_log_row_keeps_the_transaction_usable(self, session, owner, package):
        order = await _create(session, owner, package_id=package.id)
        broken = AuditEvent(action_type=None, description="missing action type")

        assert await ActivityLogService(session).dispatch(owner, [broken]) == 0
        await OrderService(session).set_agency_progress(owner, order.id, "client_paid", True)
        await session.commit()

        assert (await _reload(order.id)).agency_progress.client_paid is True

    async def test_supplier_progress_by_assigned_supplier(self, session, owner, supplier_actor, package, supplier):
        order = await _create(session, owner, package_id=package.id, supplier_id=supplier.id)
        payload = SupplierStepPayload(
            affiliate_sheet_url="https://docs.google.com/spreadsheets/d/xyz",
            link_accessible=True, count_matches=True, all_columns_complete=True, affiliates_suitable=True,
        )
        await OrderService(session).set_supplier_progress(supplier_actor, order.id, "affiliates_submitted", True, payload)
        await session.commit()

        stored = await _reload(order.id)
        assert stored.supplier_progress.affiliates_submitted is True
        assert stored.supplier_progress.affiliate_sheet_url == "https://docs.google.com/spreadsheets/d/xyz"

    async def test_supplier_order_list_is_scoped(self, session, owner, supplier_actor, package, supplier):
        mine = await _create(session, owner, package_id=package.id, supplier_id=supplier.id)
        await _create(session, owner, package_id=package.id)
        orders, total = await OrderService(session).list_orders(supplier_actor)
        assert total == 1
        assert [o.id for o in orders] == [mine.id]


class TestSupplierPayment:

    async def _marked_order(self, session, owner, package, supplier):
        order = await _create(session, owner, package_id=package.id, supplier_id=supplier.id)
        await OrderService(session).record_supplier_payment_marked(owner, order.id, "https://bank/slip.png")
        await session.commit()
        return order

    async def test_full_cycle_with_dispute_and_reset(self, session, owner, supplier_actor, package, supplier):
        order = await self._marked_order(session, owner, package, supplier)
        service = OrderService(session)

        order = await service.record_supplier_payment_disputed(supplier_actor, order.id)
        assert order.supplier_payment_status == SupplierPaymentStatus.DISPUTED.value
        order = await service.reset_supplier_payment(owner, order.id)
        assert order.supplier_payment_status == SupplierPaymentStatus.UNPAID.value
        assert order.supplier_payment_date is None
        await service.record_supplier_payment_marked(owner, order.id)
        order = await service.record_supplier_payment_verified(supplier_actor, order.id)
        await session.commit()

        stored = await _reload(order.id)
        assert stored.supplier_payment_status == SupplierPaymentStatus.VERIFIED.value
        assert stored.supplier_payment_verified_date is not None

    async def test_verifying_twice_is_rejected(self, session, owner, supplier_actor, package, supplier):
        order = await self._marked_order(session, owner, package, supplier)
        service = OrderService(session)
        await service.record_supplier_payment_verified(supplier_actor, order.id)
        with pytest.raises(InvalidTransitionError):
            await service.record_supplier_payment_verified(supplier_actor, order.id)

    async def test_auto_verify_after_timeout(self, session, owner, package, supplier):
        order = await self._marked_order(session, owner, package, supplier)
        service = OrderService(session)

        assert await service.auto_verify_payments(now=utc_now() + timedelta(hours=23), hours=24) == []
        verified = await service.auto_verify_payments(now=utc_now() + timedelta(hours=25), hours=24)
        await session.commit()
        assert verified == [order.id]

        stored = await _reload(order.id)
        assert stored.supplier_payment_status == SupplierPaymentStatus.VERIFIED.value
        verified_at = stored.supplier_payment_verified_date

        # A later sweep changes nothing
        assert await service.auto_verify_payments(now=utc_now() + timedelta(hours=48), hours=24) == []
        await session.commit()
        assert (await _reload(order.id)).supplier_payment_verified_date == verified_at

    async def test_disputed_payment_is_left_alone(self, session, owner, supplier_actor, package, supplier):
        order = await self._marked_order(session, owner, package, supplier)
        service = OrderService(session)
        await service.record_supplier_payment_disputed(supplier_actor, order.id)
        await session.commit()

        assert await service.auto_verify_payments(now=utc_now() + timedelta(hours=25), hours=24) == []
        assert (await _reload(order.id)).supplier_payment_status == SupplierPaymentStatus.DISPUTED.value

    async def test_auto_verify_is_logged_as_system(self, session, owner, package, supplier):
        await self._marked_order(session, owner, package, supplier)
        await OrderService(session).auto_verify_payments(now=utc_now() + timedelta(hours=25), hours=24)
        await session.commit()

        log = (await session.execute(
            select(ActivityLog).where(ActivityLog.user_email == "system")
        )).scalar_one()
        assert log.action_type == ActivityAction.PAYMENT_UPDATE.value
        assert log.log_metadata["automatic"] is True


class TestDeleteAndCancel:

    async def test_delete_requires_tracking_code(self, session, owner, package):
        order = await _create(session, owner, package_id=package.id)
        service = OrderService(session)
        with pytest.raises(ValidationError):
            await service.delete_order(owner, order.id, "NOPE0000")
        await service.delete_order(owner, order.id, order.tracking_code.lower())
        await session.commit()

        async with async_session_factory() as db:
            assert (await db.execute(select(Order).where(Order.id == order.id))).scalar_one_or_none() is None

    async def test_cancel(self, session, owner, package):
        order = await _create(session, owner, package_id=package.id)
        order = await OrderService(session).cancel_order(owner, order.id)
        await session.commit()
        assert (await _reload(order.id)).status == OrderStatus.CANCELLED.value


class TestTracking:

    async def test_lookup_is_case_insensitive(self, session, owner, package):
        order = await _create(session, owner, package_id=package.id)
        found = await OrderService(session).get_by_tracking_code(order.tracking_code.lower())
        assert found.id == order.id
