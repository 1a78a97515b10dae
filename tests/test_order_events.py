"""Change feed delivery and observer-side snapshot cache."""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from app.database import async_session_factory
from app.services.order_events import (
    ChangeEvent,
    ChangeType,
    OrderChangeFeed,
    SnapshotCache,
    SupplierChangeFilter,
    order_change_feed,
)
from app.services.order_service import OrderService

from tests.conftest import CLIENT_DATA, FULL_COMPLIANCE


T0 = datetime(2026, 10, 5, 9, 0, tzinfo=timezone.utc)

CUSTOM_PACKAGE = {"affiliate_count": 5, "price": "800", "supplier_cost": "500"}


def _event(change_type, order_id="o-1", updated_at=T0, **record):
    return ChangeEvent(change_type=change_type, order_id=order_id, record=record or None, updated_at=updated_at)


class TestSnapshotCache:

    def test_applying_twice_changes_nothing(self):
        cache = SnapshotCache()
        change = _event(ChangeType.UPDATE, client_name="A")
        assert cache.apply(change) is True
        assert cache.apply(change) is False
        assert cache.records["o-1"] == {"client_name": "A"}

    def test_older_snapshot_is_ignored(self):
        cache = SnapshotCache()
        cache.apply(_event(ChangeType.UPDATE, updated_at=T0 + timedelta(seconds=5), client_name="new"))
        assert cache.apply(_event(ChangeType.UPDATE, updated_at=T0, client_name="old")) is False
        assert cache.records["o-1"]["client_name"] == "new"

    def test_delete_leaves_tombstone(self):
        cache = SnapshotCache()
        cache.apply(_event(ChangeType.INSERT, client_name="A"))
        cache.apply(_event(ChangeType.DELETE, updated_at=T0 + timedelta(seconds=1)))
        late = _event(ChangeType.UPDATE, updated_at=T0 + timedelta(seconds=2), client_name="B")
        assert cache.apply(late) is False
        assert "o-1" not in cache.records


def test_lagging_subscriber_drops_oldest():
    feed = OrderChangeFeed(queue_size=2)
    queue = feed.subscribe()
    for i in range(3):
        feed.publish(_event(ChangeType.UPDATE, order_id=f"o-{i}"))
    assert [queue.get_nowait().order_id for _ in range(queue.qsize())] == ["o-1", "o-2"]
    feed.unsubscribe(queue)
    assert feed.subscriber_count == 0


async def test_changes_publish_only_after_commit(db_schema, owner):
    queue = order_change_feed.subscribe()
    try:
        async with async_session_factory() as db:
            order = await OrderService(db).create_order(
                owner, dict(CLIENT_DATA), FULL_COMPLIANCE, custom_package=CUSTOM_PACKAGE
            )
            assert queue.empty()
            await db.commit()

        change = queue.get_nowait()
        assert change.change_type == ChangeType.INSERT
        assert change.order_id == str(order.id)
        assert change.record["tracking_code"] == order.tracking_code
    finally:
        order_change_feed.unsubscribe(queue)


async def test_rolled_back_changes_are_never_published(db_schema, owner):
    queue = order_change_feed.subscribe()
    try:
        async with async_session_factory() as db:
            await OrderService(db).create_order(
                owner, dict(CLIENT_DATA), FULL_COMPLIANCE, custom_package=CUSTOM_PACKAGE
            )
            await db.rollback()
        assert queue.empty()
    finally:
        order_change_feed.unsubscribe(queue)


async def test_note_changes_reach_observers(db_schema, owner):
    cache = SnapshotCache()
    queue = order_change_feed.subscribe()
    try:
        async with async_session_factory() as db:
            service = OrderService(db)
            order = await service.create_order(
                owner, dict(CLIENT_DATA), FULL_COMPLIANCE, custom_package=CUSTOM_PACKAGE
            )
            await db.commit()
            assert cache.apply(queue.get_nowait()) is True

            with patch("app.services.order_service.utc_now", return_value=order.updated_at + timedelta(minutes=1)):
                order = await service.add_note(owner, order.id, "Client approved the brief")
                await db.commit()
            noted = queue.get_nowait()
            assert cache.apply(noted) is True
            assert [n["content"] for n in cache.records[str(order.id)]["order_notes"]] == ["Client approved the brief"]

            note_id = order.order_notes[0].id
            with patch("app.services.order_service.utc_now", return_value=order.updated_at + timedelta(minutes=1)):
                await service.delete_note(owner, order.id, note_id)
                await db.commit()
            assert cache.apply(queue.get_nowait()) is True
            assert cache.records[str(order.id)]["order_notes"] == []
    finally:
        order_change_feed.unsubscribe(queue)


class TestSupplierChangeFilter:

    def _filter(self, visible=()):
        return SupplierChangeFilter("s-1", visible, hidden_fields={"profit", "price_client"})

    def test_own_order_arrives_without_pricing(self):
        message = self._filter().filter(
            _event(ChangeType.INSERT, supplier_id="s-1", profit="600", price_client="1500", product_name="Sambal")
        )
        assert message["type"] == "insert"
        assert message["record"] == {"supplier_id": "s-1", "product_name": "Sambal"}

    def test_other_suppliers_orders_are_hidden(self):
        assert self._filter().filter(_event(ChangeType.UPDATE, supplier_id="s-2")) is None
        assert self._filter().filter(_event(ChangeType.DELETE)) is None

    def test_delete_of_visible_order_is_forwarded(self):
        supplier_filter = self._filter(visible=["o-1"])
        message = supplier_filter.filter(_event(ChangeType.DELETE))
        assert message["type"] == "delete"
        assert message["order_id"] == "o-1"
        assert "o-1" not in supplier_filter.visible

    def test_reassignment_away_arrives_as_delete(self):
        supplier_filter = self._filter()
        supplier_filter.filter(_event(ChangeType.UPDATE, supplier_id="s-1"))

        moved = _event(ChangeType.UPDATE, updated_at=T0 + timedelta(seconds=1), supplier_id="s-2")
        message = supplier_filter.filter(moved)
        assert message == {"type": "delete", "order_id": "o-1", "record": None, "updated_at": moved.updated_at.isoformat()}

        # Further changes to the moved order stay hidden
        assert supplier_filter.filter(moved) is None

    def test_reassignment_is_applied_by_snapshot_cache(self):
        cache = SnapshotCache()
        supplier_filter = self._filter()
        for change in (
            _event(ChangeType.INSERT, supplier_id="s-1"),
            _event(ChangeType.UPDATE, updated_at=T0 + timedelta(seconds=1), supplier_id="s-2"),
        ):
            message = supplier_filter.filter(change)
            cache.apply(ChangeEvent(
                change_type=ChangeType(message["type"]),
                order_id=message["order_id"],
                record=message["record"],
                updated_at=datetime.fromisoformat(message["updated_at"]),
            ))
        assert cache.records == {}
