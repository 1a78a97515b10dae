"""
Order change feed.

In-process publish/subscribe of `{insert|update|delete, record}` events.
Repositories queue changes on the session; they are published only after
the transaction commits and discarded on rollback. Subscribers get their
own bounded asyncio.Queue; a slow subscriber loses its oldest events
rather than blocking writers.

Delivery is at-most-once and may be reordered across subscribers, so
consumers apply snapshots through `SnapshotCache`, which ignores anything
not newer than what it already holds.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import logging
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import event
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utc_now

logger = logging.getLogger(__name__)

PENDING_KEY = "pending_order_changes"
SUBSCRIBER_QUEUE_SIZE = 100


class ChangeType(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class ChangeEvent:
    change_type: ChangeType
    order_id: str
    record: Optional[Dict[str, Any]]
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.change_type.value,
            "order_id": self.order_id,
            "record": self.record,
            "updated_at": self.updated_at.isoformat(),
        }


class OrderChangeFeed:
    """Fan-out of committed order changes to subscriber queues."""

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def publish(self, change: ChangeEvent) -> None:
        for queue in list(self._subscribers):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                logger.warning("Order change subscriber is lagging, dropped oldest event")
            queue.put_nowait(change)


order_change_feed = OrderChangeFeed()


# =============================================================================
# SESSION HOOKS
# =============================================================================

def queue_change(session_info: dict, change: ChangeEvent) -> None:
    """Hold a change until the owning transaction commits."""
    session_info.setdefault(PENDING_KEY, []).append(change)


@event.listens_for(Session, "after_commit")
def _publish_pending_changes(session: Session) -> None:
    # Releasing a SAVEPOINT also fires after_commit; only the outer commit publishes
    if session.in_nested_transaction():
        return
    pending: List[ChangeEvent] = session.info.pop(PENDING_KEY, [])
    for change in pending:
        order_change_feed.publish(change)
    if pending:
        logger.debug(f"Published {len(pending)} order change(s)")


@event.listens_for(Session, "after_transaction_end")
def _discard_pending_changes(session: Session, transaction) -> None:
    # Anything still pending when the outer transaction ends was rolled back
    if transaction.parent is None:
        session.info.pop(PENDING_KEY, None)


# =============================================================================
# OBSERVER SIDE
# =============================================================================

class SnapshotCache:
    """
    Latest known snapshot per order.

    Applying the same event twice, or an event older than the one held,
    changes nothing. Deletes leave a tombstone so a late update cannot
    resurrect the order.
    """

    def __init__(self):
        self.records: Dict[str, Dict[str, Any]] = {}
        self._versions: Dict[str, datetime] = {}
        self._deleted: Set[str] = set()

    def apply(self, change: ChangeEvent) -> bool:
        """Returns True if the cache changed."""
        version = as_utc(change.updated_at)
        held = self._versions.get(change.order_id)
        if held is not None and version <= held:
            return False

        self._versions[change.order_id] = version
        if change.change_type == ChangeType.DELETE:
            self.records.pop(change.order_id, None)
            self._deleted.add(change.order_id)
            return True

        if change.order_id in self._deleted:
            return False
        self.records[change.order_id] = change.record
        return True


class SupplierChangeFilter:
    """
    Per-connection view of the feed for one supplier.

    Tracks which orders the supplier can currently see. A delete of one of
    them, or a reassignment to another supplier, reaches the supplier as a
    delete so its view drops the order.
    """

    def __init__(self, supplier_id, visible_order_ids=(), hidden_fields=frozenset()):
        self.supplier_id = str(supplier_id)
        self.visible: Set[str] = {str(order_id) for order_id in visible_order_ids}
        self.hidden_fields = frozenset(hidden_fields)

    def _removed(self, change: ChangeEvent) -> Optional[Dict[str, Any]]:
        if change.order_id not in self.visible:
            return None
        self.visible.discard(change.order_id)
        return ChangeEvent(ChangeType.DELETE, change.order_id, None, change.updated_at).to_dict()

    def filter(self, change: ChangeEvent) -> Optional[Dict[str, Any]]:
        """The message to send for `change`, or None if the supplier has no business seeing it."""
        if change.change_type == ChangeType.DELETE or not change.record:
            return self._removed(change)
        if str(change.record.get("supplier_id")) != self.supplier_id:
            return self._removed(change)

        self.visible.add(change.order_id)
        payload = change.to_dict()
        payload["record"] = {k: v for k, v in change.record.items() if k not in self.hidden_fields}
        return payload
