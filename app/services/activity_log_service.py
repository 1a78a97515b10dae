from typing import Any, Dict, Iterable, List, Optional, Tuple
from datetime import datetime
import csv
import io
import logging

from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Actor
from app.models.activity_log import ActivityLog
from app.repositories.base import storage_errors

logger = logging.getLogger(__name__)

CSV_COLUMNS = ["Timestamp", "User Email", "Role", "Action", "Description"]


class ActivityLogService:
    """
    Activity log for dashboard actions.

    Writing is fire-and-forget: `dispatch` never raises, so a broken log
    sink cannot fail the order, supplier or login operation that produced
    the events.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        user_email: str,
        user_role: str,
        action_type: str,
        description: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> ActivityLog:
        """
        Create an activity log entry inside a savepoint.

        Args:
            user_email: Who did it
            user_role: OWNER, STAFF, SUPPLIER or SYSTEM
            action_type: ActivityAction value
            description: Human-readable description
            entity_type: ORDER, SUPPLIER, PACKAGE or USER
            entity_id: ID of the affected entity
            metadata: Free-form context
        """
        entry = ActivityLog(
            user_email=user_email,
            user_role=user_role,
            action_type=action_type,
            action_description=description,
            related_entity_type=entity_type,
            related_entity_id=entity_id,
            log_metadata=metadata,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500] or None,
        )
        async with self.db.begin_nested():
            self.db.add(entry)
            await self.db.flush()
        return entry

    async def dispatch(
        self,
        actor: Actor,
        events: Iterable,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> int:
        """
        Write audit events produced by a mutation. Failures are logged and dropped.

        Returns:
            Number of events written
        """
        written = 0
        for event in events:
            try:
                await self.log(
                    user_email=actor.email,
                    user_role=actor.role,
                    action_type=event.action_type,
                    description=event.description,
                    entity_type=event.entity_type,
                    entity_id=event.entity_id,
                    metadata=event.metadata,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
                written += 1
            except Exception as e:
                logger.error(f"Failed to write activity log '{event.action_type}' for {actor.email}: {e}")
        return written

    def _filters(
        self,
        user_email: Optional[str] = None,
        user_role: Optional[str] = None,
        action_type: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> list:
        filters = []
        if user_email:
            filters.append(ActivityLog.user_email == user_email.lower())
        if user_role:
            filters.append(ActivityLog.user_role == user_role)
        if action_type:
            filters.append(ActivityLog.action_type == action_type)
        if start_date:
            filters.append(ActivityLog.created_at >= start_date)
        if end_date:
            filters.append(ActivityLog.created_at <= end_date)
        if search:
            search_filter = f"%{search}%"
            filters.append(
                or_(
                    ActivityLog.user_email.ilike(search_filter),
                    ActivityLog.action_description.ilike(search_filter),
                )
            )
        return filters

    async def get_logs(
        self,
        skip: int = 0,
        limit: int = 50,
        **filter_args,
    ) -> Tuple[List[ActivityLog], int]:
        """Paginated logs, newest first."""
        filters = self._filters(**filter_args)

        stmt = select(ActivityLog).order_by(ActivityLog.created_at.desc())
        count_stmt = select(func.count(ActivityLog.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        with storage_errors("list activity logs"):
            total = (await self.db.execute(count_stmt)).scalar() or 0
            result = await self.db.execute(stmt.offset(skip).limit(limit))
            return list(result.scalars().all()), total

    async def export_csv(self, **filter_args) -> str:
        """All matching logs as CSV text."""
        filters = self._filters(**filter_args)
        stmt = select(ActivityLog).order_by(ActivityLog.created_at.desc())
        if filters:
            stmt = stmt.where(and_(*filters))

        with storage_errors("export activity logs"):
            result = await self.db.execute(stmt)
            logs = result.scalars().all()

        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(CSV_COLUMNS)
        for entry in logs:
            writer.writerow([
                entry.created_at.isoformat(),
                entry.user_email,
                entry.user_role,
                entry.action_type,
                entry.action_description or "",
            ])
        return output.getvalue()
