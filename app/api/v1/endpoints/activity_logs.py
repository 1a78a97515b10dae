"""Activity log API Endpoints (owner only)."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import Response

from app.api.deps import DB, CurrentActor
from app.core.clock import utc_now
from app.core.permissions import PermissionChecker
from app.schemas.activity_log import ActivityLogResponse, ActivityLogListResponse
from app.services.activity_log_service import ActivityLogService


router = APIRouter(prefix="/activity-logs", tags=["Activity Logs"])


@router.get("", response_model=ActivityLogListResponse)
async def list_activity_logs(
    actor: CurrentActor,
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    user_email: Optional[str] = None,
    user_role: Optional[str] = None,
    action_type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
):
    """Paginated activity logs, newest first."""
    PermissionChecker(actor).require_owner("view activity logs")
    skip = (page - 1) * size

    logs, total = await ActivityLogService(db).get_logs(
        skip=skip,
        limit=size,
        user_email=user_email,
        user_role=user_role,
        action_type=action_type,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    return ActivityLogListResponse(
        items=[ActivityLogResponse.model_validate(entry) for entry in logs],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size if total > 0 else 1,
    )


@router.get("/export")
async def export_activity_logs(
    actor: CurrentActor,
    db: DB,
    user_email: Optional[str] = None,
    user_role: Optional[str] = None,
    action_type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
):
    """All matching logs as a CSV download."""
    PermissionChecker(actor).require_owner("export activity logs")
    content = await ActivityLogService(db).export_csv(
        user_email=user_email,
        user_role=user_role,
        action_type=action_type,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    filename = f"activity-logs-{utc_now().strftime('%Y-%m-%d')}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
