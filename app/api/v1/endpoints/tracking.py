"""
Client Tracking API Endpoint

Public, unauthenticated lookup by tracking code. Shows progress, timeline
and deadline; never supplier, cost or profit data.
"""
from fastapi import APIRouter

from app.api.deps import DB
from app.core.clock import utc_now
from app.schemas.order import DeadlineResponse
from app.schemas.tracking import TimelineMilestone, TrackingResponse
from app.services import progress, workflow_engine
from app.services.order_service import OrderService


router = APIRouter(prefix="/track", tags=["Client Tracking"])


def build_tracking_response(order) -> TrackingResponse:
    now = utc_now()
    projection = workflow_engine.project_deadline(order, now)
    deadline = None
    if projection is not None:
        deadline = DeadlineResponse(
            samples_received_date=projection.samples_received_date,
            deadline=projection.deadline,
            days_remaining=projection.days_remaining,
            state=projection.state.value,
        )

    return TrackingResponse(
        tracking_code=order.tracking_code,
        client_name=order.client_name,
        product_name=order.product_name,
        package_name=order.package_name,
        affiliate_count=order.affiliate_count,
        total_videos=order.total_videos,
        status=order.status,
        friendly_status=workflow_engine.friendly_status(order),
        percent_complete=progress.percent_complete(order.agency_progress),
        timeline=[
            TimelineMilestone(
                key=m.key,
                title=m.title,
                description=m.description,
                status=m.status.value,
                date=m.date,
                details=m.details,
            )
            for m in workflow_engine.build_timeline(order)
        ],
        deadline=deadline,
        report_url=order.report_url if order.agency_progress.report_sent else None,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


@router.get("/{tracking_code}", response_model=TrackingResponse)
async def track_order(tracking_code: str, db: DB):
    """Look up an order by tracking code (case-insensitive)."""
    order = await OrderService(db).get_by_tracking_code(tracking_code)
    return build_tracking_response(order)
