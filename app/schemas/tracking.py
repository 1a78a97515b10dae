"""Public client tracking view. No supplier, cost or profit fields."""
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from app.schemas.order import DeadlineResponse


class TimelineMilestone(BaseModel):
    """A single milestone in the client timeline."""
    key: str
    title: str
    description: str
    status: str  # completed, active, pending
    date: Optional[datetime] = None
    details: dict = {}


class TrackingResponse(BaseModel):
    """What a client sees when looking up their tracking code."""
    tracking_code: str
    client_name: str
    product_name: str
    package_name: str
    affiliate_count: int
    total_videos: int
    status: str
    friendly_status: str
    percent_complete: int
    timeline: List[TimelineMilestone]
    deadline: Optional[DeadlineResponse] = None
    report_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
