from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Orders & workflow
    orders,
    tracking,
    # Master data
    suppliers,
    packages,
    # Access
    team,
    activity_logs,
)


api_router = APIRouter()

api_router.include_router(orders.router)
api_router.include_router(tracking.router)
api_router.include_router(suppliers.router)
api_router.include_router(packages.router)
api_router.include_router(team.router)
api_router.include_router(activity_logs.router)
