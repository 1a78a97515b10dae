"""Campaign package API Endpoints. Listing is public for the packages page."""
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.api.deps import DB, CurrentActor, ClientIP, UserAgent
from app.schemas.base import SuccessResponse
from app.schemas.package import (
    PackageCreate,
    PackageUpdate,
    PackageResponse,
    PackageListResponse,
)
from app.services.package_service import PackageService


router = APIRouter(prefix="/packages", tags=["Packages"])


@router.get("", response_model=PackageListResponse)
async def list_packages(db: DB, active_only: bool = Query(True)):
    packages = await PackageService(db).list_packages(active_only=active_only)
    return PackageListResponse(
        items=[PackageResponse.model_validate(p) for p in packages],
        total=len(packages),
    )


@router.get("/{package_id}", response_model=PackageResponse)
async def get_package(package_id: UUID, db: DB):
    package = await PackageService(db).get_package(package_id)
    return PackageResponse.model_validate(package)


@router.post("", response_model=PackageResponse, status_code=status.HTTP_201_CREATED)
async def create_package(data: PackageCreate, actor: CurrentActor, db: DB, ip_address: ClientIP, user_agent: UserAgent):
    package = await PackageService(db, ip_address, user_agent).create_package(actor, data.model_dump())
    return PackageResponse.model_validate(package)


@router.patch("/{package_id}", response_model=PackageResponse)
async def update_package(
    package_id: UUID,
    data: PackageUpdate,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
):
    package = await PackageService(db, ip_address, user_agent).update_package(
        actor, package_id, data.model_dump(exclude_unset=True)
    )
    return PackageResponse.model_validate(package)


@router.delete("/{package_id}", response_model=SuccessResponse)
async def delete_package(package_id: UUID, actor: CurrentActor, db: DB, ip_address: ClientIP, user_agent: UserAgent):
    await PackageService(db, ip_address, user_agent).delete_package(actor, package_id)
    return SuccessResponse(message="Package deleted")
