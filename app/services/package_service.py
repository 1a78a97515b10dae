"""Service for campaign packages (pricing templates)."""
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import AuditEvent
from app.core.exceptions import InvalidPackageError, NotFoundError
from app.core.permissions import Actor, PermissionChecker
from app.models.activity_log import ActivityAction, EntityType
from app.models.package import CampaignPackage
from app.repositories import PackageRepository
from app.services.activity_log_service import ActivityLogService

logger = logging.getLogger(__name__)


def validate_package_terms(values: Dict[str, Any]) -> None:
    """Size and pricing rules shared by create and update."""
    if values["affiliate_count"] <= 0:
        raise InvalidPackageError("Affiliate count must be greater than zero")
    if values["video_count_per_affiliate"] <= 0:
        raise InvalidPackageError("Videos per affiliate must be greater than zero")
    commission = Decimal(values["commission_rate"])
    if commission < 0 or commission > 100:
        raise InvalidPackageError(
            "Commission rate must be between 0 and 100",
            details={"commission_rate": str(commission)},
        )
    for field in ("current_price", "supplier_cost", "original_price"):
        if Decimal(values.get(field) or 0) < 0:
            raise InvalidPackageError(f"{field} cannot be negative", details={"field": field})


def _package_event(package: CampaignPackage, action: ActivityAction, description: str) -> AuditEvent:
    return AuditEvent(
        action_type=action.value,
        description=description,
        entity_type=EntityType.PACKAGE.value,
        entity_id=str(package.id),
    )


class PackageService:
    """
    Package management.

    total_videos is always recomputed from affiliate_count and
    video_count_per_affiliate. Edits never touch existing orders, which keep
    the snapshot taken at creation.
    """

    def __init__(self, db: AsyncSession, ip_address: Optional[str] = None, user_agent: Optional[str] = None):
        self.db = db
        self.packages = PackageRepository(db)
        self.activity = ActivityLogService(db)
        self.ip_address = ip_address
        self.user_agent = user_agent

    async def _dispatch(self, actor: Actor, event: AuditEvent) -> None:
        await self.activity.dispatch(actor, [event], ip_address=self.ip_address, user_agent=self.user_agent)

    async def list_packages(self, active_only: bool = False) -> List[CampaignPackage]:
        return await self.packages.find_all(active_only=active_only)

    async def get_package(self, package_id: uuid.UUID) -> CampaignPackage:
        package = await self.packages.find_by_id(package_id)
        if package is None:
            raise NotFoundError("Package", str(package_id))
        return package

    async def create_package(self, actor: Actor, data: Dict[str, Any]) -> CampaignPackage:
        PermissionChecker(actor).require_agency("create packages")

        values = dict(data)
        values.setdefault("video_count_per_affiliate", 1)
        values.setdefault("commission_rate", Decimal("10"))
        validate_package_terms(values)
        values["total_videos"] = values["affiliate_count"] * values["video_count_per_affiliate"]

        package = await self.packages.insert(CampaignPackage(**values))
        logger.info(f"Package created: {package.name}")
        await self._dispatch(actor, _package_event(package, ActivityAction.PACKAGE_CREATE, f"Created package {package.name}"))
        return package

    async def update_package(self, actor: Actor, package_id: uuid.UUID, changes: Dict[str, Any]) -> CampaignPackage:
        PermissionChecker(actor).require_agency("update packages")
        package = await self.get_package(package_id)

        merged = {
            "affiliate_count": package.affiliate_count,
            "video_count_per_affiliate": package.video_count_per_affiliate,
            "commission_rate": package.commission_rate,
            "current_price": package.current_price,
            "supplier_cost": package.supplier_cost,
            "original_price": package.original_price,
        }
        merged.update(changes)
        validate_package_terms(merged)

        values = dict(changes)
        values["total_videos"] = merged["affiliate_count"] * merged["video_count_per_affiliate"]

        package = await self.packages.update(package, values)
        await self._dispatch(actor, _package_event(package, ActivityAction.PACKAGE_UPDATE, f"Updated package {package.name}"))
        return package

    async def delete_package(self, actor: Actor, package_id: uuid.UUID) -> None:
        PermissionChecker(actor).require_agency("delete packages")
        package = await self.get_package(package_id)
        event = _package_event(package, ActivityAction.PACKAGE_DELETE, f"Deleted package {package.name}")
        await self.packages.delete(package)
        logger.info(f"Package deleted: {package.name}")
        await self._dispatch(actor, event)
