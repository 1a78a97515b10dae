from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.package import CampaignPackage
from app.repositories.base import storage_errors


class PackageRepository:
    """CRUD for campaign packages. No change feed."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_all(self, active_only: bool = False) -> List[CampaignPackage]:
        stmt = select(CampaignPackage).order_by(CampaignPackage.current_price)
        if active_only:
            stmt = stmt.where(CampaignPackage.is_active == True)  # noqa: E712
        with storage_errors("list packages"):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    async def find_by_id(self, package_id: uuid.UUID) -> Optional[CampaignPackage]:
        with storage_errors("load package"):
            return await self.db.get(CampaignPackage, package_id)

    async def insert(self, package: CampaignPackage) -> CampaignPackage:
        with storage_errors("create package"):
            self.db.add(package)
            await self.db.flush()
        return package

    async def update(self, package: CampaignPackage, changes: Dict[str, Any]) -> CampaignPackage:
        with storage_errors("update package"):
            for key, value in changes.items():
                setattr(package, key, value)
            await self.db.flush()
            await self.db.refresh(package)
        return package

    async def delete(self, package: CampaignPackage) -> None:
        with storage_errors("delete package"):
            await self.db.delete(package)
            await self.db.flush()
