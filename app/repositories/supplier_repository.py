from typing import Any, Dict, List, Optional
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError
from app.models.supplier import Supplier
from app.repositories.base import storage_errors

logger = logging.getLogger(__name__)


class SupplierRepository:
    """CRUD for suppliers. No change feed."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_all(self, active_only: bool = False) -> List[Supplier]:
        stmt = select(Supplier).order_by(Supplier.name)
        if active_only:
            stmt = stmt.where(Supplier.active == True)  # noqa: E712
        with storage_errors("list suppliers"):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    async def find_by_id(self, supplier_id: uuid.UUID) -> Optional[Supplier]:
        with storage_errors("load supplier"):
            return await self.db.get(Supplier, supplier_id)

    async def find_by_email(self, email: str) -> Optional[Supplier]:
        stmt = select(Supplier).where(func.lower(Supplier.email) == email.strip().lower())
        with storage_errors("load supplier"):
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()

    async def insert(self, supplier: Supplier) -> Supplier:
        try:
            async with self.db.begin_nested():
                self.db.add(supplier)
                await self.db.flush()
        except IntegrityError as e:
            logger.warning(f"Duplicate supplier email: {supplier.email}")
            raise ValidationError(
                f"A supplier with email {supplier.email} already exists",
                details={"email": supplier.email},
            ) from e
        return supplier

    async def update(self, supplier: Supplier, changes: Dict[str, Any]) -> Supplier:
        for key, value in changes.items():
            setattr(supplier, key, value)
        try:
            async with self.db.begin_nested():
                await self.db.flush()
        except IntegrityError as e:
            raise ValidationError(
                "Another supplier already uses that email",
                details={"email": changes.get("email")},
            ) from e
        with storage_errors("reload supplier"):
            await self.db.refresh(supplier)
        return supplier

    async def delete(self, supplier: Supplier) -> None:
        with storage_errors("delete supplier"):
            await self.db.delete(supplier)
            await self.db.flush()
