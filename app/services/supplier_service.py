"""Service for managing suppliers and supplier self-service profiles."""
from typing import Any, Dict, List, Optional
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import AuditEvent
from app.core.exceptions import NotFoundError, ValidationError
from app.core.permissions import Actor, PermissionChecker
from app.models.activity_log import ActivityAction, EntityType
from app.models.supplier import Supplier
from app.repositories import SupplierRepository
from app.services.activity_log_service import ActivityLogService

logger = logging.getLogger(__name__)

# Fields a supplier may change on their own record
PROFILE_FIELDS = frozenset({
    "phone",
    "company_name",
    "address",
    "backup_contact_name",
    "backup_contact_email",
    "backup_contact_phone",
    "business_registration_number",
    "bank_account_number",
    "bank_name",
})


def _supplier_event(supplier: Supplier, action: ActivityAction, description: str, **metadata) -> AuditEvent:
    return AuditEvent(
        action_type=action.value,
        description=description,
        entity_type=EntityType.SUPPLIER.value,
        entity_id=str(supplier.id),
        metadata=metadata,
    )


class SupplierService:
    """Supplier CRUD (agency) and profile updates (supplier or agency)."""

    def __init__(self, db: AsyncSession, ip_address: Optional[str] = None, user_agent: Optional[str] = None):
        self.db = db
        self.suppliers = SupplierRepository(db)
        self.activity = ActivityLogService(db)
        self.ip_address = ip_address
        self.user_agent = user_agent

    async def _get(self, supplier_id: uuid.UUID) -> Supplier:
        supplier = await self.suppliers.find_by_id(supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier", str(supplier_id))
        return supplier

    async def list_suppliers(self, actor: Actor, active_only: bool = False) -> List[Supplier]:
        PermissionChecker(actor).require_agency("list suppliers")
        return await self.suppliers.find_all(active_only=active_only)

    async def get_supplier(self, actor: Actor, supplier_id: uuid.UUID) -> Supplier:
        PermissionChecker(actor).require_supplier_profile(supplier_id)
        return await self._get(supplier_id)

    async def create_supplier(self, actor: Actor, data: Dict[str, Any]) -> Supplier:
        PermissionChecker(actor).require_agency("create suppliers")

        name = (data.get("name") or "").strip()
        email = (data.get("email") or "").strip().lower()
        if not name or not email:
            raise ValidationError("Supplier name and email are required")

        values = dict(data)
        values.update(name=name, email=email)
        supplier = await self.suppliers.insert(Supplier(**values))

        logger.info(f"Supplier created: {supplier.name}")
        await self.activity.dispatch(
            actor,
            [_supplier_event(supplier, ActivityAction.SUPPLIER_CREATE, f"Created supplier {supplier.name}")],
            ip_address=self.ip_address,
            user_agent=self.user_agent,
        )
        return supplier

    async def update_supplier(self, actor: Actor, supplier_id: uuid.UUID, changes: Dict[str, Any]) -> Supplier:
        """
        Update a supplier.

        Agency staff may change any field. A supplier may change only the
        profile fields of their own record.
        """
        checker = PermissionChecker(actor)
        checker.require_supplier_profile(supplier_id)
        supplier = await self._get(supplier_id)

        if not actor.is_agency:
            not_allowed = sorted(set(changes) - PROFILE_FIELDS)
            if not_allowed:
                raise ValidationError(
                    f"Suppliers cannot change: {', '.join(not_allowed)}",
                    details={"fields": not_allowed},
                )

        if "email" in changes and changes["email"]:
            changes["email"] = changes["email"].strip().lower()

        changed = {key: value for key, value in changes.items() if getattr(supplier, key) != value}
        if not changed:
            return supplier

        supplier = await self.suppliers.update(supplier, changed)
        await self.activity.dispatch(
            actor,
            [_supplier_event(
                supplier,
                ActivityAction.SUPPLIER_UPDATE,
                f"Updated supplier {supplier.name}",
                fields=sorted(changed),
            )],
            ip_address=self.ip_address,
            user_agent=self.user_agent,
        )
        return supplier

    async def delete_supplier(self, actor: Actor, supplier_id: uuid.UUID) -> None:
        """Delete a supplier. Assigned orders keep the copied supplier name."""
        PermissionChecker(actor).require_agency("delete suppliers")
        supplier = await self._get(supplier_id)
        event = _supplier_event(supplier, ActivityAction.SUPPLIER_DELETE, f"Deleted supplier {supplier.name}")

        await self.suppliers.delete(supplier)
        logger.info(f"Supplier deleted: {supplier.name}")
        await self.activity.dispatch(actor, [event], ip_address=self.ip_address, user_agent=self.user_agent)
