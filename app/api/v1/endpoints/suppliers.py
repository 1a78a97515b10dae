"""Supplier API Endpoints."""
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from app.api.deps import DB, CurrentActor, ClientIP, UserAgent
from app.schemas.base import SuccessResponse
from app.schemas.supplier import (
    SupplierCreate,
    SupplierUpdate,
    SupplierResponse,
    SupplierListResponse,
)
from app.services.supplier_service import SupplierService


router = APIRouter(prefix="/suppliers", tags=["Suppliers"])


@router.get("", response_model=SupplierListResponse)
async def list_suppliers(actor: CurrentActor, db: DB, active_only: bool = Query(False)):
    suppliers = await SupplierService(db).list_suppliers(actor, active_only=active_only)
    return SupplierListResponse(
        items=[SupplierResponse.model_validate(s) for s in suppliers],
        total=len(suppliers),
    )


@router.get("/me", response_model=SupplierResponse)
async def get_my_profile(actor: CurrentActor, db: DB):
    """The logged-in supplier's own record."""
    if not actor.is_supplier or actor.supplier_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No supplier profile for this account")
    supplier = await SupplierService(db).get_supplier(actor, actor.supplier_id)
    return SupplierResponse.model_validate(supplier)


@router.patch("/me", response_model=SupplierResponse)
async def update_my_profile(data: SupplierUpdate, actor: CurrentActor, db: DB, ip_address: ClientIP, user_agent: UserAgent):
    """Suppliers update their own contact, backup and banking details."""
    if not actor.is_supplier or actor.supplier_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No supplier profile for this account")
    supplier = await SupplierService(db, ip_address, user_agent).update_supplier(
        actor, actor.supplier_id, data.model_dump(exclude_unset=True)
    )
    return SupplierResponse.model_validate(supplier)


@router.post("", response_model=SupplierResponse, status_code=status.HTTP_201_CREATED)
async def create_supplier(data: SupplierCreate, actor: CurrentActor, db: DB, ip_address: ClientIP, user_agent: UserAgent):
    supplier = await SupplierService(db, ip_address, user_agent).create_supplier(actor, data.model_dump())
    return SupplierResponse.model_validate(supplier)


@router.get("/{supplier_id}", response_model=SupplierResponse)
async def get_supplier(supplier_id: UUID, actor: CurrentActor, db: DB):
    supplier = await SupplierService(db).get_supplier(actor, supplier_id)
    return SupplierResponse.model_validate(supplier)


@router.patch("/{supplier_id}", response_model=SupplierResponse)
async def update_supplier(
    supplier_id: UUID,
    data: SupplierUpdate,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
):
    supplier = await SupplierService(db, ip_address, user_agent).update_supplier(
        actor, supplier_id, data.model_dump(exclude_unset=True)
    )
    return SupplierResponse.model_validate(supplier)


@router.delete("/{supplier_id}", response_model=SuccessResponse)
async def delete_supplier(supplier_id: UUID, actor: CurrentActor, db: DB, ip_address: ClientIP, user_agent: UserAgent):
    await SupplierService(db, ip_address, user_agent).delete_supplier(actor, supplier_id)
    return SuccessResponse(message="Supplier deleted")
