"""
Order API Endpoints

Agency staff see and manage every order; suppliers see and progress the
orders assigned to them, without client pricing. Every mutation passes the
authenticated actor to OrderService, which applies the role gate.
"""
import asyncio
import json
import logging
from typing import Optional, Union
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, status
from fastapi.websockets import WebSocketDisconnect

from app.api.deps import DB, CurrentActor, ClientIP, UserAgent
from app.core.permissions import Actor, PermissionChecker
from app.core.security import decode_access_token
from app.database import get_db_session
from app.schemas.base import SuccessResponse
from app.schemas.order import (
    OrderCreate,
    OrderUpdate,
    AgencyProgressUpdate,
    SupplierProgressUpdate,
    PaymentMarkRequest,
    AssignSupplierRequest,
    ShipmentProofRequest,
    AffiliateCreate,
    AffiliateUpdate,
    NoteCreate,
    OrderResponse,
    SupplierOrderResponse,
    OrderListResponse,
    SupplierOrderListResponse,
    DashboardStatsResponse,
    AutoCheckResponse,
)
from app.services.auth_service import AuthService
from app.services.order_events import SupplierChangeFilter, order_change_feed
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["Orders"])

# Keys dropped from change-feed records sent to suppliers
SUPPLIER_HIDDEN_FIELDS = frozenset(
    name for name, field in SupplierOrderResponse.model_fields.items() if field.exclude
)


def _order_response(order, actor: Actor) -> Union[OrderResponse, SupplierOrderResponse]:
    if actor.is_agency:
        return OrderResponse.model_validate(order)
    return SupplierOrderResponse.model_validate(order)


def _service(db, ip_address: Optional[str], user_agent: Optional[str]) -> OrderService:
    return OrderService(db, ip_address=ip_address, user_agent=user_agent)


# ==================== LISTS / STATS ====================

@router.get("")
async def list_orders(
    actor: CurrentActor,
    db: DB,
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1, le=500),
):
    """Agency: every order. Supplier: only orders assigned to them."""
    orders, total = await OrderService(db).list_orders(
        actor, status=status_filter, search=search, skip=skip, limit=limit
    )
    if actor.is_agency:
        return OrderListResponse(items=[OrderResponse.model_validate(o) for o in orders], total=total)
    return SupplierOrderListResponse(items=[SupplierOrderResponse.model_validate(o) for o in orders], total=total)


@router.get("/stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats(actor: CurrentActor, db: DB):
    stats = await OrderService(db).get_dashboard_stats(actor)
    return DashboardStatsResponse(
        total_revenue=stats.total_revenue,
        total_profit=stats.total_profit,
        active_orders=stats.active_orders,
        completed_orders=stats.completed_orders,
        pending_payments=stats.pending_payments,
    )


@router.post("/auto-check", response_model=AutoCheckResponse)
async def run_auto_check(actor: CurrentActor, db: DB):
    """Run the supplier payment auto-verification sweep now."""
    PermissionChecker(actor).require_agency("run payment auto-verification")
    verified_ids = await OrderService(db).auto_verify_payments()
    return AutoCheckResponse(verified_count=len(verified_ids), order_ids=verified_ids)


@router.get("/supplier/{supplier_id}", response_model=SupplierOrderListResponse)
async def list_supplier_orders(supplier_id: UUID, actor: CurrentActor, db: DB):
    orders = await OrderService(db).list_supplier_orders(actor, supplier_id)
    return SupplierOrderListResponse(
        items=[SupplierOrderResponse.model_validate(o) for o in orders],
        total=len(orders),
    )


# ==================== CHANGE STREAM ====================

@router.websocket("/stream")
async def ws_order_stream(ws: WebSocket, token: str = Query(...)):
    """
    Push committed order changes as JSON messages:
    {"type": "insert|update|delete", "order_id", "record", "updated_at"}.

    Suppliers only get their own orders, without pricing, and a delete
    when an order is removed or reassigned away from them.
    """
    await ws.accept()

    payload = decode_access_token(token)
    actor = None
    if payload is not None:
        async with get_db_session() as db:
            actor = await AuthService(db).resolve_actor(payload["sub"])
    if actor is None:
        await ws.send_text(json.dumps({"error": "Could not validate credentials"}))
        await ws.close(code=4401)
        return

    queue = order_change_feed.subscribe()
    supplier_filter = None
    if not actor.is_agency:
        async with get_db_session() as db:
            orders = await OrderService(db).list_supplier_orders(actor, actor.supplier_id)
        supplier_filter = SupplierChangeFilter(
            actor.supplier_id, [o.id for o in orders], SUPPLIER_HIDDEN_FIELDS
        )
    logger.info(f"Order stream: {actor.email} connected")

    async def _pump_changes():
        while True:
            change = await queue.get()
            message = change.to_dict() if supplier_filter is None else supplier_filter.filter(change)
            if message is not None:
                await ws.send_text(json.dumps(message))

    async def _wait_for_disconnect():
        try:
            while True:
                msg = await ws.receive()
                if msg.get("type") == "websocket.disconnect":
                    break
        except WebSocketDisconnect:
            pass

    sender = asyncio.create_task(_pump_changes())
    receiver = asyncio.create_task(_wait_for_disconnect())
    try:
        done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.warning(f"Order stream error for {actor.email}: {task.exception()}")
    finally:
        order_change_feed.unsubscribe(queue)
        logger.info(f"Order stream: {actor.email} closed")


# ==================== CRUD ====================

@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(data: OrderCreate, actor: CurrentActor, db: DB, ip_address: ClientIP, user_agent: UserAgent):
    """Create an order. All five compliance items must be confirmed."""
    order_data = data.model_dump(exclude={"package_id", "custom_package", "price_discount", "supplier_id", "compliance"})
    order = await _service(db, ip_address, user_agent).create_order(
        actor,
        data=order_data,
        compliance=data.compliance.model_dump(),
        package_id=data.package_id,
        custom_package=data.custom_package.model_dump() if data.custom_package else None,
        price_discount=data.price_discount,
        supplier_id=data.supplier_id,
    )
    return OrderResponse.model_validate(order)


@router.get("/{order_id}")
async def get_order(order_id: UUID, actor: CurrentActor, db: DB):
    order = await OrderService(db).get_order(actor, order_id)
    return _order_response(order, actor)


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: UUID,
    data: OrderUpdate,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
):
    """Partial update; only the fields sent are written."""
    order = await _service(db, ip_address, user_agent).update_order(
        actor, order_id, data.model_dump(exclude_unset=True)
    )
    return OrderResponse.model_validate(order)


@router.delete("/{order_id}", response_model=SuccessResponse)
async def delete_order(
    order_id: UUID,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
    confirmation_code: str = Query(..., description="The order's tracking code"),
):
    await _service(db, ip_address, user_agent).delete_order(actor, order_id, confirmation_code)
    return SuccessResponse(message="Order deleted")


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: UUID, actor: CurrentActor, db: DB, ip_address: ClientIP, user_agent: UserAgent):
    order = await _service(db, ip_address, user_agent).cancel_order(actor, order_id)
    return OrderResponse.model_validate(order)


# ==================== PROGRESS ====================

@router.put("/{order_id}/agency-progress", response_model=OrderResponse)
async def set_agency_progress(
    order_id: UUID,
    data: AgencyProgressUpdate,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
):
    order = await _service(db, ip_address, user_agent).set_agency_progress(actor, order_id, data.flag, data.value)
    return OrderResponse.model_validate(order)


@router.put("/{order_id}/supplier-progress")
async def set_supplier_progress(
    order_id: UUID,
    data: SupplierProgressUpdate,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
):
    order = await _service(db, ip_address, user_agent).set_supplier_progress(
        actor, order_id, data.flag, data.value, data.to_payload()
    )
    return _order_response(order, actor)


# ==================== SUPPLIER PAYMENT ====================

@router.post("/{order_id}/payment/mark", response_model=OrderResponse)
async def mark_supplier_payment(
    order_id: UUID,
    data: PaymentMarkRequest,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
):
    """Agency marks the supplier as paid; the supplier then verifies or disputes."""
    order = await _service(db, ip_address, user_agent).record_supplier_payment_marked(actor, order_id, data.proof_url)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/payment/verify")
async def verify_supplier_payment(order_id: UUID, actor: CurrentActor, db: DB, ip_address: ClientIP, user_agent: UserAgent):
    order = await _service(db, ip_address, user_agent).record_supplier_payment_verified(actor, order_id)
    return _order_response(order, actor)


@router.post("/{order_id}/payment/dispute")
async def dispute_supplier_payment(order_id: UUID, actor: CurrentActor, db: DB, ip_address: ClientIP, user_agent: UserAgent):
    order = await _service(db, ip_address, user_agent).record_supplier_payment_disputed(actor, order_id)
    return _order_response(order, actor)


@router.post("/{order_id}/payment/reset", response_model=OrderResponse)
async def reset_supplier_payment(order_id: UUID, actor: CurrentActor, db: DB, ip_address: ClientIP, user_agent: UserAgent):
    order = await _service(db, ip_address, user_agent).reset_supplier_payment(actor, order_id)
    return OrderResponse.model_validate(order)


# ==================== ASSIGNMENT / SHIPMENT ====================

@router.put("/{order_id}/supplier", response_model=OrderResponse)
async def assign_supplier(
    order_id: UUID,
    data: AssignSupplierRequest,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
):
    """Assign a supplier, or unassign with supplier_id null."""
    order = await _service(db, ip_address, user_agent).assign_supplier(actor, order_id, data.supplier_id)
    return OrderResponse.model_validate(order)


@router.put("/{order_id}/shipment-proof", response_model=OrderResponse)
async def record_shipment_proof(
    order_id: UUID,
    data: ShipmentProofRequest,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
):
    order = await _service(db, ip_address, user_agent).record_client_shipment_proof(actor, order_id, data.proof_url)
    return OrderResponse.model_validate(order)


# ==================== AFFILIATES ====================

@router.post("/{order_id}/affiliates", status_code=status.HTTP_201_CREATED)
async def add_affiliate(
    order_id: UUID,
    data: AffiliateCreate,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
):
    order = await _service(db, ip_address, user_agent).add_affiliate(actor, order_id, data.model_dump())
    return _order_response(order, actor)


@router.patch("/{order_id}/affiliates/{affiliate_id}")
async def update_affiliate(
    order_id: UUID,
    affiliate_id: UUID,
    data: AffiliateUpdate,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
):
    order = await _service(db, ip_address, user_agent).update_affiliate(
        actor, order_id, affiliate_id, data.model_dump(exclude_unset=True)
    )
    return _order_response(order, actor)


@router.delete("/{order_id}/affiliates/{affiliate_id}")
async def remove_affiliate(
    order_id: UUID,
    affiliate_id: UUID,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
):
    order = await _service(db, ip_address, user_agent).remove_affiliate(actor, order_id, affiliate_id)
    return _order_response(order, actor)


# ==================== NOTES ====================

@router.post("/{order_id}/notes", status_code=status.HTTP_201_CREATED)
async def add_note(
    order_id: UUID,
    data: NoteCreate,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
):
    order = await _service(db, ip_address, user_agent).add_note(actor, order_id, data.content)
    return _order_response(order, actor)


@router.delete("/{order_id}/notes/{note_id}")
async def delete_note(
    order_id: UUID,
    note_id: UUID,
    actor: CurrentActor,
    db: DB,
    ip_address: ClientIP,
    user_agent: UserAgent,
):
    order = await _service(db, ip_address, user_agent).delete_note(actor, order_id, note_id)
    return _order_response(order, actor)
