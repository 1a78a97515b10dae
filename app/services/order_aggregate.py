"""
Order Aggregate

Construction and mutation rules for a campaign Order.

Every function here checks the acting user against the role gate, validates
its input, changes the in-memory order (or returns the column values the
repository must write) and returns the audit events for the caller to
dispatch. Nothing here opens a session or writes to the activity log.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
import secrets
import string
from typing import Any, Dict, List, Optional, Tuple
import uuid

from app.core.exceptions import (
    ComplianceIncompleteError,
    InvalidPackageError,
    NotFoundError,
    ValidationError,
)
from app.core.audit import AuditEvent
from app.core.permissions import Actor, PermissionChecker
from app.models.activity_log import ActivityAction, EntityType
from app.models.order import (
    Order,
    OrderAffiliate,
    OrderNote,
    OrderStatus,
    OrderStatusHistory,
    SupplierPaymentStatus,
)
from app.services import payment_state_machine
from app.services.progress import (
    AGENCY_FLAG_LABELS,
    SUPPLIER_FLAG_LABELS,
    SupplierStepPayload,
    apply_agency_flag,
    apply_supplier_flag,
    new_agency_progress,
    new_supplier_progress,
)
from app.services.workflow_engine import derive_status


TRACKING_CODE_ALPHABET = string.ascii_uppercase + string.digits
TRACKING_CODE_LENGTH = 8

COMPLIANCE_ITEMS: Tuple[str, ...] = (
    "commission_set",
    "terms_acknowledged",
    "verbal_briefing",
    "shipping_acknowledged",
    "content_guidelines_provided",
)

CLIENT_FIELDS: Tuple[str, ...] = (
    "client_name",
    "client_email",
    "client_phone",
    "product_name",
    "product_description",
    "product_tiktok_link",
    "account_manager",
    "special_requests",
    "payment_receipt_url",
    "payment_receipt_number",
    "content_guidelines",
    "notes",
)

PRICING_FIELDS: Tuple[str, ...] = (
    "price_client",
    "price_discount",
    "cost_supplier",
    "commission_rate",
)

UPDATABLE_FIELDS = frozenset(
    CLIENT_FIELDS
    + PRICING_FIELDS
    + ("report_url", "supplier_payment_proof_url")
    + tuple(f"compliance_{item}" for item in COMPLIANCE_ITEMS)
)

# Written only by their own operations (or never)
PROTECTED_FIELDS = frozenset({
    "id",
    "tracking_code",
    "profit",
    "created_at",
    "updated_at",
    "status",
    "supplier_id",
    "supplier_name",
    "supplier_payment_status",
    "supplier_payment_date",
    "supplier_payment_verified_date",
    "client_shipment_proof_url",
})

REQUIRED_CREATE_FIELDS = ("client_name", "client_email", "product_name")


@dataclass
class PackageSnapshot:
    """Package economics copied onto an order at creation."""
    package_id: Optional[uuid.UUID]
    package_name: str
    affiliate_count: int
    video_count_per_affiliate: int
    total_videos: int
    price_client: Decimal
    price_discount: Decimal
    cost_supplier: Decimal
    commission_rate: Decimal

    @classmethod
    def from_package(cls, package, discount: Optional[Decimal] = None) -> "PackageSnapshot":
        discount = to_decimal(discount or 0, "price_discount")
        return cls(
            package_id=package.id,
            package_name=package.name,
            affiliate_count=package.affiliate_count,
            video_count_per_affiliate=package.video_count_per_affiliate,
            total_videos=package.total_videos,
            price_client=Decimal(package.current_price) - discount,
            price_discount=discount,
            cost_supplier=Decimal(package.supplier_cost),
            commission_rate=Decimal(package.commission_rate),
        )


# =============================================================================
# HELPERS
# =============================================================================

def generate_tracking_code() -> str:
    """8 characters drawn uniformly from [A-Z0-9]. Uniqueness is enforced by the store."""
    return "".join(secrets.choice(TRACKING_CODE_ALPHABET) for _ in range(TRACKING_CODE_LENGTH))


def normalize_tracking_code(code: str) -> str:
    return (code or "").strip().upper()


def to_decimal(value, field_name: str, error_cls=ValidationError) -> Decimal:
    """Parse a money or rate input, raising a domain error instead of InvalidOperation."""
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise error_cls(f"{field_name} must be a number", details={"field": field_name, "value": str(value)})


def compute_profit(price_client, cost_supplier) -> Decimal:
    return Decimal(price_client or 0) - Decimal(cost_supplier or 0)


def missing_compliance_items(compliance: Dict[str, bool]) -> List[str]:
    return [item for item in COMPLIANCE_ITEMS if not compliance.get(item)]


def check_compliance(compliance: Dict[str, bool]) -> None:
    missing = missing_compliance_items(compliance)
    if missing:
        raise ComplianceIncompleteError(missing)


def validate_package_snapshot(snapshot: PackageSnapshot) -> None:
    if snapshot.affiliate_count is None or snapshot.affiliate_count <= 0:
        raise InvalidPackageError(
            "Package must include at least one affiliate",
            details={"affiliate_count": snapshot.affiliate_count},
        )
    if snapshot.video_count_per_affiliate is None or snapshot.video_count_per_affiliate <= 0:
        raise InvalidPackageError(
            "Package must include at least one video per affiliate",
            details={"video_count_per_affiliate": snapshot.video_count_per_affiliate},
        )
    expected = snapshot.affiliate_count * snapshot.video_count_per_affiliate
    if snapshot.total_videos != expected:
        raise InvalidPackageError(
            f"Package total videos {snapshot.total_videos} does not match "
            f"{snapshot.affiliate_count} affiliates x {snapshot.video_count_per_affiliate} videos",
            details={"total_videos": snapshot.total_videos, "expected": expected},
        )
    if snapshot.price_discount < 0 or snapshot.price_client < 0:
        raise InvalidPackageError(
            "Discount cannot exceed the package price",
            details={"price_client": str(snapshot.price_client), "price_discount": str(snapshot.price_discount)},
        )
    if snapshot.cost_supplier < 0:
        raise InvalidPackageError("Supplier cost cannot be negative")
    if not (0 <= snapshot.commission_rate <= 100):
        raise InvalidPackageError(
            "Commission rate must be between 0 and 100",
            details={"commission_rate": str(snapshot.commission_rate)},
        )


def _validate_pricing(values: Dict[str, Any]) -> None:
    for name in ("price_client", "price_discount", "cost_supplier"):
        if name in values and (values[name] is None or to_decimal(values[name], name) < 0):
            raise ValidationError(f"{name} must be zero or more", details={"field": name})
    if "commission_rate" in values:
        rate = values["commission_rate"]
        if rate is None or not (0 <= to_decimal(rate, "commission_rate") <= 100):
            raise ValidationError("Commission rate must be between 0 and 100", details={"field": "commission_rate"})


def _history_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def history_entry(order: Order, field_name: str, old_value, new_value, actor: Actor, now: datetime) -> OrderStatusHistory:
    return OrderStatusHistory(
        id=uuid.uuid4(),
        order_id=order.id,
        field=field_name,
        old_value=_history_value(old_value),
        new_value=_history_value(new_value),
        changed_by=actor.email,
        changed_by_name=actor.name,
        changed_at=now,
    )


def _record_history(order: Order, field_name: str, old_value, new_value, actor: Actor, now: datetime) -> None:
    order.status_history.append(history_entry(order, field_name, old_value, new_value, actor, now))


def _order_event(order: Order, action: ActivityAction, description: str, **metadata) -> AuditEvent:
    metadata.setdefault("tracking_code", order.tracking_code)
    return AuditEvent(
        action_type=action.value,
        description=description,
        entity_type=EntityType.ORDER.value,
        entity_id=str(order.id),
        metadata=metadata,
    )


# =============================================================================
# CREATE / UPDATE / DELETE
# =============================================================================

def build_order(
    actor: Actor,
    data: Dict[str, Any],
    compliance: Dict[str, bool],
    snapshot: PackageSnapshot,
    tracking_code: str,
    now: datetime,
) -> Tuple[Order, List[AuditEvent]]:
    """
    Build a new order from client data, the compliance checklist and a
    package snapshot. All progress flags start false and payment unpaid.
    """
    PermissionChecker(actor).require_agency("create orders")
    check_compliance(compliance)
    validate_package_snapshot(snapshot)

    missing = [name for name in REQUIRED_CREATE_FIELDS if not (data.get(name) or "").strip()]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )

    order = Order(
        id=uuid.uuid4(),
        tracking_code=tracking_code,
        client_name=data["client_name"].strip(),
        client_email=data["client_email"].strip(),
        client_phone=data.get("client_phone") or "",
        product_name=data["product_name"].strip(),
        product_description=data.get("product_description") or "",
        product_tiktok_link=data.get("product_tiktok_link"),
        account_manager=data.get("account_manager") or actor.name,
        special_requests=data.get("special_requests") or "",
        payment_receipt_url=data.get("payment_receipt_url"),
        payment_receipt_number=data.get("payment_receipt_number"),
        content_guidelines=data.get("content_guidelines"),
        notes=data.get("notes"),
        package_id=snapshot.package_id,
        package_name=snapshot.package_name,
        affiliate_count=snapshot.affiliate_count,
        video_count_per_affiliate=snapshot.video_count_per_affiliate,
        total_videos=snapshot.total_videos,
        price_client=snapshot.price_client,
        price_discount=snapshot.price_discount,
        cost_supplier=snapshot.cost_supplier,
        profit=compute_profit(snapshot.price_client, snapshot.cost_supplier),
        commission_rate=snapshot.commission_rate,
        supplier_payment_status=SupplierPaymentStatus.UNPAID.value,
        status=OrderStatus.PENDING_PAYMENT.value,
        created_at=now,
        updated_at=now,
    )
    for item in COMPLIANCE_ITEMS:
        setattr(order, f"compliance_{item}", True)

    order.agency_progress = new_agency_progress()
    order.supplier_progress = new_supplier_progress()
    order.affiliates = []
    order.order_notes = []
    order.status_history = []
    order.status = derive_status(order)

    event = _order_event(
        order,
        ActivityAction.ORDER_CREATE,
        f"Created order {tracking_code} for {order.client_name} ({order.package_name})",
        package_name=order.package_name,
        price_client=str(order.price_client),
    )
    return order, [event]


def prepare_update(
    order: Order,
    actor: Actor,
    partial: Dict[str, Any],
    now: datetime,
) -> Tuple[Dict[str, Any], List[AuditEvent]]:
    """
    Validate a partial update and return only the columns that change.

    The repository writes exactly these columns (plus updated_at) and
    derives profit from the stored prices in the same statement. Two
    concurrent updates touching disjoint fields therefore both survive;
    updates touching the same field race and the later write wins.
    """
    PermissionChecker(actor).require_agency("update orders")

    protected = sorted(set(partial) & PROTECTED_FIELDS)
    if protected:
        raise ValidationError(
            f"Fields cannot be updated directly: {', '.join(protected)}",
            details={"fields": protected},
        )
    unknown = sorted(set(partial) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Unknown order fields: {', '.join(unknown)}",
            details={"fields": unknown},
        )

    _validate_pricing(partial)

    changes = {name: value for name, value in partial.items() if getattr(order, name) != value}
    if not changes:
        return {}, []

    changed_fields = sorted(changes)
    changes["updated_at"] = now

    event = _order_event(
        order,
        ActivityAction.ORDER_UPDATE,
        f"Updated order {order.tracking_code}: {', '.join(changed_fields)}",
        fields=changed_fields,
    )
    return changes, [event]


def confirm_deletion(order: Order, actor: Actor, confirmation_code: str) -> List[AuditEvent]:
    """Deleting an order requires its tracking code to be typed back."""
    PermissionChecker(actor).require_agency("delete orders")
    if normalize_tracking_code(confirmation_code) != order.tracking_code:
        raise ValidationError(
            "Tracking code confirmation does not match",
            details={"tracking_code": order.tracking_code},
        )
    return [_order_event(
        order,
        ActivityAction.ORDER_DELETE,
        f"Deleted order {order.tracking_code} ({order.client_name})",
    )]


def cancel_order(order: Order, actor: Actor, now: datetime) -> List[AuditEvent]:
    PermissionChecker(actor).require_agency("cancel orders")
    if order.status == OrderStatus.CANCELLED.value:
        raise ValidationError("Order is already cancelled")
    if order.status == OrderStatus.COMPLETED.value:
        raise ValidationError("Completed orders cannot be cancelled")

    _record_history(order, "status", order.status, OrderStatus.CANCELLED.value, actor, now)
    order.status = OrderStatus.CANCELLED.value
    order.updated_at = now
    return [_order_event(order, ActivityAction.ORDER_CANCEL, f"Cancelled order {order.tracking_code}")]


# =============================================================================
# PROGRESS
# =============================================================================

def set_agency_progress(
    order: Order,
    actor: Actor,
    flag: str,
    value: bool,
    now: datetime,
) -> Tuple[bool, List[AuditEvent]]:
    """
    Set an agency checklist flag and re-derive the raw status.

    Returns:
        (changed, audit events)
    """
    PermissionChecker(actor).require_agency("update agency progress")

    if not apply_agency_flag(order.agency_progress, flag, value, now):
        return False, []

    value = bool(value)
    _record_history(order, flag, not value, value, actor, now)

    new_status = derive_status(order)
    if new_status != order.status:
        _record_history(order, "status", order.status, new_status, actor, now)
        order.status = new_status
    order.updated_at = now

    verb = "Completed" if value else "Undid"
    event = _order_event(
        order,
        ActivityAction.PROGRESS_UPDATE,
        f"{verb} '{AGENCY_FLAG_LABELS[flag]}' on order {order.tracking_code}",
        flag=flag,
        value=value,
        status=order.status,
    )
    return True, [event]


def set_supplier_progress(
    order: Order,
    actor: Actor,
    flag: str,
    value: bool,
    now: datetime,
    payload: Optional[SupplierStepPayload] = None,
) -> Tuple[bool, List[AuditEvent]]:
    """Set a supplier checklist flag, validating any payload the step needs."""
    PermissionChecker(actor).require_supplier_progress(order)

    if not apply_supplier_flag(order.supplier_progress, flag, value, now, payload):
        return False, []

    value = bool(value)
    _record_history(order, f"supplier.{flag}", not value, value, actor, now)
    order.updated_at = now

    verb = "Completed" if value else "Undid"
    event = _order_event(
        order,
        ActivityAction.SUPPLIER_PROGRESS_UPDATE,
        f"{verb} supplier step '{SUPPLIER_FLAG_LABELS[flag]}' on order {order.tracking_code}",
        flag=flag,
        value=value,
    )
    return True, [event]


# =============================================================================
# SUPPLIER PAYMENT
# =============================================================================

PAYMENT_EVENT_DESCRIPTIONS = {
    SupplierPaymentStatus.PENDING_VERIFICATION.value: "Marked supplier payment as sent",
    SupplierPaymentStatus.VERIFIED.value: "Supplier confirmed payment received",
    SupplierPaymentStatus.DISPUTED.value: "Supplier disputed payment",
    SupplierPaymentStatus.UNPAID.value: "Reset supplier payment to unpaid",
}


def prepare_payment_transition(
    order: Order,
    actor: Actor,
    new_status: str,
    now: datetime,
    extra_values: Optional[Dict[str, Any]] = None,
) -> Tuple[Dict[str, Any], List[AuditEvent]]:
    """
    Validate a supplier payment transition and return the column values.

    Marking and resetting belong to the agency; verifying and disputing
    belong to the assigned supplier. The repository applies the values
    only if the stored status still equals the current one.
    """
    checker = PermissionChecker(actor)
    if new_status in (SupplierPaymentStatus.PENDING_VERIFICATION.value, SupplierPaymentStatus.UNPAID.value):
        checker.require_agency("mark or reset supplier payments")
    else:
        checker.require_payment_acknowledgement(order)

    current_status = order.supplier_payment_status
    payment_state_machine.validate_transition(current_status, new_status)

    values = payment_state_machine.transition_values(new_status, now)
    if extra_values:
        values.update(extra_values)
    values["updated_at"] = now

    event = _order_event(
        order,
        ActivityAction.PAYMENT_UPDATE,
        f"{PAYMENT_EVENT_DESCRIPTIONS[new_status]} on order {order.tracking_code}",
        old_status=current_status,
        new_status=new_status,
    )
    return values, [event]


def record_supplier_payment_marked(order: Order, actor: Actor, now: datetime, proof_url: Optional[str] = None):
    extra = {"supplier_payment_proof_url": proof_url} if proof_url else None
    return prepare_payment_transition(order, actor, SupplierPaymentStatus.PENDING_VERIFICATION.value, now, extra)


def record_supplier_payment_verified(order: Order, actor: Actor, now: datetime):
    return prepare_payment_transition(order, actor, SupplierPaymentStatus.VERIFIED.value, now)


def record_supplier_payment_disputed(order: Order, actor: Actor, now: datetime):
    return prepare_payment_transition(order, actor, SupplierPaymentStatus.DISPUTED.value, now)


def reset_supplier_payment(order: Order, actor: Actor, now: datetime):
    return prepare_payment_transition(order, actor, SupplierPaymentStatus.UNPAID.value, now)


def auto_verification_event(order: Order, hours: int) -> AuditEvent:
    return _order_event(
        order,
        ActivityAction.PAYMENT_UPDATE,
        f"Supplier payment auto-verified after {hours}h on order {order.tracking_code}",
        old_status=SupplierPaymentStatus.PENDING_VERIFICATION.value,
        new_status=SupplierPaymentStatus.VERIFIED.value,
        automatic=True,
    )


# =============================================================================
# ASSIGNMENT / SHIPMENT
# =============================================================================

def assign_supplier(order: Order, actor: Actor, supplier, now: datetime) -> List[AuditEvent]:
    """Assign (or with supplier=None, unassign) a supplier. The name is copied."""
    PermissionChecker(actor).require_agency("assign suppliers")

    if supplier is not None and not supplier.active:
        raise ValidationError(
            f"Supplier '{supplier.name}' is inactive",
            details={"supplier_id": str(supplier.id)},
        )

    new_id = supplier.id if supplier is not None else None
    new_name = supplier.name if supplier is not None else None
    if order.supplier_id == new_id:
        return []

    _record_history(order, "supplier", order.supplier_name, new_name, actor, now)
    order.supplier_id = new_id
    order.supplier_name = new_name
    order.updated_at = now

    description = (
        f"Assigned supplier {new_name} to order {order.tracking_code}"
        if supplier is not None
        else f"Unassigned supplier from order {order.tracking_code}"
    )
    return [_order_event(
        order,
        ActivityAction.SUPPLIER_ASSIGN,
        description,
        supplier_id=str(new_id) if new_id else None,
    )]


def record_client_shipment_proof(order: Order, actor: Actor, proof_url: Optional[str], now: datetime) -> List[AuditEvent]:
    """Presence of the proof URL means the client has shipped samples. Empty clears it."""
    PermissionChecker(actor).require_agency("record client shipment proof")

    proof_url = (proof_url or "").strip() or None
    if proof_url == order.client_shipment_proof_url:
        return []

    _record_history(order, "client_shipment_proof_url", order.client_shipment_proof_url, proof_url, actor, now)
    order.client_shipment_proof_url = proof_url
    order.updated_at = now
    return [_order_event(
        order,
        ActivityAction.SHIPMENT_PROOF,
        f"{'Recorded' if proof_url else 'Cleared'} client shipment proof on order {order.tracking_code}",
    )]


# =============================================================================
# AFFILIATES
# =============================================================================

AFFILIATE_FIELDS = ("name", "tiktok_handle", "profile_url", "sample_received", "video_completed", "video_url")


def _find_affiliate(order: Order, affiliate_id) -> OrderAffiliate:
    for affiliate in order.affiliates:
        if str(affiliate.id) == str(affiliate_id):
            return affiliate
    raise NotFoundError("Affiliate", str(affiliate_id))


def add_affiliate(order: Order, actor: Actor, data: Dict[str, Any], now: datetime) -> Tuple[OrderAffiliate, List[AuditEvent]]:
    PermissionChecker(actor).require_supplier_progress(order)

    if len(order.affiliates) >= order.affiliate_count:
        raise ValidationError(
            f"Order already has {order.affiliate_count} affiliates",
            details={"affiliate_count": order.affiliate_count},
        )
    name = (data.get("name") or "").strip()
    handle = (data.get("tiktok_handle") or "").strip()
    if not name or not handle:
        raise ValidationError("Affiliate name and TikTok handle are required")

    affiliate = OrderAffiliate(
        id=uuid.uuid4(),
        order_id=order.id,
        name=name,
        tiktok_handle=handle,
        profile_url=data.get("profile_url"),
        sample_received=bool(data.get("sample_received", False)),
        video_completed=bool(data.get("video_completed", False)),
        video_url=data.get("video_url"),
        created_at=now,
    )
    order.affiliates.append(affiliate)
    order.updated_at = now
    return affiliate, [_order_event(
        order,
        ActivityAction.AFFILIATE_ADD,
        f"Added affiliate {handle} to order {order.tracking_code}",
        affiliate_id=str(affiliate.id),
    )]


def update_affiliate(order: Order, actor: Actor, affiliate_id, data: Dict[str, Any], now: datetime) -> Tuple[OrderAffiliate, List[AuditEvent]]:
    PermissionChecker(actor).require_supplier_progress(order)
    affiliate = _find_affiliate(order, affiliate_id)

    changed = []
    for name in AFFILIATE_FIELDS:
        if name in data and getattr(affiliate, name) != data[name]:
            setattr(affiliate, name, data[name])
            changed.append(name)
    if not changed:
        return affiliate, []

    order.updated_at = now
    return affiliate, [_order_event(
        order,
        ActivityAction.AFFILIATE_UPDATE,
        f"Updated affiliate {affiliate.tiktok_handle} on order {order.tracking_code}",
        affiliate_id=str(affiliate.id),
        fields=changed,
    )]


def remove_affiliate(order: Order, actor: Actor, affiliate_id, now: datetime) -> List[AuditEvent]:
    PermissionChecker(actor).require_supplier_progress(order)
    affiliate = _find_affiliate(order, affiliate_id)
    order.affiliates.remove(affiliate)
    order.updated_at = now
    return [_order_event(
        order,
        ActivityAction.AFFILIATE_REMOVE,
        f"Removed affiliate {affiliate.tiktok_handle} from order {order.tracking_code}",
        affiliate_id=str(affiliate.id),
    )]


# =============================================================================
# NOTES
# =============================================================================

def add_note(order: Order, actor: Actor, content: str, now: datetime) -> Tuple[OrderNote, List[AuditEvent]]:
    PermissionChecker(actor).require_view(order)
    content = (content or "").strip()
    if not content:
        raise ValidationError("Note cannot be empty")

    note = OrderNote(
        id=uuid.uuid4(),
        order_id=order.id,
        content=content,
        created_by=actor.email,
        created_by_name=actor.name,
        created_at=now,
    )
    order.order_notes.append(note)
    order.updated_at = now
    return note, [_order_event(
        order,
        ActivityAction.NOTE_ADD,
        f"Added note to order {order.tracking_code}",
        note_id=str(note.id),
    )]


def delete_note(order: Order, actor: Actor, note_id, now: datetime) -> List[AuditEvent]:
    """Agency may delete any note; anyone else only their own."""
    checker = PermissionChecker(actor)
    checker.require_view(order)

    note = next((n for n in order.order_notes if str(n.id) == str(note_id)), None)
    if note is None:
        raise NotFoundError("Note", str(note_id))
    if not actor.is_agency and note.created_by != actor.email:
        checker.require_agency("delete other users' notes")

    order.order_notes.remove(note)
    order.updated_at = now
    return [_order_event(
        order,
        ActivityAction.NOTE_DELETE,
        f"Deleted note from order {order.tracking_code}",
        note_id=str(note.id),
    )]
