"""
Role gate for order mutations.

Every mutating operation receives the acting user explicitly and asks the
checker before anything is changed:

- OWNER / STAFF may change agency progress, compliance, pricing,
  assignment and payment marking on any order.
- SUPPLIER may change supplier progress and acknowledge (verify/dispute)
  payments, and only on orders assigned to their own supplier_id.
"""

from dataclasses import dataclass
from typing import Optional
import uuid

from app.core.exceptions import ForbiddenError
from app.models.user import UserRole


AGENCY_ROLES = {UserRole.OWNER.value, UserRole.STAFF.value}


@dataclass(frozen=True)
class Actor:
    """Authenticated user performing an operation."""
    email: str
    name: str
    role: str
    supplier_id: Optional[uuid.UUID] = None

    @property
    def is_agency(self) -> bool:
        return self.role in AGENCY_ROLES

    @property
    def is_owner(self) -> bool:
        return self.role == UserRole.OWNER.value

    @property
    def is_supplier(self) -> bool:
        return self.role == UserRole.SUPPLIER.value


class PermissionChecker:
    """
    Permission checker for order workflow operations.
    `can_*` methods answer, `require_*` methods raise ForbiddenError.
    """

    def __init__(self, actor: Actor):
        self.actor = actor

    def owns_order(self, order) -> bool:
        """Is the order assigned to this supplier actor?"""
        return (
            self.actor.is_supplier
            and self.actor.supplier_id is not None
            and order.supplier_id is not None
            and str(order.supplier_id) == str(self.actor.supplier_id)
        )

    def can_view_order(self, order) -> bool:
        return self.actor.is_agency or self.owns_order(order)

    def can_mutate_agency_fields(self) -> bool:
        return self.actor.is_agency

    def can_mutate_supplier_fields(self, order) -> bool:
        """Supplier progress: the assigned supplier, or agency staff correcting it."""
        return self.actor.is_agency or self.owns_order(order)

    def can_acknowledge_payment(self, order) -> bool:
        """Only the assigned supplier confirms or disputes a payment."""
        return self.owns_order(order)

    def require_agency(self, action: str) -> None:
        if not self.can_mutate_agency_fields():
            raise ForbiddenError(
                f"Role {self.actor.role} cannot {action}",
                details={"role": self.actor.role, "action": action},
            )

    def require_owner(self, action: str) -> None:
        if not self.actor.is_owner:
            raise ForbiddenError(
                f"Only the agency owner can {action}",
                details={"role": self.actor.role, "action": action},
            )

    def require_view(self, order) -> None:
        if not self.can_view_order(order):
            raise ForbiddenError(
                "Order is not assigned to you",
                details={"role": self.actor.role, "order_id": str(order.id)},
            )

    def require_supplier_progress(self, order) -> None:
        if not self.can_mutate_supplier_fields(order):
            raise ForbiddenError(
                "Supplier progress can only be updated by the assigned supplier",
                details={"role": self.actor.role, "order_id": str(order.id)},
            )

    def require_payment_acknowledgement(self, order) -> None:
        if not self.can_acknowledge_payment(order):
            raise ForbiddenError(
                "Only the assigned supplier can confirm or dispute a payment",
                details={"role": self.actor.role, "order_id": str(order.id)},
            )

    def require_supplier_profile(self, supplier_id) -> None:
        """Suppliers may edit their own profile; agency may edit any."""
        if self.actor.is_agency:
            return
        if self.actor.is_supplier and str(self.actor.supplier_id) == str(supplier_id):
            return
        raise ForbiddenError(
            "Cannot edit another supplier's profile",
            details={"role": self.actor.role, "supplier_id": str(supplier_id)},
        )


# Actor used by scheduled jobs; never passes a role check
SYSTEM_ACTOR = Actor(email="system", name="System", role="SYSTEM")
