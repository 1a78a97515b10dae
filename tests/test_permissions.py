import uuid
from types import SimpleNamespace

import pytest

from app.core.exceptions import ForbiddenError
from app.core.permissions import Actor, PermissionChecker, SYSTEM_ACTOR


SUPPLIER_ID = uuid.uuid4()


@pytest.fixture
def assigned_order():
    return SimpleNamespace(id=uuid.uuid4(), supplier_id=SUPPLIER_ID)


@pytest.fixture
def supplier_on_order():
    return Actor(email="ops@lensreel.my", name="Lens", role="SUPPLIER", supplier_id=SUPPLIER_ID)


def test_agency_roles_may_mutate_everything(owner, staff, assigned_order):
    for actor in (owner, staff):
        checker = PermissionChecker(actor)
        checker.require_agency("update orders")
        checker.require_view(assigned_order)
        checker.require_supplier_progress(assigned_order)


def test_only_owner_passes_owner_gate(owner, staff):
    PermissionChecker(owner).require_owner("view activity logs")
    with pytest.raises(ForbiddenError):
        PermissionChecker(staff).require_owner("view activity logs")


def test_assigned_supplier(supplier_on_order, assigned_order):
    checker = PermissionChecker(supplier_on_order)
    assert checker.owns_order(assigned_order)
    checker.require_view(assigned_order)
    checker.require_supplier_progress(assigned_order)
    checker.require_payment_acknowledgement(assigned_order)
    with pytest.raises(ForbiddenError):
        checker.require_agency("update agency progress")


def test_other_supplier_sees_nothing(other_supplier_actor, assigned_order):
    checker = PermissionChecker(other_supplier_actor)
    assert not checker.can_view_order(assigned_order)
    with pytest.raises(ForbiddenError):
        checker.require_view(assigned_order)
    with pytest.raises(ForbiddenError):
        checker.require_supplier_progress(assigned_order)


def test_unassigned_order_belongs_to_no_supplier(supplier_on_order):
    order = SimpleNamespace(id=uuid.uuid4(), supplier_id=None)
    assert not PermissionChecker(supplier_on_order).owns_order(order)


def test_agency_cannot_acknowledge_payments(owner, assigned_order):
    with pytest.raises(ForbiddenError):
        PermissionChecker(owner).require_payment_acknowledgement(assigned_order)


def test_supplier_profile_gate(supplier_on_order, owner):
    PermissionChecker(supplier_on_order).require_supplier_profile(SUPPLIER_ID)
    PermissionChecker(owner).require_supplier_profile(uuid.uuid4())
    with pytest.raises(ForbiddenError):
        PermissionChecker(supplier_on_order).require_supplier_profile(uuid.uuid4())


def test_system_actor_never_passes_role_checks(assigned_order):
    checker = PermissionChecker(SYSTEM_ACTOR)
    with pytest.raises(ForbiddenError):
        checker.require_agency("mark supplier payments")
    with pytest.raises(ForbiddenError):
        checker.require_payment_acknowledgement(assigned_order)
