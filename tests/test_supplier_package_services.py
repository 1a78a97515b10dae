from decimal import Decimal

import pytest

from app.core.exceptions import ForbiddenError, InvalidPackageError, ValidationError
from app.services.package_service import PackageService
from app.services.supplier_service import SupplierService


class TestSuppliers:

    async def test_create_lowercases_email(self, session, owner):
        supplier = await SupplierService(session).create_supplier(
            owner, {"name": "Studio Kita", "email": "Hello@StudioKita.MY"}
        )
        assert supplier.email == "hello@studiokita.my"
        assert supplier.active is True

    async def test_name_and_email_required(self, session, owner):
        with pytest.raises(ValidationError):
            await SupplierService(session).create_supplier(owner, {"name": "No Email"})

    async def test_supplier_edits_own_profile(self, session, supplier_actor, supplier):
        updated = await SupplierService(session).update_supplier(
            supplier_actor, supplier.id, {"bank_name": "Maybank", "bank_account_number": "5140-1234"}
        )
        assert updated.bank_name == "Maybank"

    async def test_supplier_cannot_deactivate_itself(self, session, supplier_actor, supplier):
        with pytest.raises(ValidationError) as exc_info:
            await SupplierService(session).update_supplier(supplier_actor, supplier.id, {"active": False})
        assert exc_info.value.details["fields"] == ["active"]

    async def test_other_supplier_profile_is_off_limits(self, session, other_supplier_actor, supplier):
        with pytest.raises(ForbiddenError):
            await SupplierService(session).update_supplier(other_supplier_actor, supplier.id, {"phone": "1"})

    async def test_listing_is_agency_only(self, session, supplier_actor, staff, supplier):
        with pytest.raises(ForbiddenError):
            await SupplierService(session).list_suppliers(supplier_actor)
        assert [s.id for s in await SupplierService(session).list_suppliers(staff)] == [supplier.id]


class TestPackages:

    async def test_total_videos_is_derived(self, session, owner):
        package = await PackageService(session).create_package(owner, {
            "name": "Viral 30",
            "affiliate_count": 30,
            "video_count_per_affiliate": 2,
            "current_price": Decimal("5200"),
            "supplier_cost": Decimal("3100"),
        })
        assert package.total_videos == 60
        assert package.commission_rate == Decimal("10")

    async def test_update_recomputes_total_videos(self, session, owner, package):
        updated = await PackageService(session).update_package(owner, package.id, {"video_count_per_affiliate": 3})
        assert updated.total_videos == 60

    @pytest.mark.parametrize("changes", [
        {"affiliate_count": 0},
        {"commission_rate": Decimal("150")},
        {"supplier_cost": Decimal("-1")},
    ])
    async def test_invalid_terms(self, session, owner, package, changes):
        with pytest.raises(InvalidPackageError):
            await PackageService(session).update_package(owner, package.id, changes)

    async def test_supplier_cannot_manage_packages(self, session, supplier_actor):
        with pytest.raises(ForbiddenError):
            await PackageService(session).create_package(supplier_actor, {
                "name": "Sneaky", "affiliate_count": 1, "current_price": 1, "supplier_cost": 1,
            })
