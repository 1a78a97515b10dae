"""
Pytest Configuration and Fixtures

Settings are read from the environment at import time, so the test
database and secrets are set before anything from `app` is imported.
"""
import os
import tempfile
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

_TEST_DB = Path(tempfile.mkdtemp()) / "campaign_ops_test.db"
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DB}")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("RESEND_API_KEY", "")

import pytest

from app.core.permissions import Actor
from app.database import Base, engine, async_session_factory
from app import models  # noqa: F401
from app.models.package import CampaignPackage
from app.models.supplier import Supplier
from app.models.user import RoleAssignment, UserRole
from app.services import order_aggregate
from app.services.order_aggregate import PackageSnapshot


FULL_COMPLIANCE = {item: True for item in order_aggregate.COMPLIANCE_ITEMS}

CLIENT_DATA = {
    "client_name": "Kedai Runcit Aminah",
    "client_email": "aminah@example.com",
    "client_phone": "+60123456789",
    "product_name": "Sambal Bilis Pedas",
    "product_description": "Homemade sambal in 250g jars",
}


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: exercises the HTTP layer through the ASGI app")


# ==================== ACTORS ====================

@pytest.fixture
def owner() -> Actor:
    return Actor(email="owner@agency.my", name="Agency Owner", role=UserRole.OWNER.value)


@pytest.fixture
def staff() -> Actor:
    return Actor(email="staff@agency.my", name="Siti Staff", role=UserRole.STAFF.value)


@pytest.fixture
def supplier_actor(supplier) -> Actor:
    return Actor(
        email=supplier.email,
        name=supplier.name,
        role=UserRole.SUPPLIER.value,
        supplier_id=supplier.id,
    )


@pytest.fixture
def other_supplier_actor() -> Actor:
    import uuid
    return Actor(
        email="other@supplier.my",
        name="Other Supplier",
        role=UserRole.SUPPLIER.value,
        supplier_id=uuid.uuid4(),
    )


# ==================== IN-MEMORY ORDERS ====================

@pytest.fixture
def snapshot() -> PackageSnapshot:
    return PackageSnapshot(
        package_id=None,
        package_name="Starter 10",
        affiliate_count=10,
        video_count_per_affiliate=1,
        total_videos=10,
        price_client=Decimal("1500.00"),
        price_discount=Decimal("0"),
        cost_supplier=Decimal("900.00"),
        commission_rate=Decimal("10"),
    )


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 10, 5, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def order(owner, snapshot, now):
    """Transient order built by the aggregate, never persisted."""
    built, _ = order_aggregate.build_order(owner, dict(CLIENT_DATA), FULL_COMPLIANCE, snapshot, "ABCD1234", now)
    return built


# ==================== DATABASE ====================

@pytest.fixture
async def db_schema():
    """Fresh tables for every test; pooled connections are closed on the test's own loop."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
async def session(db_schema):
    async with async_session_factory() as db:
        yield db
        await db.rollback()


@pytest.fixture
async def package(session) -> CampaignPackage:
    pkg = CampaignPackage(
        name="Growth 20",
        affiliate_count=20,
        video_count_per_affiliate=1,
        total_videos=20,
        original_price=Decimal("3200.00"),
        current_price=Decimal("2800.00"),
        supplier_cost=Decimal("1700.00"),
        commission_rate=Decimal("12"),
        is_active=True,
    )
    session.add(pkg)
    await session.commit()
    return pkg


@pytest.fixture
async def supplier(session) -> Supplier:
    sup = Supplier(name="Lens & Reel Studio", email="ops@lensreel.my", phone="+60311112222", active=True)
    session.add(sup)
    await session.commit()
    return sup


@pytest.fixture
async def owner_assignment(session, owner) -> RoleAssignment:
    assignment = RoleAssignment(email=owner.email, name=owner.name, role=UserRole.OWNER.value)
    session.add(assignment)
    await session.commit()
    return assignment
