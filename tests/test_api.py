"""HTTP layer through the ASGI app (no lifespan; tables come from db_schema)."""
from decimal import Decimal
from unittest.mock import patch

import httpx
import pytest

from app.core.security import create_access_token
from app.main import app
from app.models.user import RoleAssignment, UserRole
from app.services.otp_service import EmailOTPService

pytestmark = pytest.mark.integration

ORDER_BODY = {
    "client_name": "Kedai Runcit Aminah",
    "client_email": "aminah@example.com",
    "product_name": "Sambal Bilis Pedas",
    "custom_package": {"package_name": "Starter 10", "affiliate_count": 10, "price": "1500", "supplier_cost": "900"},
    "compliance": {
        "commission_set": True,
        "terms_acknowledged": True,
        "verbal_briefing": True,
        "shipping_acknowledged": True,
        "content_guidelines_provided": True,
    },
}


def _auth(email: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject=email)}"}


@pytest.fixture
async def client(db_schema):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def supplier_login(session, supplier):
    session.add(RoleAssignment(
        email=supplier.email, name=supplier.name, role=UserRole.SUPPLIER.value, supplier_id=supplier.id,
    ))
    await session.commit()
    return supplier


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "connected"


async def test_otp_login_flow(client, owner_assignment):
    with patch.object(EmailOTPService, "_generate_otp", return_value="482913"):
        response = await client.post("/api/send-otp", json={"email": owner_assignment.email})
    assert response.status_code == 200
    assert response.json()["success"] is True

    response = await client.post("/api/verify-otp", json={"email": owner_assignment.email, "otp": "000000"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid OTP"}

    response = await client.post("/api/verify-otp", json={"email": owner_assignment.email, "otp": "482913"})
    body = response.json()
    assert response.status_code == 200
    assert body["user"]["role"] == "OWNER"

    me = await client.get("/api/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.json()["email"] == owner_assignment.email


async def test_requests_without_valid_token_are_rejected(client):
    response = await client.get("/api/v1/orders", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["success"] is False


async def test_create_order_and_track_it_publicly(client, owner_assignment):
    response = await client.post("/api/v1/orders", json=ORDER_BODY, headers=_auth(owner_assignment.email))
    assert response.status_code == 201
    order = response.json()
    assert Decimal(order["profit"]) == Decimal("600")
    assert order["friendly_status"] == "Awaiting Client Payment"
    assert order["percent_complete"] == 0

    tracking = await client.get(f"/api/v1/track/{order['tracking_code'].lower()}")
    assert tracking.status_code == 200
    public = tracking.json()
    assert public["tracking_code"] == order["tracking_code"]
    assert len(public["timeline"]) == 7
    assert public["timeline"][0]["status"] == "active"
    for hidden in ("profit", "price_client", "cost_supplier", "supplier_name", "client_email"):
        assert hidden not in public


async def test_incomplete_compliance_is_a_400(client, owner_assignment):
    body = dict(ORDER_BODY, compliance=dict(ORDER_BODY["compliance"], verbal_briefing=False))
    response = await client.post("/api/v1/orders", json=body, headers=_auth(owner_assignment.email))
    assert response.status_code == 400
    assert response.json()["details"]["missing"] == ["verbal_briefing"]


async def test_unknown_tracking_code_is_a_404(client):
    response = await client.get("/api/v1/track/NOPE0000")
    assert response.status_code == 404


async def test_supplier_cannot_change_agency_progress(client, owner_assignment, supplier_login):
    created = await client.post(
        "/api/v1/orders",
        json=dict(ORDER_BODY, supplier_id=str(supplier_login.id)),
        headers=_auth(owner_assignment.email),
    )
    order_id = created.json()["id"]

    response = await client.put(
        f"/api/v1/orders/{order_id}/agency-progress",
        json={"flag": "client_paid", "value": True},
        headers=_auth(supplier_login.email),
    )
    assert response.status_code == 403

    visible = await client.get(f"/api/v1/orders/{order_id}", headers=_auth(supplier_login.email))
    assert visible.status_code == 200
    assert "profit" not in visible.json()
    assert "price_client" not in visible.json()


async def test_payment_transition_conflict_is_a_409(client, owner_assignment, supplier_login):
    created = await client.post(
        "/api/v1/orders",
        json=dict(ORDER_BODY, supplier_id=str(supplier_login.id)),
        headers=_auth(owner_assignment.email),
    )
    order_id = created.json()["id"]

    response = await client.post(f"/api/v1/orders/{order_id}/payment/verify", headers=_auth(supplier_login.email))
    assert response.status_code == 409
    assert response.json()["details"]["current_status"] == "unpaid"


async def test_activity_log_is_owner_only(client, owner_assignment, session):
    session.add(RoleAssignment(email="staff@agency.my", name="Siti", role=UserRole.STAFF.value))
    await session.commit()

    assert (await client.get("/api/v1/activity-logs", headers=_auth("staff@agency.my"))).status_code == 403

    await client.post("/api/v1/orders", json=ORDER_BODY, headers=_auth(owner_assignment.email))
    export = await client.get("/api/v1/activity-logs/export", headers=_auth(owner_assignment.email))
    assert export.status_code == 200
    assert "attachment" in export.headers["content-disposition"]
    assert "ORDER_CREATE" in export.text
