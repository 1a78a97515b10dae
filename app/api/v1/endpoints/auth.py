"""
Dashboard Authentication API Endpoints

Email OTP login for agency staff and suppliers. Mounted under /api so the
paths match what the dashboard calls: /api/send-otp, /api/verify-otp and
/api/health.
"""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.api.deps import DB, CurrentActor, ClientIP, UserAgent
from app.config import settings
from app.schemas.auth import (
    SendOTPRequest,
    SendOTPResponse,
    VerifyOTPRequest,
    VerifyOTPResponse,
    UserResponse,
)
from app.schemas.base import SuccessResponse
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Authentication"])


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.get("/health")
async def api_health(db: DB):
    """Backend liveness, including a database round-trip."""
    await db.execute(text("SELECT 1"))
    return {"status": "ok", "message": f"{settings.APP_NAME} Backend API is running"}


@router.post("/send-otp", response_model=SendOTPResponse)
async def send_otp(request: SendOTPRequest, db: DB):
    """Email a 6-digit login code."""
    success, message = await AuthService(db).send_login_code(request.email)
    if not success:
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, message)
    return SendOTPResponse(
        success=True,
        message=message,
        expires_in_seconds=settings.OTP_EXPIRY_MINUTES * 60,
    )


@router.post("/verify-otp", response_model=VerifyOTPResponse)
async def verify_otp(request: VerifyOTPRequest, db: DB, ip_address: ClientIP, user_agent: UserAgent):
    """Verify a login code and issue an access token."""
    actor, token, message = await AuthService(db).login(
        request.email,
        request.otp,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    if actor is None:
        return _failure(status.HTTP_400_BAD_REQUEST, message)

    return VerifyOTPResponse(
        success=True,
        message=message,
        access_token=token,
        user=UserResponse(
            email=actor.email,
            name=actor.name,
            role=actor.role,
            supplier_id=actor.supplier_id,
        ),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(actor: CurrentActor):
    return UserResponse(
        email=actor.email,
        name=actor.name,
        role=actor.role,
        supplier_id=actor.supplier_id,
    )


@router.post("/logout", response_model=SuccessResponse)
async def logout(actor: CurrentActor, db: DB, ip_address: ClientIP):
    """Tokens are stateless; logout only records the event."""
    await AuthService(db).logout(actor, ip_address=ip_address)
    return SuccessResponse(message="Logged out")
