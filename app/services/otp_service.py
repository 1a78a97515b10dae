"""
OTP Service for dashboard login

Issues 6-digit email codes, verifies them once, and sweeps expired ones.
Only the SHA-256 hash of a code is stored.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import select, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.clock import utc_now
from app.core.security import hash_code, verify_code_hash
from app.models.login_otp import LoginOTP
from app.repositories.base import storage_errors
from app.services.email_service import EmailService, get_email_service, mask_email

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class EmailOTPService:
    """
    Service for handling login OTP operations.
    """

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.email_service = email_service or get_email_service()
        self.otp_length = settings.OTP_LENGTH
        self.expiry_minutes = settings.OTP_EXPIRY_MINUTES

    def _generate_otp(self) -> str:
        """Generate a random numeric OTP without a leading zero."""
        low = 10 ** (self.otp_length - 1)
        return str(low + secrets.randbelow(9 * low))

    async def create_code(self, email: str, now: Optional[datetime] = None) -> Tuple[str, LoginOTP]:
        """
        Store a new code for `email`, replacing any unused one.

        Returns:
            Tuple of (otp_code, otp_record)
        """
        email = normalize_email(email)
        now = now or utc_now()

        with storage_errors("create login code"):
            await self.db.execute(
                delete(LoginOTP).where(
                    LoginOTP.email == email,
                    LoginOTP.is_used == False,  # noqa: E712
                )
            )

            otp_code = self._generate_otp()
            otp_record = LoginOTP(
                email=email,
                otp_hash=hash_code(otp_code),
                expires_at=now + timedelta(minutes=self.expiry_minutes),
                created_at=now,
            )
            self.db.add(otp_record)
            await self.db.flush()

        logger.info(f"Login OTP created for {mask_email(email)}")
        return otp_code, otp_record

    async def issue_code(self, email: str) -> Tuple[bool, str]:
        """
        Create a code and email it.

        Returns:
            Tuple of (success, message)
        """
        otp_code, otp_record = await self.create_code(email)

        if not self.email_service.is_configured:
            logger.warning("Email not configured, login code not sent")
            logger.info(f"DEV MODE - OTP for {mask_email(otp_record.email)}: {otp_code}")
            return True, "OTP sent successfully"

        sent = await self.email_service.send_login_code(otp_record.email, otp_code, self.expiry_minutes)
        if not sent:
            with storage_errors("discard login code"):
                await self.db.delete(otp_record)
                await self.db.flush()
            return False, "Failed to send email"

        return True, "OTP sent successfully"

    async def verify_code(self, email: str, code: str, now: Optional[datetime] = None) -> Tuple[bool, str]:
        """
        Verify and consume a code. A verified code can never be used again.

        Returns:
            Tuple of (success, message)
        """
        email = normalize_email(email)
        now = now or utc_now()

        with storage_errors("verify login code"):
            result = await self.db.execute(
                select(LoginOTP)
                .where(
                    LoginOTP.email == email,
                    LoginOTP.is_used == False,  # noqa: E712
                )
                .order_by(LoginOTP.created_at.desc())
                .limit(1)
            )
            otp_record = result.scalar_one_or_none()

            if not otp_record:
                logger.warning(f"No OTP found for {mask_email(email)}")
                return False, "No OTP found for this email"

            if otp_record.is_expired_at(now):
                await self.db.delete(otp_record)
                await self.db.flush()
                logger.warning(f"OTP expired for {mask_email(email)}")
                return False, "OTP has expired"

            if not verify_code_hash((code or "").strip(), otp_record.otp_hash):
                logger.warning(f"Invalid OTP attempt for {mask_email(email)}")
                return False, "Invalid OTP"

            otp_record.is_used = True
            otp_record.used_at = now
            await self.db.flush()

        logger.info(f"OTP verified for {mask_email(email)}")
        return True, "OTP verified successfully"

    async def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        """Delete expired and consumed codes. Returns the number removed."""
        now = now or utc_now()
        with storage_errors("clean up login codes"):
            result = await self.db.execute(
                delete(LoginOTP).where(
                    or_(
                        LoginOTP.expires_at < now,
                        LoginOTP.is_used == True,  # noqa: E712
                    )
                )
            )
        return result.rowcount or 0
