"""
Login OTP Model

Stores email one-time passcodes for dashboard login.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import as_utc
from app.database import Base
from app.db_types import UUIDType


class LoginOTP(Base):
    """
    OTP storage for email login.
    A code is valid for a few minutes and can be consumed exactly once.
    """
    __tablename__ = "login_otps"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Lower-cased email (indexed for lookups)
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True
    )

    # OTP code (hashed for security)
    otp_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False
    )

    # Set when the code is consumed
    is_used: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    def is_expired_at(self, now: datetime) -> bool:
        return now > as_utc(self.expires_at)

    def __repr__(self) -> str:
        return f"<LoginOTP(email='{self.email}', used={self.is_used})>"
