"""Supplier model.

Suppliers execute the affiliate recruitment, sampling and video production
for the orders assigned to them. Orders hold a weak reference (supplier_id)
plus a copy of the supplier name taken at assignment time.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType


class Supplier(Base):
    """Supplier master with optional extended profile."""
    __tablename__ = "suppliers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(30), default="", nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Extended profile
    company_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Backup contact
    backup_contact_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    backup_contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    backup_contact_phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    # Business / banking
    business_registration_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    bank_account_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Supplier(name='{self.name}', email='{self.email}')>"
