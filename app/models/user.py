import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType


class UserRole(str, Enum):
    """Dashboard roles."""
    OWNER = "OWNER"          # Agency owner - full access
    STAFF = "STAFF"          # Agency staff - manage orders
    SUPPLIER = "SUPPLIER"    # Supplier - own orders only


class RoleAssignment(Base):
    """
    Explicit email -> role mapping.
    Login resolves the role from this table (or from the suppliers table
    for supplier contacts), never from the shape of the email address.
    """
    __tablename__ = "role_assignments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="OWNER, STAFF, SUPPLIER"
    )

    # Only for SUPPLIER role
    supplier_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("suppliers.id", ondelete="CASCADE"),
        nullable=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<RoleAssignment(email='{self.email}', role='{self.role}')>"
