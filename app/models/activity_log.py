import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import JSONType, UUIDType


class ActivityLog(Base):
    """
    Activity log for everything users do in the dashboard.
    Records: logins/logouts, order/supplier/package create-update-delete,
    payment changes, notes.
    """
    __tablename__ = "activity_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Who performed the action
    user_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user_role: Mapped[str] = mapped_column(String(20), nullable=False)

    # Action details
    action_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    # Actions: LOGIN, LOGOUT, LOGIN_FAILED, ORDER_CREATE, ORDER_UPDATE, ORDER_DELETE,
    #          SUPPLIER_*, PACKAGE_*, PAYMENT_UPDATE, NOTE_ADD, NOTE_DELETE
    action_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Entity being modified
    related_entity_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    # Entity types: ORDER, SUPPLIER, PACKAGE, USER
    related_entity_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Free-form context (changed field names, tracking code, ...)
    log_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)

    # Request metadata
    ip_address: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<ActivityLog(action='{self.action_type}', user='{self.user_email}')>"


class ActivityAction(str, Enum):
    """Values stored in ActivityLog.action_type."""
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    LOGIN_FAILED = "LOGIN_FAILED"
    ORDER_CREATE = "ORDER_CREATE"
    ORDER_UPDATE = "ORDER_UPDATE"
    ORDER_DELETE = "ORDER_DELETE"
    ORDER_CANCEL = "ORDER_CANCEL"
    PROGRESS_UPDATE = "PROGRESS_UPDATE"
    SUPPLIER_PROGRESS_UPDATE = "SUPPLIER_PROGRESS_UPDATE"
    SUPPLIER_ASSIGN = "SUPPLIER_ASSIGN"
    PAYMENT_UPDATE = "PAYMENT_UPDATE"
    SHIPMENT_PROOF = "SHIPMENT_PROOF"
    AFFILIATE_ADD = "AFFILIATE_ADD"
    AFFILIATE_UPDATE = "AFFILIATE_UPDATE"
    AFFILIATE_REMOVE = "AFFILIATE_REMOVE"
    NOTE_ADD = "NOTE_ADD"
    NOTE_DELETE = "NOTE_DELETE"
    SUPPLIER_CREATE = "SUPPLIER_CREATE"
    SUPPLIER_UPDATE = "SUPPLIER_UPDATE"
    SUPPLIER_DELETE = "SUPPLIER_DELETE"
    PACKAGE_CREATE = "PACKAGE_CREATE"
    PACKAGE_UPDATE = "PACKAGE_UPDATE"
    PACKAGE_DELETE = "PACKAGE_DELETE"


class EntityType(str, Enum):
    ORDER = "ORDER"
    SUPPLIER = "SUPPLIER"
    PACKAGE = "PACKAGE"
    USER = "USER"
