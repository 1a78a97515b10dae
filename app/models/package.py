"""Campaign package (pricing template) model."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Integer, Text, Numeric, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType


class CampaignPackage(Base):
    """
    Pricing template an order snapshots at creation.
    Editing a package never changes existing orders.
    """
    __tablename__ = "campaign_packages"
    __table_args__ = (
        CheckConstraint("commission_rate >= 0 AND commission_rate <= 100", name="ck_package_commission_rate"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Size
    affiliate_count: Mapped[int] = mapped_column(Integer, nullable=False)
    video_count_per_affiliate: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    total_videos: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="affiliate_count * video_count_per_affiliate"
    )

    # Pricing (RM)
    original_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    current_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    supplier_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        default=Decimal("10"),
        nullable=False,
        comment="Affiliate commission percentage, 0-100"
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

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
        return f"<CampaignPackage(name='{self.name}', affiliates={self.affiliate_count})>"
