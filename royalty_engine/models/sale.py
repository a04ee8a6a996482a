"""Sales transaction model."""
import uuid
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

from sqlalchemy import String, DateTime, Date, Numeric, Integer, ForeignKey, CheckConstraint, Index
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from royalty_engine.core.database import Base


class SalesFormat(str, Enum):
    """Format a title is sold in. Contract tiers are defined per format."""
    PHYSICAL = "physical"
    EBOOK = "ebook"
    AUDIOBOOK = "audiobook"


class SalesChannel(str, Enum):
    """Channel through which a sale was made."""
    RETAIL = "retail"
    WHOLESALE = "wholesale"
    DIRECT = "direct"
    DISTRIBUTOR = "distributor"
    AMAZON = "amazon"


class Sale(Base):
    """A single sales transaction for a title."""

    __tablename__ = "sales"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
    )
    title_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("titles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    format: Mapped[str] = mapped_column(
        SAEnum(SalesFormat, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        index=True,
    )
    channel: Mapped[str] = mapped_column(
        SAEnum(SalesChannel, values_callable=lambda x: [e.value for e in x]),
        default=SalesChannel.RETAIL,
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
    )
    sale_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # Source reference (import batch, channel order id)
    reference: Mapped[str] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_sales_quantity_positive"),
        CheckConstraint("unit_price > 0", name="check_sales_unit_price_positive"),
        CheckConstraint("total_amount > 0", name="check_sales_total_amount_positive"),
        Index("idx_sales_tenant_title_date", "tenant_id", "title_id", "sale_date"),
    )

    def __repr__(self) -> str:
        return f"<Sale {self.id} title={self.title_id} format={self.format} qty={self.quantity}>"
