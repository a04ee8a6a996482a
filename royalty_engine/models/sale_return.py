"""Sales return model. Approved returns reduce net sales for a period."""
import uuid
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

from sqlalchemy import String, DateTime, Date, Numeric, Integer, ForeignKey, CheckConstraint, Index
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from royalty_engine.core.database import Base
from royalty_engine.models.sale import SalesFormat


class ReturnStatus(str, Enum):
    """Review status of a return."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SaleReturn(Base):
    """A return of previously sold units of a title."""

    __tablename__ = "returns"

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
    original_sale_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sales.id", ondelete="SET NULL"),
        nullable=True,
    )

    format: Mapped[str] = mapped_column(
        SAEnum(SalesFormat, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
    )
    return_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    reason: Mapped[str] = mapped_column(String(500), nullable=True)

    status: Mapped[str] = mapped_column(
        SAEnum(ReturnStatus, values_callable=lambda x: [e.value for e in x]),
        default=ReturnStatus.PENDING,
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    reviewed_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_returns_quantity_positive"),
        CheckConstraint("total_amount > 0", name="check_returns_total_amount_positive"),
        Index("idx_returns_tenant_title_date", "tenant_id", "title_id", "return_date"),
    )

    def __repr__(self) -> str:
        return f"<SaleReturn {self.id} title={self.title_id} format={self.format} qty={self.quantity} status={self.status}>"
