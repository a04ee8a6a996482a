"""Contract tier model: one royalty rate band for one sales format."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Integer, Numeric, ForeignKey, CheckConstraint, Index
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from royalty_engine.core.database import Base
from royalty_engine.models.sale import SalesFormat

if TYPE_CHECKING:
    from royalty_engine.models.contract import Contract


class ContractTier(Base):
    """
    A quantity band [min_quantity, max_quantity) with a royalty rate.

    Within a contract and format the bands are contiguous and do not
    overlap. max_quantity NULL means unbounded and is only allowed on the
    highest band.

    Example (physical):
    - [0, 5000)    @ 0.1000
    - [5000, NULL) @ 0.1500
    """

    __tablename__ = "contract_tiers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    contract_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    format: Mapped[str] = mapped_column(
        SAEnum(SalesFormat, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    min_quantity: Mapped[int] = mapped_column(Integer, nullable=False)  # inclusive
    max_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # exclusive, null = no limit
    rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=4),  # 0.0000 to 1.0000
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    contract: Mapped["Contract"] = relationship(
        "Contract",
        back_populates="tiers",
    )

    __table_args__ = (
        CheckConstraint("min_quantity >= 0", name="check_tier_min_nonnegative"),
        CheckConstraint(
            "max_quantity IS NULL OR max_quantity > min_quantity",
            name="check_tier_max_above_min",
        ),
        CheckConstraint("rate >= 0 AND rate <= 1", name="check_tier_rate_range"),
        Index("idx_contract_tiers_contract_format", "contract_id", "format"),
    )

    def __repr__(self) -> str:
        return f"<ContractTier {self.format} [{self.min_quantity}, {self.max_quantity}) @ {self.rate}>"
