"""Contract model linking one author to one title."""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, List

from sqlalchemy import DateTime, Numeric, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from royalty_engine.core.database import Base

if TYPE_CHECKING:
    from royalty_engine.models.author import Author
    from royalty_engine.models.title import Title
    from royalty_engine.models.contract_tier import ContractTier
    from royalty_engine.models.statement import Statement


class ContractStatus(str, Enum):
    """Lifecycle status of a contract. Only active contracts earn royalties."""
    ACTIVE = "active"
    TERMINATED = "terminated"
    SUSPENDED = "suspended"


class TierCalculationMode(str, Enum):
    """
    How sales are positioned on the tier bands.

    period: each period starts again at unit zero
    lifetime: the period's units follow all units sold before the period
    """
    PERIOD = "period"
    LIFETIME = "lifetime"


class Contract(Base):
    """
    Royalty contract between the publisher and an author for a title.

    Advance tracking:
    - advance_amount: advance agreed in the contract
    - advance_paid: portion of the advance actually paid out
    - advance_recouped: portion already offset against earned royalties

    advance_recouped only ever increases, and only in the same transaction
    that inserts the statement which recouped it.
    """

    __tablename__ = "contracts"

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
    author_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("authors.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    title_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("titles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Advance
    advance_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    advance_paid: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    advance_recouped: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        default=Decimal("0"),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        SAEnum(ContractStatus, values_callable=lambda x: [e.value for e in x]),
        default=ContractStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    tier_calculation_mode: Mapped[str] = mapped_column(
        SAEnum(TierCalculationMode, values_callable=lambda x: [e.value for e in x]),
        default=TierCalculationMode.PERIOD,
        nullable=False,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    author: Mapped["Author"] = relationship(
        "Author",
        back_populates="contracts",
    )
    title: Mapped["Title"] = relationship(
        "Title",
        back_populates="contracts",
    )
    tiers: Mapped[List["ContractTier"]] = relationship(
        "ContractTier",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractTier.min_quantity",
    )
    statements: Mapped[List["Statement"]] = relationship(
        "Statement",
        back_populates="contract",
    )

    # Constraints
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "author_id", "title_id",
            name="contracts_tenant_author_title_unique",
        ),
        CheckConstraint("advance_amount >= 0", name="check_advance_amount_nonnegative"),
        CheckConstraint("advance_paid >= 0", name="check_advance_paid_nonnegative"),
        CheckConstraint("advance_recouped >= 0", name="check_advance_recouped_nonnegative"),
    )

    def __repr__(self) -> str:
        return f"<Contract {self.id} author={self.author_id} title={self.title_id} status={self.status}>"

    @property
    def is_active(self) -> bool:
        return self.status == ContractStatus.ACTIVE
