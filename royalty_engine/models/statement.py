"""Statement model for author royalty statements."""
import uuid
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict

from sqlalchemy import String, DateTime, Date, Numeric, ForeignKey, JSON, Text, UniqueConstraint, Index, event, inspect
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from royalty_engine.core.database import Base
from royalty_engine.schemas.calculations import StatementCalculation, calculation_adapter
from royalty_engine.services.errors import StatementImmutableError

if TYPE_CHECKING:
    from royalty_engine.models.author import Author
    from royalty_engine.models.contract import Contract


class StatementStatus(str, Enum):
    """Delivery status of a statement (administrative, never financial)."""
    DRAFT = "draft"     # Generated, not yet delivered
    SENT = "sent"       # Delivered to the author
    FAILED = "failed"   # Delivery failed


# Columns frozen once the statement is inserted. Corrections are new statements.
FINANCIAL_FIELDS = (
    "tenant_id",
    "author_id",
    "contract_id",
    "title_id",
    "period_start",
    "period_end",
    "total_royalty_earned",
    "recoupment",
    "net_payable",
    "calculations",
)


class Statement(Base):
    """
    Author royalty statement for one period.

    A statement is an append-only ledger record: the amounts and the
    calculation snapshot are written once. Only administrative metadata
    (status, void flag) may change afterwards.

    Uniqueness on (tenant_id, author_id, period_start, period_end) is the
    authoritative guard against duplicate generation.
    """

    __tablename__ = "statements"

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
    contract_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("contracts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    title_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("titles.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Period [period_start, period_end)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    # Amounts (denormalized from the calculation snapshot)
    total_royalty_earned: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
    )
    recoupment: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
    )
    net_payable: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
    )

    # Full calculation snapshot (see schemas.calculations)
    calculations: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)

    # Administrative metadata
    status: Mapped[str] = mapped_column(
        SAEnum(StatementStatus, values_callable=lambda x: [e.value for e in x]),
        default=StatementStatus.DRAFT,
        nullable=False,
        index=True,
    )
    voided_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    void_reason: Mapped[str] = mapped_column(Text, nullable=True)
    generated_by: Mapped[str] = mapped_column(String(255), nullable=True)

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
        back_populates="statements",
    )
    contract: Mapped["Contract"] = relationship(
        "Contract",
        back_populates="statements",
    )

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "author_id", "period_start", "period_end",
            name="statements_tenant_author_period_unique",
        ),
        Index("statements_period_idx", "period_start", "period_end"),
    )

    def __repr__(self) -> str:
        return f"<Statement {self.id} author={self.author_id} period={self.period_start}-{self.period_end} net_payable={self.net_payable}>"

    @property
    def calculation(self) -> StatementCalculation:
        """Typed view of the calculation snapshot."""
        return calculation_adapter.validate_python(self.calculations)

    @property
    def is_voided(self) -> bool:
        return self.voided_at is not None


@event.listens_for(Statement, "before_update")
def _check_statement_immutability(mapper, connection, target: Statement) -> None:
    """Reject any flush that changes financial content of a statement."""
    state = inspect(target)
    changed = [
        name for name in FINANCIAL_FIELDS
        if state.attrs[name].history.has_changes()
    ]
    if changed:
        raise StatementImmutableError(target.id, changed)
