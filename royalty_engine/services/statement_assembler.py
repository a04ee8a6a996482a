"""
Statement assembly and persistence.

Write protocol for one (tenant, author, period):
1. Advisory pre-check: an existing statement is returned as DuplicateStatement
2. One transaction:
   - lock the contract row (SELECT ... FOR UPDATE)
   - if another run recouped since the caller read the contract,
     recompute recoupment from the locked values
   - insert the statement with its calculation snapshot
   - advance contract.advance_recouped by this period's recoupment
3. A uniqueness violation on insert means a concurrent run won the race:
   the transaction is rolled back and the winner's statement is returned
   as DuplicateStatement

Statement and contract update commit together or not at all.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from royalty_engine.core.database import async_session
from royalty_engine.models.contract import Contract, ContractStatus
from royalty_engine.models.statement import Statement, StatementStatus
from royalty_engine.schemas.calculations import (
    AdvanceRecoupmentSnapshot,
    FormatBreakdownSnapshot,
    SingleAuthorCalculation,
    SplitAuthorCalculation,
    SplitContext,
    StatementCalculation,
    TierBreakdownSnapshot,
)
from royalty_engine.services.contract_resolver import ResolvedContract
from royalty_engine.services.errors import ContractNotFound, RecoupmentInvariantError
from royalty_engine.services.money import ZERO, to_money
from royalty_engine.services.recoupment import AdvanceRecoupmentTracker, RecoupmentResult
from royalty_engine.services.split_allocator import AuthorSplit
from royalty_engine.services.title_royalty import Period, TitleRoyalty

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatementCreated:
    """A new statement was persisted."""
    statement: Statement
    duplicate = False


@dataclass(frozen=True)
class DuplicateStatement:
    """A statement already existed for the author and period; nothing was written."""
    statement: Statement
    duplicate = True

    @property
    def existing_statement_id(self) -> UUID:
        return self.statement.id


AssemblyResult = Union[StatementCreated, DuplicateStatement]


class StatementAssembler:
    """Persists statements with their calculation snapshot, idempotently."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        tracker: AdvanceRecoupmentTracker | None = None,
    ):
        """
        Initialize assembler.

        Args:
            session_factory: Factory for write sessions (defaults to the app session factory)
            tracker: Recoupment tracker used when the contract changed under us
        """
        self.session_factory = session_factory or async_session
        self.tracker = tracker or AdvanceRecoupmentTracker()

    async def find_existing(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        author_id: UUID,
        period: Period,
    ) -> Statement | None:
        """Get the statement for (tenant, author, period) if one exists."""
        result = await db.execute(
            select(Statement).where(
                Statement.tenant_id == tenant_id,
                Statement.author_id == author_id,
                Statement.period_start == period.start,
                Statement.period_end == period.end,
            )
        )
        return result.scalar_one_or_none()

    async def assemble(
        self,
        tenant_id: UUID,
        author_id: UUID,
        contract: ResolvedContract,
        period: Period,
        royalty: TitleRoyalty,
        split: Optional[AuthorSplit],
        recoupment: RecoupmentResult,
        generated_by: str | None = None,
    ) -> AssemblyResult:
        """
        Persist a statement unless one already exists for the author and period.

        Args:
            tenant_id: Tenant UUID
            author_id: Author UUID
            contract: Contract the recoupment was computed against
            period: Statement period
            royalty: Title-level royalty
            split: This author's split for a co-authored title, else None
            recoupment: Recoupment computed by the caller
            generated_by: Who triggered the generation

        Returns:
            StatementCreated or DuplicateStatement

        Raises:
            ContractNotFound: If the contract stopped being active
            RecoupmentInvariantError: If the amounts do not reconcile
        """
        async with self.session_factory() as db:
            existing = await self.find_existing(db, tenant_id, author_id, period)
        if existing is not None:
            logger.info(
                f"Statement already exists for author {author_id} period {period}: {existing.id}"
            )
            return DuplicateStatement(existing)

        gross = split.split_amount if split is not None else royalty.gross_royalty

        try:
            async with self.session_factory() as db:
                async with db.begin():
                    locked = (
                        await db.execute(
                            select(Contract).where(Contract.id == contract.id).with_for_update()
                        )
                    ).scalar_one_or_none()

                    if locked is None or locked.status != ContractStatus.ACTIVE:
                        raise ContractNotFound(tenant_id, author_id, royalty.title_id)

                    current_recouped = to_money(locked.advance_recouped or ZERO)
                    if current_recouped != recoupment.previously_recouped:
                        logger.info(
                            f"Contract {contract.id} advance_recouped moved from "
                            f"{recoupment.previously_recouped} to {current_recouped}; recomputing recoupment"
                        )
                        recoupment = self.tracker.recoup(locked, gross)

                    self._check_reconciles(locked, gross, recoupment)

                    calculation = self.build_calculation(contract, period, royalty, split, recoupment)
                    statement = Statement(
                        tenant_id=tenant_id,
                        author_id=author_id,
                        contract_id=contract.id,
                        title_id=royalty.title_id,
                        period_start=period.start,
                        period_end=period.end,
                        total_royalty_earned=gross,
                        recoupment=recoupment.this_period_recoupment,
                        net_payable=recoupment.net_payable,
                        calculations=calculation.model_dump(mode="json"),
                        status=StatementStatus.DRAFT,
                        generated_by=generated_by,
                    )
                    db.add(statement)

                    if recoupment.this_period_recoupment > ZERO:
                        locked.advance_recouped = recoupment.recouped_after

                    await db.flush()
        except IntegrityError as e:
            async with self.session_factory() as db:
                existing = await self.find_existing(db, tenant_id, author_id, period)
            if existing is None:
                raise
            logger.warning(
                f"Concurrent generation for author {author_id} period {period} lost the race; "
                f"returning existing statement {existing.id} ({e.__class__.__name__})"
            )
            return DuplicateStatement(existing)

        logger.info(
            f"Created statement {statement.id} for author {author_id} period {period}: "
            f"gross={gross}, recouped={recoupment.this_period_recoupment}, "
            f"net_payable={recoupment.net_payable}"
        )
        return StatementCreated(statement)

    def _check_reconciles(self, locked: Contract, gross: Decimal, recoupment: RecoupmentResult) -> None:
        contract_id = locked.id
        advance_amount = to_money(locked.advance_amount or ZERO)
        if recoupment.this_period_recoupment < ZERO or recoupment.net_payable < ZERO:
            raise RecoupmentInvariantError(
                f"Negative recoupment or net payable for contract {contract_id}: {recoupment}"
            )
        if recoupment.this_period_recoupment + recoupment.net_payable != to_money(gross):
            raise RecoupmentInvariantError(
                f"Recoupment {recoupment.this_period_recoupment} + net payable "
                f"{recoupment.net_payable} != gross {gross} for contract {contract_id}"
            )
        if recoupment.this_period_recoupment > ZERO and recoupment.recouped_after > advance_amount:
            raise RecoupmentInvariantError(
                f"Recoupment would take contract {contract_id} to {recoupment.recouped_after}, "
                f"above its current advance of {advance_amount}"
            )

    def build_calculation(
        self,
        contract: ResolvedContract,
        period: Period,
        royalty: TitleRoyalty,
        split: Optional[AuthorSplit],
        recoupment: RecoupmentResult,
    ) -> StatementCalculation:
        """Build the immutable calculation snapshot for a statement."""
        formats = [
            FormatBreakdownSnapshot(
                format=item.sales.format,
                gross_quantity=item.sales.gross_quantity,
                returned_quantity=item.sales.returned_quantity,
                net_quantity=item.sales.net_quantity,
                net_revenue=item.sales.net_revenue,
                tier_offset=item.royalty.offset,
                tier_breakdowns=[
                    TierBreakdownSnapshot(
                        min_quantity=band.min_quantity,
                        max_quantity=band.max_quantity,
                        rate=band.rate,
                        units=band.units,
                        royalty=band.royalty,
                    )
                    for band in item.royalty.bands
                ],
                gross_royalty=item.royalty.gross_royalty,
            )
            for item in royalty.formats
        ]
        advance = AdvanceRecoupmentSnapshot(
            original_advance=recoupment.original_advance,
            previously_recouped=recoupment.previously_recouped,
            this_period_recoupment=recoupment.this_period_recoupment,
            remaining_advance=recoupment.remaining_advance,
        )
        common = dict(
            period_start=period.start,
            period_end=period.end,
            title_id=str(royalty.title_id),
            contract_id=str(contract.id),
            tier_calculation_mode=royalty.tier_calculation_mode,
            formats=formats,
            advance_recoupment=advance,
            net_payable=recoupment.net_payable,
        )

        if split is None:
            return SingleAuthorCalculation(gross_royalty=royalty.gross_royalty, **common)

        return SplitAuthorCalculation(
            gross_royalty=split.split_amount,
            split=SplitContext(
                ownership_percentage=split.ownership_percentage,
                title_gross_royalty=split.title_gross_royalty,
                residual_adjustment=split.residual_adjustment,
                co_author_count=split.co_author_count,
            ),
            **common,
        )
