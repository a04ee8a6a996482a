"""
Statement generation for author/title pairs.

Pipeline per title:
1. Skip authors who already have a statement for the period
2. Resolve each author's active contract
3. Aggregate the title's sales for the period (and lifetime sales before
   it, for lifetime tier mode)
4. Price each format on the tier bands
5. Co-authored titles: price once with the primary author's tiers, then
   split the title royalty by ownership
6. Net each author's royalty against their own advance and persist

Steps 1-5 are read-only and shared by every author of a title; step 6
runs once per author through the StatementAssembler.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from royalty_engine.core.database import async_session
from royalty_engine.models.sale import SalesFormat
from royalty_engine.models.statement import Statement
from royalty_engine.models.title_authorship import TitleAuthorship
from royalty_engine.services.contract_resolver import ContractResolver, ResolvedContract
from royalty_engine.services.errors import (
    AuthorNotCredited,
    AuthorPeriodTaken,
    ContractNotFound,
    InvalidOwnershipSplit,
    RoyaltyEngineError,
)
from royalty_engine.services.money import ZERO
from royalty_engine.services.recoupment import AdvanceRecoupmentTracker
from royalty_engine.services.sales_aggregator import SalesAggregator
from royalty_engine.services.split_allocator import AuthorSplit, SplitAllocator, largest_share_key
from royalty_engine.services.statement_assembler import (
    AssemblyResult,
    DuplicateStatement,
    StatementAssembler,
)
from royalty_engine.services.tier_calculator import TierRateCalculator
from royalty_engine.services.title_royalty import FormatResult, Period, TitleRoyalty

logger = logging.getLogger(__name__)


@dataclass
class TitlePlan:
    """Everything needed to write the statements of one title's authors."""
    title_id: UUID
    period: Period
    is_split: bool = False
    existing: Dict[UUID, Statement] = field(default_factory=dict)
    contracts: Dict[UUID, ResolvedContract] = field(default_factory=dict)
    royalties: Dict[UUID, TitleRoyalty] = field(default_factory=dict)
    splits: Dict[UUID, AuthorSplit] = field(default_factory=dict)
    failures: Dict[UUID, RoyaltyEngineError] = field(default_factory=dict)


class StatementGenerator:
    """Generates royalty statements from contracts, sales and authorships."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        resolver: ContractResolver | None = None,
        aggregator: SalesAggregator | None = None,
        calculator: TierRateCalculator | None = None,
        tracker: AdvanceRecoupmentTracker | None = None,
        allocator: SplitAllocator | None = None,
        assembler: StatementAssembler | None = None,
    ):
        self.session_factory = session_factory or async_session
        self.resolver = resolver or ContractResolver()
        self.aggregator = aggregator or SalesAggregator()
        self.calculator = calculator or TierRateCalculator()
        self.tracker = tracker or AdvanceRecoupmentTracker()
        self.allocator = allocator or SplitAllocator()
        self.assembler = assembler or StatementAssembler(self.session_factory, self.tracker)

    async def generate(
        self,
        tenant_id: UUID,
        author_id: UUID,
        title_id: UUID,
        period: Period,
        generated_by: str | None = None,
    ) -> AssemblyResult:
        """
        Generate one author's statement for a title and period.

        Args:
            tenant_id: Tenant UUID
            author_id: Author UUID
            title_id: Title UUID
            period: Statement period [start, end)
            generated_by: Who triggered the generation

        Returns:
            StatementCreated, or DuplicateStatement if one already existed

        Raises:
            ConfigurationError: Missing contract, bad tiers or bad ownership split
            AuthorPeriodTaken: The author's statement for the period is on another title
            AggregationError: If sales could not be read
        """
        plan = await self.prepare_title(tenant_id, title_id, [author_id], period)
        return await self.generate_for_author(tenant_id, plan, author_id, generated_by)

    async def prepare_title(
        self,
        tenant_id: UUID,
        title_id: UUID,
        author_ids: Iterable[UUID],
        period: Period,
    ) -> TitlePlan:
        """
        Run the read-only steps for a title's authors.

        Configuration problems are recorded per author in plan.failures
        rather than raised, so one author's bad contract does not stop the
        others. Data-access errors propagate.
        """
        author_ids = list(dict.fromkeys(author_ids))
        plan = TitlePlan(title_id=title_id, period=period)

        async with self.session_factory() as db:
            pending: List[UUID] = []
            for author_id in author_ids:
                existing = await self.assembler.find_existing(db, tenant_id, author_id, period)
                if existing is not None:
                    plan.existing[author_id] = existing
                else:
                    pending.append(author_id)

            if not pending:
                return plan

            authorships = await self.load_authorships(db, title_id)
            plan.is_split = len(authorships) > 1

            for author_id in pending:
                try:
                    plan.contracts[author_id] = await self.resolver.resolve(
                        db, tenant_id, author_id, title_id
                    )
                except ContractNotFound as e:
                    plan.failures[author_id] = e

            if plan.is_split:
                await self._prepare_split(db, tenant_id, plan, authorships, pending)
            else:
                for author_id in pending:
                    if author_id in plan.failures:
                        continue
                    try:
                        plan.royalties[author_id] = await self.compute_title_royalty(
                            db, tenant_id, title_id, plan.contracts[author_id], period
                        )
                    except RoyaltyEngineError as e:
                        plan.failures[author_id] = e

        return plan

    async def _prepare_split(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        plan: TitlePlan,
        authorships: List[TitleAuthorship],
        pending: List[UUID],
    ) -> None:
        credited = {a.author_id for a in authorships}
        for author_id in pending:
            if author_id not in credited and author_id not in plan.failures:
                plan.failures[author_id] = AuthorNotCredited(author_id, plan.title_id)

        remaining = [a for a in pending if a not in plan.failures]
        if not remaining:
            return

        try:
            self.allocator.validate(authorships, plan.title_id)
            primary = self.primary_authorship(authorships)
            tier_contract = plan.contracts.get(primary.author_id)
            if tier_contract is None:
                tier_contract = await self.resolver.resolve(
                    db, tenant_id, primary.author_id, plan.title_id
                )
            royalty = await self.compute_title_royalty(
                db, tenant_id, plan.title_id, tier_contract, plan.period
            )
            splits = self.allocator.allocate(royalty.gross_royalty, authorships, plan.title_id)
        except RoyaltyEngineError as e:
            logger.warning(f"Cannot price co-authored title {plan.title_id}: {e}")
            for author_id in remaining:
                plan.failures[author_id] = e
            return

        by_author = {s.author_id: s for s in splits}
        for author_id in remaining:
            plan.royalties[author_id] = royalty
            plan.splits[author_id] = by_author[author_id]

    async def generate_for_author(
        self,
        tenant_id: UUID,
        plan: TitlePlan,
        author_id: UUID,
        generated_by: str | None = None,
    ) -> AssemblyResult:
        """
        Write one author's statement from a prepared title plan.

        Raises:
            RoyaltyEngineError: The failure recorded for this author in the plan
            AuthorPeriodTaken: The period's statement belongs to another title
        """
        if author_id in plan.existing:
            existing = plan.existing[author_id]
            self._check_statement_title(plan, author_id, existing)
            logger.info(
                f"Statement already exists for author {author_id} period {plan.period}: {existing.id}"
            )
            return DuplicateStatement(existing)

        if author_id in plan.failures:
            raise plan.failures[author_id]

        contract = plan.contracts[author_id]
        royalty = plan.royalties[author_id]
        split = plan.splits.get(author_id)
        gross = split.split_amount if split is not None else royalty.gross_royalty

        # Recoupment is always against the author's own advance
        recoupment = self.tracker.recoup(contract, gross)

        result = await self.assembler.assemble(
            tenant_id=tenant_id,
            author_id=author_id,
            contract=contract,
            period=plan.period,
            royalty=royalty,
            split=split,
            recoupment=recoupment,
            generated_by=generated_by,
        )
        if result.duplicate:
            self._check_statement_title(plan, author_id, result.statement)
        return result

    def _check_statement_title(self, plan: TitlePlan, author_id: UUID, statement: Statement) -> None:
        """A statement for the author and period that belongs to another title is not a duplicate."""
        if statement.title_id != plan.title_id:
            raise AuthorPeriodTaken(author_id, plan.title_id, statement.id, statement.title_id)

    async def load_authorships(self, db: AsyncSession, title_id: UUID) -> List[TitleAuthorship]:
        """Active authorship rows of a title, primary first."""
        result = await db.execute(
            select(TitleAuthorship)
            .where(
                TitleAuthorship.title_id == title_id,
                TitleAuthorship.is_active.is_(True),
            )
            .order_by(TitleAuthorship.is_primary.desc(), TitleAuthorship.created_at)
        )
        return list(result.scalars().all())

    def primary_authorship(self, authorships: List[TitleAuthorship]) -> TitleAuthorship:
        """
        The authorship whose contract supplies the tiers.

        The primary author; without a primary flag, the largest share.
        """
        if not authorships:
            raise InvalidOwnershipSplit(None, ZERO, "no credited authors")
        primaries = [a for a in authorships if a.is_primary]
        if len(primaries) > 1:
            logger.warning(
                f"Title {authorships[0].title_id} has {len(primaries)} primary authors; "
                f"using the largest share among them"
            )
        return min(primaries or authorships, key=largest_share_key)

    async def compute_title_royalty(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        title_id: UUID,
        contract: ResolvedContract,
        period: Period,
    ) -> TitleRoyalty:
        """
        Price a title's period sales on a contract's tier bands.

        Raises:
            TierConfigurationError: On gaps, overlaps or malformed bands
            AggregationError: If sales could not be read
        """
        breakdown = await self.aggregator.aggregate_breakdown(
            db, tenant_id, title_id, period.start, period.end
        )
        offsets: Dict[str, int] = {}
        if contract.is_lifetime_mode:
            offsets = await self.aggregator.lifetime_quantities_before(
                db, tenant_id, title_id, period.start
            )

        formats = []
        for fmt in SalesFormat:
            sales = breakdown[fmt.value]
            royalty = self.calculator.calculate_breakdown(
                contract.tiers,
                sales.net_quantity,
                fmt.value,
                offsets.get(fmt.value, 0),
            )
            formats.append(FormatResult(sales=sales, royalty=royalty))

        gross = sum((f.royalty.gross_royalty for f in formats), ZERO)
        logger.debug(f"Title {title_id} gross royalty for {period}: {gross}")

        return TitleRoyalty(
            title_id=title_id,
            period=period,
            tier_contract_id=contract.id,
            tier_calculation_mode=contract.tier_calculation_mode,
            formats=tuple(formats),
            gross_royalty=gross,
        )
