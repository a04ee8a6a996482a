"""
Tests for StatementGenerator.

Covers:
- Single-author statements with returns and advances
- Recoupment across consecutive periods
- Lifetime tier mode
- Co-authored titles: primary tiers, ownership split, per-author recoupment
- Configuration failures
"""

from datetime import date
from decimal import Decimal

import pytest

from conftest import ESCALATING_TIERS, FLAT_TIERS, Q1_2024, Q2_2024

from royalty_engine.models import Contract, TierCalculationMode
from royalty_engine.schemas.calculations import SplitAuthorCalculation
from royalty_engine.services.errors import (
    AuthorNotCredited,
    AuthorPeriodTaken,
    ContractNotFound,
    InvalidOwnershipSplit,
    TierGapError,
)


class TestSingleAuthor:
    """One author, one contract, one statement per period."""

    async def test_generates_statement(self, generator, seed, tenant_id):
        author = await seed.author()
        title = await seed.title()
        await seed.contract(author, title, tiers=FLAT_TIERS)
        await seed.sale(title, 1200, date(2024, 2, 1))
        await seed.sale_return(title, 200, date(2024, 3, 1))

        result = await generator.generate(tenant_id, author.id, title.id, Q1_2024)

        assert result.duplicate is False
        assert result.statement.total_royalty_earned == Decimal("100.00")
        assert result.statement.net_payable == Decimal("100.00")
        assert result.statement.calculation.formats[0].returned_quantity == 200

    async def test_second_run_is_duplicate(self, generator, seed, tenant_id):
        author = await seed.author()
        title = await seed.title()
        await seed.contract(author, title)
        await seed.sale(title, 100, date(2024, 2, 1))

        first = await generator.generate(tenant_id, author.id, title.id, Q1_2024)
        second = await generator.generate(tenant_id, author.id, title.id, Q1_2024)

        assert second.duplicate is True
        assert second.statement.id == first.statement.id

    async def test_no_sales_gives_zero_statement(self, generator, seed, tenant_id):
        author = await seed.author()
        title = await seed.title()
        await seed.contract(author, title, advance_amount="500.00")

        result = await generator.generate(tenant_id, author.id, title.id, Q1_2024)

        assert result.statement.total_royalty_earned == Decimal("0.00")
        assert result.statement.recoupment == Decimal("0.00")
        assert result.statement.net_payable == Decimal("0.00")

    async def test_recoupment_carries_across_periods(self, generator, seed, session_factory, tenant_id):
        author = await seed.author()
        title = await seed.title()
        contract = await seed.contract(author, title, tiers=ESCALATING_TIERS, advance_amount="1000.00")
        await seed.sale(title, 7000, date(2024, 2, 1))
        await seed.sale(title, 7000, date(2024, 5, 1))

        q1 = await generator.generate(tenant_id, author.id, title.id, Q1_2024)
        q2 = await generator.generate(tenant_id, author.id, title.id, Q2_2024)

        assert (q1.statement.recoupment, q1.statement.net_payable) == (Decimal("800.00"), Decimal("0.00"))
        assert (q2.statement.recoupment, q2.statement.net_payable) == (Decimal("200.00"), Decimal("600.00"))

        async with session_factory() as db:
            row = await db.get(Contract, contract.id)
        assert row.advance_recouped == Decimal("1000.00")

    async def test_missing_contract(self, generator, seed, tenant_id):
        author = await seed.author()
        title = await seed.title()

        with pytest.raises(ContractNotFound):
            await generator.generate(tenant_id, author.id, title.id, Q1_2024)

    async def test_tier_gap_is_raised(self, generator, seed, tenant_id):
        author = await seed.author()
        title = await seed.title()
        await seed.contract(author, title, tiers=[("physical", 0, 1000, "0.10")])
        await seed.sale(title, 1500, date(2024, 2, 1))

        with pytest.raises(TierGapError):
            await generator.generate(tenant_id, author.id, title.id, Q1_2024)


class TestLifetimeMode:
    """Lifetime contracts continue on the bands where earlier sales stopped."""

    async def _title_with_history(self, seed, mode):
        author = await seed.author()
        title = await seed.title()
        await seed.contract(author, title, tiers=ESCALATING_TIERS, mode=mode)
        await seed.sale(title, 4000, date(2023, 6, 1))
        await seed.sale(title, 2000, date(2024, 2, 1))
        return author, title

    async def test_lifetime_mode_uses_earlier_sales(self, generator, seed, tenant_id):
        author, title = await self._title_with_history(seed, TierCalculationMode.LIFETIME)

        result = await generator.generate(tenant_id, author.id, title.id, Q1_2024)

        # Units [4000, 6000): 1000 @ 0.10 + 1000 @ 0.15
        assert result.statement.total_royalty_earned == Decimal("250.00")
        physical = result.statement.calculation.formats[0]
        assert physical.tier_offset == 4000

    async def test_period_mode_restarts_at_zero(self, generator, seed, tenant_id):
        author, title = await self._title_with_history(seed, TierCalculationMode.PERIOD)

        result = await generator.generate(tenant_id, author.id, title.id, Q1_2024)

        assert result.statement.total_royalty_earned == Decimal("200.00")


@pytest.fixture
async def co_authored(seed):
    """
    Title 60/40 between a primary author with a 500.00 advance and a
    co-author with no advance. The co-author's own tiers must not be used.
    """
    primary = await seed.author("Primary Author")
    co_author = await seed.author("Co Author")
    title = await seed.title("Shared Book")
    await seed.authorship(title, primary, "60.00", is_primary=True)
    await seed.authorship(title, co_author, "40.00")
    await seed.contract(primary, title, tiers=ESCALATING_TIERS, advance_amount="500.00")
    await seed.contract(co_author, title, tiers=[("physical", 0, None, "0.50")])
    await seed.sale(title, 7000, date(2024, 2, 1))
    return primary, co_author, title


class TestCoAuthoredTitle:
    """Title royalty is computed once and split by ownership."""

    async def test_split_uses_primary_tiers(self, generator, tenant_id, co_authored):
        primary, co_author, title = co_authored

        co_result = await generator.generate(tenant_id, co_author.id, title.id, Q1_2024)

        # 800.00 title royalty on the primary's tiers, 40% share
        assert co_result.statement.total_royalty_earned == Decimal("320.00")
        assert co_result.statement.net_payable == Decimal("320.00")

        calculation = co_result.statement.calculation
        assert isinstance(calculation, SplitAuthorCalculation)
        assert calculation.split.is_split_calculation is True
        assert calculation.split.ownership_percentage == Decimal("40.00")
        assert calculation.split.title_gross_royalty == Decimal("800.00")
        assert calculation.split.co_author_count == 2

    async def test_each_author_recoups_own_advance(self, generator, tenant_id, co_authored):
        primary, co_author, title = co_authored

        primary_result = await generator.generate(tenant_id, primary.id, title.id, Q1_2024)
        co_result = await generator.generate(tenant_id, co_author.id, title.id, Q1_2024)

        assert primary_result.statement.total_royalty_earned == Decimal("480.00")
        assert primary_result.statement.recoupment == Decimal("480.00")
        assert primary_result.statement.net_payable == Decimal("0.00")
        assert co_result.statement.recoupment == Decimal("0.00")
        assert (
            primary_result.statement.total_royalty_earned + co_result.statement.total_royalty_earned
            == Decimal("800.00")
        )

    async def test_uncredited_author(self, generator, seed, tenant_id, co_authored):
        _, _, title = co_authored
        outsider = await seed.author("Outsider")
        await seed.contract(outsider, title)

        with pytest.raises(AuthorNotCredited):
            await generator.generate(tenant_id, outsider.id, title.id, Q1_2024)

    async def test_missing_primary_contract_fails_co_author(self, generator, seed, tenant_id):
        primary = await seed.author("Primary Author")
        co_author = await seed.author("Co Author")
        title = await seed.title()
        await seed.authorship(title, primary, "50", is_primary=True)
        await seed.authorship(title, co_author, "50")
        await seed.contract(co_author, title)

        with pytest.raises(ContractNotFound) as exc_info:
            await generator.generate(tenant_id, co_author.id, title.id, Q1_2024)

        assert exc_info.value.author_id == primary.id

    async def test_ownership_not_summing_to_hundred(self, generator, seed, tenant_id):
        primary = await seed.author("Primary Author")
        co_author = await seed.author("Co Author")
        title = await seed.title()
        await seed.authorship(title, primary, "60", is_primary=True)
        await seed.authorship(title, co_author, "30")
        await seed.contract(primary, title)
        await seed.contract(co_author, title)

        with pytest.raises(InvalidOwnershipSplit):
            await generator.generate(tenant_id, co_author.id, title.id, Q1_2024)

    async def test_inactive_authorship_is_ignored(self, generator, seed, tenant_id):
        author = await seed.author()
        former = await seed.author("Former Co Author")
        title = await seed.title()
        await seed.authorship(title, author, "100", is_primary=True)
        await seed.authorship(title, former, "40", is_active=False)
        await seed.contract(author, title)
        await seed.sale(title, 100, date(2024, 2, 1))

        result = await generator.generate(tenant_id, author.id, title.id, Q1_2024)

        assert result.statement.calculation.kind == "single"
        assert result.statement.total_royalty_earned == Decimal("10.00")


class TestAuthorWithSeveralTitles:
    """A statement covers one author and period; a second title cannot reuse it."""

    async def test_second_title_in_same_period_is_rejected(self, generator, seed, tenant_id):
        author = await seed.author()
        first_title = await seed.title("First Book")
        second_title = await seed.title("Second Book")
        await seed.contract(author, first_title)
        await seed.contract(author, second_title)
        await seed.sale(first_title, 100, date(2024, 2, 1))
        await seed.sale(second_title, 300, date(2024, 2, 1))

        first = await generator.generate(tenant_id, author.id, first_title.id, Q1_2024)

        with pytest.raises(AuthorPeriodTaken) as exc_info:
            await generator.generate(tenant_id, author.id, second_title.id, Q1_2024)

        assert exc_info.value.statement_id == first.statement.id
        assert exc_info.value.statement_title_id == first_title.id
        assert exc_info.value.title_id == second_title.id

    async def test_same_title_is_still_a_duplicate(self, generator, seed, tenant_id):
        author = await seed.author()
        first_title = await seed.title("First Book")
        second_title = await seed.title("Second Book")
        await seed.contract(author, first_title)
        await seed.contract(author, second_title)

        first = await generator.generate(tenant_id, author.id, first_title.id, Q1_2024)
        again = await generator.generate(tenant_id, author.id, first_title.id, Q1_2024)

        assert again.duplicate is True
        assert again.statement.id == first.statement.id
