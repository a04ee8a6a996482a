"""
Tests for BatchOrchestrator.

Covers:
- Mixed batches: successes and per-pair failures
- Idempotent re-runs
- Co-authored titles priced once per batch
- Unexpected errors isolated to their title
"""

from datetime import date
from decimal import Decimal

import pytest

from conftest import ESCALATING_TIERS, Q1_2024

from royalty_engine.services.batch_orchestrator import AuthorTitlePair, BatchOrchestrator


@pytest.fixture
async def catalog(seed):
    """
    Three titles:
    - solo: one author with a contract, 1000 units
    - shared: 60/40 co-authored, both with contracts, 7000 units
    - orphan: one author without a contract
    """
    solo_author = await seed.author("Solo Author")
    solo = await seed.title("Solo Book")
    await seed.contract(solo_author, solo)
    await seed.sale(solo, 1000, date(2024, 1, 20))

    primary = await seed.author("Primary Author")
    co_author = await seed.author("Co Author")
    shared = await seed.title("Shared Book")
    await seed.authorship(shared, primary, "60", is_primary=True)
    await seed.authorship(shared, co_author, "40")
    await seed.contract(primary, shared, tiers=ESCALATING_TIERS)
    await seed.contract(co_author, shared)
    await seed.sale(shared, 7000, date(2024, 3, 3))

    orphan_author = await seed.author("Orphan Author")
    orphan = await seed.title("Orphan Book")
    await seed.sale(orphan, 50, date(2024, 2, 2))

    return {
        "solo": AuthorTitlePair(solo_author.id, solo.id),
        "primary": AuthorTitlePair(primary.id, shared.id),
        "co_author": AuthorTitlePair(co_author.id, shared.id),
        "orphan": AuthorTitlePair(orphan_author.id, orphan.id),
    }


class TestRunBatch:
    """Every pair gets an outcome; failures never stop the batch."""

    async def test_mixed_batch(self, orchestrator, tenant_id, catalog):
        result = await orchestrator.run_batch(tenant_id, Q1_2024, list(catalog.values()), generated_by="test")

        assert result.created_count == 3
        assert result.duplicate_count == 0
        assert result.failed_count == 1

        failure = result.failed[0]
        assert failure.author_id == catalog["orphan"].author_id
        assert failure.error_code == "contract_not_found"
        assert "No active contract" in failure.reason

        net = {(s.author_id, s.title_id): s.net_payable for s in result.succeeded}
        assert net[(catalog["solo"].author_id, catalog["solo"].title_id)] == Decimal("100.00")
        assert net[(catalog["primary"].author_id, catalog["primary"].title_id)] == Decimal("480.00")
        assert net[(catalog["co_author"].author_id, catalog["co_author"].title_id)] == Decimal("320.00")

    async def test_rerun_returns_duplicates(self, orchestrator, tenant_id, catalog):
        pairs = [catalog["solo"], catalog["primary"], catalog["co_author"]]
        first = await orchestrator.run_batch(tenant_id, Q1_2024, pairs)

        second = await orchestrator.run_batch(tenant_id, Q1_2024, pairs)

        assert second.created_count == 0
        assert second.duplicate_count == 3
        assert {s.statement_id for s in second.succeeded} == {s.statement_id for s in first.succeeded}

    async def test_repeated_pairs_processed_once(self, orchestrator, tenant_id, catalog):
        result = await orchestrator.run_batch(tenant_id, Q1_2024, [catalog["solo"], catalog["solo"]])

        assert len(result.succeeded) == 1
        assert result.created_count == 1

    async def test_partial_rerun_completes_remaining_pairs(self, orchestrator, tenant_id, catalog):
        await orchestrator.run_batch(tenant_id, Q1_2024, [catalog["primary"]])

        result = await orchestrator.run_batch(tenant_id, Q1_2024, [catalog["primary"], catalog["co_author"]])

        by_author = {s.author_id: s for s in result.succeeded}
        assert by_author[catalog["primary"].author_id].duplicate is True
        assert by_author[catalog["co_author"].author_id].duplicate is False
        assert by_author[catalog["co_author"].author_id].net_payable == Decimal("320.00")

    async def test_serial_run(self, generator, tenant_id, catalog):
        orchestrator = BatchOrchestrator(generator=generator, max_concurrency=1)

        result = await orchestrator.run_batch(tenant_id, Q1_2024, list(catalog.values()))

        assert result.created_count == 3
        assert result.failed_count == 1


class TestFailureIsolation:
    """A failing title does not affect other titles in the same batch."""

    async def test_unexpected_error_is_recorded(self, orchestrator, generator, tenant_id, catalog, monkeypatch):
        broken_title = catalog["solo"].title_id
        real_compute = generator.compute_title_royalty

        async def compute(db, tenant, title_id, contract, period):
            if title_id == broken_title:
                raise RuntimeError("sales feed exploded")
            return await real_compute(db, tenant, title_id, contract, period)

        monkeypatch.setattr(generator, "compute_title_royalty", compute)

        result = await orchestrator.run_batch(
            tenant_id, Q1_2024, [catalog["solo"], catalog["primary"], catalog["co_author"]]
        )

        assert result.created_count == 2
        assert len(result.failed) == 1
        failure = result.failed[0]
        assert failure.title_id == broken_title
        assert failure.error_code == "unexpected_error"
        assert "sales feed exploded" in failure.reason

    async def test_ownership_error_fails_all_co_authors(self, orchestrator, seed, tenant_id, catalog):
        first = await seed.author("First")
        second = await seed.author("Second")
        title = await seed.title("Misconfigured Book")
        await seed.authorship(title, first, "50", is_primary=True)
        await seed.authorship(title, second, "20")
        await seed.contract(first, title)
        await seed.contract(second, title)

        result = await orchestrator.run_batch(
            tenant_id,
            Q1_2024,
            [AuthorTitlePair(first.id, title.id), AuthorTitlePair(second.id, title.id), catalog["solo"]],
        )

        assert result.created_count == 1
        assert sorted(f.error_code for f in result.failed) == ["invalid_ownership_split"] * 2

    async def test_missing_co_author_contract_fails_only_that_pair(self, orchestrator, seed, tenant_id):
        primary = await seed.author("Primary")
        co_author = await seed.author("Unsigned")
        title = await seed.title()
        await seed.authorship(title, primary, "70", is_primary=True)
        await seed.authorship(title, co_author, "30")
        await seed.contract(primary, title)
        await seed.sale(title, 1000, date(2024, 2, 1))

        result = await orchestrator.run_batch(
            tenant_id,
            Q1_2024,
            [AuthorTitlePair(primary.id, title.id), AuthorTitlePair(co_author.id, title.id)],
        )

        assert [s.author_id for s in result.succeeded] == [primary.id]
        assert result.succeeded[0].net_payable == Decimal("70.00")
        assert [(f.author_id, f.error_code) for f in result.failed] == [(co_author.id, "contract_not_found")]

    async def test_second_title_for_same_author_is_a_failure(self, generator, seed, tenant_id):
        author = await seed.author()
        first_title = await seed.title("First Book")
        second_title = await seed.title("Second Book")
        await seed.contract(author, first_title)
        await seed.contract(author, second_title)
        await seed.sale(first_title, 100, date(2024, 2, 1))
        await seed.sale(second_title, 300, date(2024, 2, 1))
        orchestrator = BatchOrchestrator(generator=generator, max_concurrency=1)

        result = await orchestrator.run_batch(
            tenant_id,
            Q1_2024,
            [AuthorTitlePair(author.id, first_title.id), AuthorTitlePair(author.id, second_title.id)],
        )

        assert [(s.title_id, s.duplicate) for s in result.succeeded] == [(first_title.id, False)]
        assert [(f.title_id, f.error_code) for f in result.failed] == [(second_title.id, "author_period_taken")]
        assert str(result.succeeded[0].statement_id) in result.failed[0].reason
