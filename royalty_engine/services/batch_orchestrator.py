"""
Batch statement generation.

A batch is a list of (author, title) pairs for one tenant and period.
Pairs are grouped by title so each title's gross royalty is computed once;
title groups run concurrently up to BATCH_MAX_CONCURRENCY.

A failing pair is recorded with its reason and error code and never stops
the batch. Re-running a batch is safe: completed pairs come back as
duplicates without being recomputed.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from royalty_engine.core.config import settings
from royalty_engine.services.errors import RoyaltyEngineError
from royalty_engine.services.statement_generator import StatementGenerator
from royalty_engine.services.title_royalty import Period

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorTitlePair:
    author_id: UUID
    title_id: UUID


@dataclass(frozen=True)
class PairSuccess:
    author_id: UUID
    title_id: UUID
    statement_id: UUID
    net_payable: Decimal
    duplicate: bool = False


@dataclass(frozen=True)
class PairFailure:
    author_id: UUID
    title_id: UUID
    error_code: str
    reason: str


@dataclass
class BatchResult:
    """Outcome of a batch run."""
    succeeded: List[PairSuccess] = field(default_factory=list)
    failed: List[PairFailure] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return sum(1 for s in self.succeeded if not s.duplicate)

    @property
    def duplicate_count(self) -> int:
        return sum(1 for s in self.succeeded if s.duplicate)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


GroupOutcome = Tuple[List[PairSuccess], List[PairFailure]]


class BatchOrchestrator:
    """Runs statement generation for many author/title pairs."""

    def __init__(
        self,
        generator: StatementGenerator | None = None,
        max_concurrency: int | None = None,
    ):
        """
        Initialize orchestrator.

        Args:
            generator: Statement generator (defaults to one on the app database)
            max_concurrency: Title groups processed at once
                (defaults to settings.BATCH_MAX_CONCURRENCY)
        """
        self.generator = generator or StatementGenerator()
        self.max_concurrency = max(1, max_concurrency or settings.BATCH_MAX_CONCURRENCY)

    async def run_batch(
        self,
        tenant_id: UUID,
        period: Period,
        pairs: Iterable[AuthorTitlePair],
        generated_by: str | None = None,
    ) -> BatchResult:
        """
        Generate statements for every pair.

        Args:
            tenant_id: Tenant UUID
            period: Statement period [start, end)
            pairs: Author/title pairs (duplicates are processed once)
            generated_by: Who triggered the batch

        Returns:
            BatchResult with one entry per distinct pair
        """
        groups: Dict[UUID, List[UUID]] = {}
        for pair in dict.fromkeys(pairs):
            groups.setdefault(pair.title_id, []).append(pair.author_id)

        logger.info(
            f"Starting batch for tenant {tenant_id} period {period}: "
            f"{sum(len(a) for a in groups.values())} pairs across {len(groups)} titles"
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_group(title_id: UUID, author_ids: List[UUID]) -> GroupOutcome:
            async with semaphore:
                return await self._process_title(tenant_id, period, title_id, author_ids, generated_by)

        outcomes = await asyncio.gather(
            *(run_group(title_id, author_ids) for title_id, author_ids in groups.items())
        )

        result = BatchResult()
        for succeeded, failed in outcomes:
            result.succeeded.extend(succeeded)
            result.failed.extend(failed)

        logger.info(
            f"Batch for tenant {tenant_id} period {period} finished: "
            f"{result.created_count} created, {result.duplicate_count} duplicates, "
            f"{result.failed_count} failed"
        )
        return result

    async def _process_title(
        self,
        tenant_id: UUID,
        period: Period,
        title_id: UUID,
        author_ids: List[UUID],
        generated_by: str | None,
    ) -> GroupOutcome:
        succeeded: List[PairSuccess] = []
        failed: List[PairFailure] = []

        try:
            plan = await self.generator.prepare_title(tenant_id, title_id, author_ids, period)
        except Exception as e:
            failure = self._failure_from(e, title_id)
            return succeeded, [
                PairFailure(author_id, title_id, failure.error_code, failure.reason)
                for author_id in author_ids
            ]

        for author_id in author_ids:
            try:
                outcome = await self.generator.generate_for_author(
                    tenant_id, plan, author_id, generated_by
                )
            except Exception as e:
                failure = self._failure_from(e, title_id, author_id)
                failed.append(failure)
                continue

            succeeded.append(
                PairSuccess(
                    author_id=author_id,
                    title_id=title_id,
                    statement_id=outcome.statement.id,
                    net_payable=outcome.statement.net_payable,
                    duplicate=outcome.duplicate,
                )
            )

        return succeeded, failed

    def _failure_from(
        self,
        error: Exception,
        title_id: UUID,
        author_id: UUID | None = None,
    ) -> PairFailure:
        subject = f"author {author_id} title {title_id}" if author_id else f"title {title_id}"
        if isinstance(error, RoyaltyEngineError):
            logger.warning(f"Statement generation failed for {subject}: {error}")
            return PairFailure(author_id, title_id, error.error_code, error.message)
        if isinstance(error, SQLAlchemyError):
            logger.error(f"Database error generating statement for {subject}: {error}")
            return PairFailure(author_id, title_id, "database_error", str(error))
        logger.exception(f"Unexpected error generating statement for {subject}")
        return PairFailure(author_id, title_id, "unexpected_error", f"{error.__class__.__name__}: {error}")
