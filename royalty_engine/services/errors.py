"""
Royalty engine error taxonomy.

Configuration errors (fatal to one author/title pair, never to a batch):
- ContractNotFound, TierGapError, TierOverlapError, TierConfigurationError,
  InvalidOwnershipSplit, AuthorNotCredited, AuthorPeriodTaken,
  InvalidPeriodError

Data-access errors (retried by the caller's job policy, not by the engine):
- AggregationError

Invariant violations (never silently corrected):
- RecoupmentInvariantError, StatementImmutableError

Duplicate statements are not errors; the assembler reports them as results.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID


class RoyaltyEngineError(Exception):
    """Base class for all royalty engine errors."""

    error_code: str = "royalty_engine_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(RoyaltyEngineError):
    """Contract, tier or authorship data does not allow a calculation."""

    error_code = "configuration_error"


class ContractNotFound(ConfigurationError):
    """No active contract exists for the author/title pair."""

    error_code = "contract_not_found"

    def __init__(self, tenant_id: UUID, author_id: UUID, title_id: UUID):
        self.tenant_id = tenant_id
        self.author_id = author_id
        self.title_id = title_id
        super().__init__(
            f"No active contract found for author {author_id} "
            f"on title {title_id} in tenant {tenant_id}"
        )


class TierConfigurationError(ConfigurationError):
    """A tier band is malformed (e.g. max not above min)."""

    error_code = "tier_configuration_error"


class TierGapError(TierConfigurationError):
    """Units fall into a quantity range not covered by any band."""

    error_code = "tier_gap"

    def __init__(self, format: str, gap_start: int, gap_end: Optional[int]):
        self.format = format
        self.gap_start = gap_start
        self.gap_end = gap_end
        upper = "unbounded" if gap_end is None else str(gap_end)
        super().__init__(
            f"No {format} tier covers quantities [{gap_start}, {upper})"
        )


class TierOverlapError(TierConfigurationError):
    """Two bands of the same format overlap, or an unbounded band is not last."""

    error_code = "tier_overlap"

    def __init__(self, format: str, previous_max: Optional[int], next_min: int):
        self.format = format
        self.previous_max = previous_max
        self.next_min = next_min
        upper = "unbounded" if previous_max is None else str(previous_max)
        super().__init__(
            f"{format} tiers overlap: band ending at {upper} is followed by "
            f"a band starting at {next_min}"
        )


class InvalidOwnershipSplit(ConfigurationError):
    """Co-author ownership percentages do not add up to 100."""

    error_code = "invalid_ownership_split"

    def __init__(self, title_id: Optional[UUID], computed_sum: Decimal, detail: str = ""):
        self.title_id = title_id
        self.computed_sum = computed_sum
        message = (
            f"Ownership percentages for title {title_id} sum to {computed_sum}, expected 100"
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class AuthorNotCredited(ConfigurationError):
    """The author has no active authorship row on a co-authored title."""

    error_code = "author_not_credited"

    def __init__(self, author_id: UUID, title_id: UUID):
        self.author_id = author_id
        self.title_id = title_id
        super().__init__(f"Author {author_id} is not credited on co-authored title {title_id}")


class AuthorPeriodTaken(ConfigurationError):
    """The author's statement for the period was already generated for another title."""

    error_code = "author_period_taken"

    def __init__(self, author_id: UUID, title_id: UUID, statement_id: UUID, statement_title_id: UUID):
        self.author_id = author_id
        self.title_id = title_id
        self.statement_id = statement_id
        self.statement_title_id = statement_title_id
        super().__init__(
            f"Author {author_id} already has statement {statement_id} for this period "
            f"on title {statement_title_id}; title {title_id} was not priced"
        )


class InvalidPeriodError(ConfigurationError):
    """Reporting period is empty or inverted."""

    error_code = "invalid_period"


class AggregationError(RoyaltyEngineError):
    """Sales data could not be read."""

    error_code = "aggregation_error"


class RecoupmentInvariantError(RoyaltyEngineError):
    """Recoupment inputs or results violate a money invariant."""

    error_code = "recoupment_invariant"


class StatementImmutableError(RoyaltyEngineError):
    """An update tried to change the financial content of a statement."""

    error_code = "statement_immutable"

    def __init__(self, statement_id: UUID, fields: Iterable[str]):
        self.statement_id = statement_id
        self.fields = list(fields)
        super().__init__(
            f"Statement {statement_id} is immutable; attempted to change {', '.join(self.fields)}"
        )
