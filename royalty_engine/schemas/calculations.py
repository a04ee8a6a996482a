"""
Statement calculation snapshot.

The snapshot is stored in statements.calculations and is the full audit
trail behind a statement's amounts. It is a tagged union discriminated on
``kind`` so readers (PDF, email, portal) can match on the variant instead of
probing optional fields:

- SingleAuthorCalculation (kind="single"): the author earns the title royalty
- SplitAuthorCalculation (kind="split"): the author earns a share of a
  co-authored title's royalty; carries the split context

Decimals are serialized as strings (model_dump(mode="json")) so amounts are
exact when read back.
"""
from datetime import date
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

SNAPSHOT_SCHEMA_VERSION = 1


class TierBreakdownSnapshot(BaseModel):
    """Units and royalty attributed to one tier band."""
    model_config = ConfigDict(frozen=True)

    min_quantity: int
    max_quantity: Optional[int] = Field(description="Exclusive upper bound, null = unbounded")
    rate: Decimal
    units: int
    royalty: Decimal = Field(description="Unrounded band royalty (units x rate)")


class FormatBreakdownSnapshot(BaseModel):
    """Sales and royalty for one format."""
    model_config = ConfigDict(frozen=True)

    format: str
    gross_quantity: int
    returned_quantity: int
    net_quantity: int
    net_revenue: Decimal
    tier_offset: int = Field(default=0, description="Lifetime units sold before the period")
    tier_breakdowns: List[TierBreakdownSnapshot] = Field(default_factory=list)
    gross_royalty: Decimal


class AdvanceRecoupmentSnapshot(BaseModel):
    """How the advance was offset by this statement."""
    model_config = ConfigDict(frozen=True)

    original_advance: Decimal
    previously_recouped: Decimal
    this_period_recoupment: Decimal
    remaining_advance: Decimal


class SplitContext(BaseModel):
    """Co-author context for a split statement."""
    model_config = ConfigDict(frozen=True)

    ownership_percentage: Decimal
    title_gross_royalty: Decimal
    is_split_calculation: Literal[True] = True
    residual_adjustment: Decimal = Field(
        default=Decimal("0"),
        description="Rounding cents assigned to this author so splits add up to the title total",
    )
    co_author_count: int


class _CalculationBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    period_start: date
    period_end: date
    title_id: str
    contract_id: str
    tier_calculation_mode: str
    formats: List[FormatBreakdownSnapshot]
    gross_royalty: Decimal = Field(description="Royalty earned by this author before recoupment")
    advance_recoupment: AdvanceRecoupmentSnapshot
    net_payable: Decimal


class SingleAuthorCalculation(_CalculationBase):
    kind: Literal["single"] = "single"


class SplitAuthorCalculation(_CalculationBase):
    kind: Literal["split"] = "split"
    split: SplitContext


StatementCalculation = Annotated[
    Union[SingleAuthorCalculation, SplitAuthorCalculation],
    Field(discriminator="kind"),
]

calculation_adapter = TypeAdapter(StatementCalculation)
