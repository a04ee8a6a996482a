"""Value types shared by the statement generation steps."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Tuple
from uuid import UUID

from royalty_engine.services.sales_aggregator import FormatSales, validate_period
from royalty_engine.services.tier_calculator import FormatRoyalty


@dataclass(frozen=True)
class Period:
    """Reporting period [start, end)."""
    start: date
    end: date

    def __post_init__(self):
        validate_period(self.start, self.end)

    def __str__(self) -> str:
        return f"[{self.start}, {self.end})"


@dataclass(frozen=True)
class FormatResult:
    """Sales and royalty of one format."""
    sales: FormatSales
    royalty: FormatRoyalty


@dataclass(frozen=True)
class TitleRoyalty:
    """
    Title-level gross royalty for a period.

    For a co-authored title this is computed once, with the primary
    author's tiers, and then split between the authors.
    """
    title_id: UUID
    period: Period
    tier_contract_id: UUID
    tier_calculation_mode: str
    formats: Tuple[FormatResult, ...]
    gross_royalty: Decimal
