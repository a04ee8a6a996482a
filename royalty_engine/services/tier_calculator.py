"""
Tiered royalty rate calculation.

Business rules:
1. A format's bands are walked in ascending min_quantity order
2. Units falling in [min_quantity, max_quantity) earn that band's rate;
   max_quantity = None is unbounded
3. format royalty = sum(units_in_band * rate), computed exactly and rounded
   half up to cents once per format
4. Units that fall outside every band are a configuration error
   (TierGapError), never silently unpaid

Boundary example, bands [0, 5000) @ 0.10 and [5000, inf) @ 0.15:
- 5000 units -> 5000 * 0.10 = 500.00 (unit 5000 is not sold yet)
- 7000 units -> 5000 * 0.10 + 2000 * 0.15 = 800.00

Lifetime mode shifts the period's units by the lifetime units sold before
the period: with 4000 earlier units, 2000 new units occupy positions
[4000, 6000) and earn 1000 * 0.10 + 1000 * 0.15.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Protocol, Sequence

from royalty_engine.services.errors import TierConfigurationError, TierGapError, TierOverlapError
from royalty_engine.services.money import ZERO, to_decimal, to_money

logger = logging.getLogger(__name__)


class TierLike(Protocol):
    """Anything exposing a tier band (ORM ContractTier or TierTerms)."""
    format: str
    min_quantity: int
    max_quantity: Optional[int]
    rate: Decimal


@dataclass(frozen=True)
class BandRoyalty:
    """Units and royalty earned within one band."""
    min_quantity: int
    max_quantity: Optional[int]
    rate: Decimal
    units: int
    royalty: Decimal


@dataclass(frozen=True)
class FormatRoyalty:
    """Royalty for one format with the per-band breakdown."""
    format: str
    quantity: int
    offset: int
    gross_royalty: Decimal
    bands: List[BandRoyalty] = field(default_factory=list)


def _format_value(value) -> str:
    return value.value if hasattr(value, "value") else str(value)


class TierRateCalculator:
    """Applies a contract's tier bands to a sales quantity."""

    def calculate(
        self,
        tiers: Sequence[TierLike],
        quantity: int,
        format: str,
        offset: int = 0,
    ) -> Decimal:
        """
        Gross royalty for a format, rounded to cents.

        Args:
            tiers: Contract tier bands (any format; filtered here)
            quantity: Units sold in the period
            format: Sales format to calculate
            offset: Units sold before the period (lifetime mode), else 0

        Returns:
            Gross royalty as money

        Raises:
            TierGapError: If some units are not covered by any band
            TierOverlapError: If bands overlap
            TierConfigurationError: If a band is malformed
        """
        return self.calculate_breakdown(tiers, quantity, format, offset).gross_royalty

    def calculate_breakdown(
        self,
        tiers: Sequence[TierLike],
        quantity: int,
        format: str,
        offset: int = 0,
    ) -> FormatRoyalty:
        """Same as calculate() but returns the per-band breakdown."""
        format = _format_value(format)

        if quantity < 0:
            raise ValueError(f"Quantity must be non-negative, got {quantity}")
        if offset < 0:
            raise ValueError(f"Offset must be non-negative, got {offset}")

        bands = self.bands_for_format(tiers, format)

        if quantity == 0:
            return FormatRoyalty(format=format, quantity=0, offset=offset, gross_royalty=to_money(ZERO))

        if not bands:
            logger.warning(
                f"{quantity} {format} units sold but the contract has no {format} tiers; "
                f"no royalty earned for this format"
            )
            return FormatRoyalty(format=format, quantity=quantity, offset=offset, gross_royalty=to_money(ZERO))

        start = offset
        end = offset + quantity
        cursor = start
        total = ZERO
        breakdown: List[BandRoyalty] = []

        for band in bands:
            if cursor >= end:
                break

            lower = band.min_quantity
            upper = band.max_quantity

            # Band entirely below the units being priced (lifetime offset)
            if upper is not None and upper <= cursor:
                continue

            if lower > cursor:
                raise TierGapError(format, cursor, lower)

            band_end = end if upper is None else min(end, upper)
            units = band_end - cursor
            rate = to_decimal(band.rate)
            royalty = Decimal(units) * rate

            breakdown.append(
                BandRoyalty(
                    min_quantity=lower,
                    max_quantity=upper,
                    rate=rate,
                    units=units,
                    royalty=royalty,
                )
            )
            total += royalty
            cursor = band_end

        if cursor < end:
            # Highest band is finite and the units run past it
            raise TierGapError(format, cursor, None)

        return FormatRoyalty(
            format=format,
            quantity=quantity,
            offset=offset,
            gross_royalty=to_money(total),
            bands=breakdown,
        )

    def bands_for_format(self, tiers: Sequence[TierLike], format: str) -> List[TierLike]:
        """
        Bands of one format ordered by min_quantity, checked for structure.

        Raises:
            TierConfigurationError: On a negative min, max <= min or a rate outside [0, 1]
            TierOverlapError: When a band starts before the previous one ends
        """
        format = _format_value(format)
        bands = sorted(
            (t for t in tiers if _format_value(t.format) == format),
            key=lambda t: t.min_quantity,
        )

        previous: Optional[TierLike] = None
        for band in bands:
            if band.min_quantity < 0:
                raise TierConfigurationError(
                    f"{format} tier has negative min_quantity {band.min_quantity}"
                )
            if band.max_quantity is not None and band.max_quantity <= band.min_quantity:
                raise TierConfigurationError(
                    f"{format} tier [{band.min_quantity}, {band.max_quantity}) is empty or inverted"
                )
            rate = to_decimal(band.rate)
            if rate < 0 or rate > 1:
                raise TierConfigurationError(f"{format} tier rate {rate} is outside [0, 1]")
            if previous is not None:
                if previous.max_quantity is None or band.min_quantity < previous.max_quantity:
                    raise TierOverlapError(format, previous.max_quantity, band.min_quantity)
            previous = band

        return bands


# Default calculator instance
tier_calculator = TierRateCalculator()
