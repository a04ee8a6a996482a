"""
Tests for TierRateCalculator.

Covers:
- Flat single-band contracts
- Escalating bands and the band boundary
- Per-format band selection
- Gaps, overlaps and malformed bands
- Lifetime offsets
"""

from decimal import Decimal

import pytest

from royalty_engine.services.contract_resolver import TierTerms
from royalty_engine.services.errors import TierConfigurationError, TierGapError, TierOverlapError
from royalty_engine.services.tier_calculator import TierRateCalculator


def tier(fmt, min_qty, max_qty, rate):
    return TierTerms(format=fmt, min_quantity=min_qty, max_quantity=max_qty, rate=Decimal(rate))


ESCALATING = [
    tier("physical", 0, 5000, "0.10"),
    tier("physical", 5000, None, "0.15"),
]


class TestSingleBand:
    """A single unbounded band is a flat per-unit rate."""

    def setup_method(self):
        self.calculator = TierRateCalculator()

    def test_flat_rate(self):
        tiers = [tier("physical", 0, None, "0.10")]
        assert self.calculator.calculate(tiers, 1000, "physical") == Decimal("100.00")

    def test_zero_quantity_is_zero(self):
        tiers = [tier("physical", 0, None, "0.10")]
        assert self.calculator.calculate(tiers, 0, "physical") == Decimal("0.00")

    def test_result_is_rounded_half_up_to_cents(self):
        tiers = [tier("physical", 0, None, "0.0125")]
        # 3 * 0.0125 = 0.0375 -> 0.04
        assert self.calculator.calculate(tiers, 3, "physical") == Decimal("0.04")


class TestEscalatingBands:
    """Units are priced band by band."""

    def setup_method(self):
        self.calculator = TierRateCalculator()

    def test_units_spanning_two_bands(self):
        """5000 @ 0.10 + 2000 @ 0.15."""
        result = self.calculator.calculate_breakdown(ESCALATING, 7000, "physical")

        assert result.gross_royalty == Decimal("800.00")
        assert [(b.units, b.rate) for b in result.bands] == [
            (5000, Decimal("0.10")),
            (2000, Decimal("0.15")),
        ]

    def test_exactly_at_boundary_stays_in_lower_band(self):
        assert self.calculator.calculate(ESCALATING, 5000, "physical") == Decimal("500.00")

    def test_one_unit_past_boundary(self):
        assert self.calculator.calculate(ESCALATING, 5001, "physical") == Decimal("500.15")

    def test_band_order_in_input_does_not_matter(self):
        reversed_tiers = list(reversed(ESCALATING))
        assert self.calculator.calculate(reversed_tiers, 7000, "physical") == Decimal("800.00")

    def test_breakdown_units_sum_to_quantity(self):
        tiers = [
            tier("physical", 0, 1000, "0.08"),
            tier("physical", 1000, 3000, "0.10"),
            tier("physical", 3000, None, "0.12"),
        ]
        result = self.calculator.calculate_breakdown(tiers, 4321, "physical")

        assert sum(b.units for b in result.bands) == 4321
        assert result.gross_royalty == Decimal("80.00") + Decimal("200.00") + Decimal("158.52")


class TestFormats:
    """Only the bands of the requested format apply."""

    def setup_method(self):
        self.calculator = TierRateCalculator()

    def test_bands_of_other_formats_are_ignored(self):
        tiers = [
            tier("physical", 0, None, "0.10"),
            tier("ebook", 0, None, "0.25"),
        ]
        assert self.calculator.calculate(tiers, 100, "ebook") == Decimal("25.00")
        assert self.calculator.calculate(tiers, 100, "physical") == Decimal("10.00")

    def test_format_without_bands_earns_nothing(self):
        tiers = [tier("physical", 0, None, "0.10")]
        result = self.calculator.calculate_breakdown(tiers, 50, "audiobook")

        assert result.gross_royalty == Decimal("0.00")
        assert result.bands == []


class TestConfigurationErrors:
    """Misconfigured bands raise instead of under-paying."""

    def setup_method(self):
        self.calculator = TierRateCalculator()

    def test_gap_between_bands(self):
        tiers = [
            tier("physical", 0, 1000, "0.10"),
            tier("physical", 2000, None, "0.15"),
        ]
        with pytest.raises(TierGapError) as exc_info:
            self.calculator.calculate(tiers, 1500, "physical")

        assert exc_info.value.gap_start == 1000
        assert exc_info.value.gap_end == 2000

    def test_first_band_not_starting_at_zero(self):
        tiers = [tier("physical", 100, None, "0.10")]
        with pytest.raises(TierGapError):
            self.calculator.calculate(tiers, 50, "physical")

    def test_units_beyond_last_bounded_band(self):
        tiers = [tier("physical", 0, 1000, "0.10")]
        with pytest.raises(TierGapError) as exc_info:
            self.calculator.calculate(tiers, 1500, "physical")

        assert exc_info.value.gap_start == 1000
        assert exc_info.value.gap_end is None

    def test_gap_is_not_reached_by_small_quantities(self):
        tiers = [
            tier("physical", 0, 1000, "0.10"),
            tier("physical", 2000, None, "0.15"),
        ]
        assert self.calculator.calculate(tiers, 999, "physical") == Decimal("99.90")

    def test_overlapping_bands(self):
        tiers = [
            tier("physical", 0, 5000, "0.10"),
            tier("physical", 4000, None, "0.15"),
        ]
        with pytest.raises(TierOverlapError):
            self.calculator.calculate(tiers, 100, "physical")

    def test_unbounded_band_that_is_not_last(self):
        tiers = [
            tier("physical", 0, None, "0.10"),
            tier("physical", 5000, None, "0.15"),
        ]
        with pytest.raises(TierOverlapError):
            self.calculator.calculate(tiers, 100, "physical")

    def test_inverted_band(self):
        tiers = [tier("physical", 500, 100, "0.10")]
        with pytest.raises(TierConfigurationError):
            self.calculator.calculate(tiers, 10, "physical")

    def test_rate_above_one(self):
        tiers = [tier("physical", 0, None, "1.5")]
        with pytest.raises(TierConfigurationError):
            self.calculator.calculate(tiers, 10, "physical")

    def test_negative_quantity(self):
        with pytest.raises(ValueError):
            self.calculator.calculate(ESCALATING, -1, "physical")


class TestLifetimeOffset:
    """An offset positions the period's units after earlier sales."""

    def setup_method(self):
        self.calculator = TierRateCalculator()

    def test_offset_pushes_units_into_higher_band(self):
        # Units [4000, 6000): 1000 @ 0.10 + 1000 @ 0.15
        result = self.calculator.calculate_breakdown(ESCALATING, 2000, "physical", offset=4000)

        assert result.gross_royalty == Decimal("250.00")
        assert result.offset == 4000
        assert [b.units for b in result.bands] == [1000, 1000]

    def test_offset_past_all_lower_bands(self):
        assert self.calculator.calculate(ESCALATING, 1000, "physical", offset=9000) == Decimal("150.00")

    def test_zero_offset_matches_period_mode(self):
        assert (
            self.calculator.calculate(ESCALATING, 7000, "physical", offset=0)
            == self.calculator.calculate(ESCALATING, 7000, "physical")
        )
