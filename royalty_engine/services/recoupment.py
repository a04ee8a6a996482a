"""
Advance recoupment.

RECOUPMENT RULE:
  outstanding = max(advance_amount - advance_recouped, 0)
  recouped    = min(gross_royalty, outstanding)
  net_payable = gross_royalty - recouped

The tracker is pure: persisting the contract's new advance_recouped is the
statement assembler's job, in the same transaction as the statement insert.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from royalty_engine.services.errors import RecoupmentInvariantError
from royalty_engine.services.money import ZERO, to_money

logger = logging.getLogger(__name__)


class AdvanceTerms(Protocol):
    """Contract fields used for recoupment."""
    advance_amount: Decimal
    advance_recouped: Decimal


@dataclass(frozen=True)
class RecoupmentResult:
    """Outcome of netting one period's royalty against the advance."""
    original_advance: Decimal
    previously_recouped: Decimal
    this_period_recoupment: Decimal
    remaining_advance: Decimal
    net_payable: Decimal

    @property
    def recouped_after(self) -> Decimal:
        """Contract advance_recouped once this period is applied."""
        return self.previously_recouped + self.this_period_recoupment


class AdvanceRecoupmentTracker:
    """Nets gross royalty against an author's outstanding advance."""

    def recoup(self, contract: AdvanceTerms, gross_royalty: Decimal) -> RecoupmentResult:
        """
        Apply gross royalty to the contract's outstanding advance.

        Args:
            contract: Contract terms (ResolvedContract or ORM Contract)
            gross_royalty: Royalty earned this period by this author

        Returns:
            RecoupmentResult

        Raises:
            RecoupmentInvariantError: On negative inputs
        """
        gross = to_money(gross_royalty)
        advance_amount = to_money(contract.advance_amount or ZERO)
        advance_recouped = to_money(contract.advance_recouped or ZERO)

        if gross < ZERO:
            raise RecoupmentInvariantError(
                f"Gross royalty {gross} is negative for contract {getattr(contract, 'id', None)}"
            )
        if advance_amount < ZERO or advance_recouped < ZERO:
            raise RecoupmentInvariantError(
                f"Contract {getattr(contract, 'id', None)} has negative advance figures: "
                f"advance_amount={advance_amount}, advance_recouped={advance_recouped}"
            )

        if advance_recouped > advance_amount:
            logger.warning(
                f"Contract {getattr(contract, 'id', None)} is over-recouped "
                f"({advance_recouped} > {advance_amount}); treating outstanding advance as 0"
            )

        outstanding = max(advance_amount - advance_recouped, ZERO)
        recouped = min(gross, outstanding)
        net_payable = gross - recouped

        return RecoupmentResult(
            original_advance=advance_amount,
            previously_recouped=advance_recouped,
            this_period_recoupment=recouped,
            remaining_advance=outstanding - recouped,
            net_payable=net_payable,
        )


# Default tracker instance
recoupment_tracker = AdvanceRecoupmentTracker()
