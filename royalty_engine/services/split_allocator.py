"""
Co-author split allocation.

Business rules:
1. Active ownership percentages for a title must sum to 100 within
   OWNERSHIP_TOLERANCE, otherwise nothing is allocated
2. split_amount = title_gross_royalty * ownership_percentage / 100, each
   rounded half up to cents
3. The rounding residual goes to the largest-share author so that the
   splits add up to the title total exactly

Largest share: highest ownership percentage; on a tie the primary author,
then the lowest author id (string order) so the choice is stable.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Protocol, Sequence
from uuid import UUID

from royalty_engine.core.config import settings
from royalty_engine.services.errors import InvalidOwnershipSplit
from royalty_engine.services.money import HUNDRED, ZERO, to_decimal, to_money

logger = logging.getLogger(__name__)


class AuthorshipLike(Protocol):
    author_id: UUID
    ownership_percentage: Decimal
    is_primary: bool


@dataclass(frozen=True)
class AuthorSplit:
    """One author's share of a title's gross royalty."""
    author_id: UUID
    ownership_percentage: Decimal
    split_amount: Decimal
    title_gross_royalty: Decimal
    co_author_count: int
    residual_adjustment: Decimal = ZERO
    is_primary: bool = False


def largest_share_key(authorship: AuthorshipLike):
    return (
        -to_decimal(authorship.ownership_percentage),
        not bool(getattr(authorship, "is_primary", False)),
        str(authorship.author_id),
    )


class SplitAllocator:
    """Divides a title's royalty among its credited authors."""

    def __init__(self, tolerance: Decimal | None = None):
        """
        Initialize allocator.

        Args:
            tolerance: Allowed deviation of the ownership sum from 100
                (defaults to settings.OWNERSHIP_TOLERANCE)
        """
        self.tolerance = tolerance if tolerance is not None else settings.OWNERSHIP_TOLERANCE

    def validate(self, authorships: Sequence[AuthorshipLike], title_id: Optional[UUID] = None) -> Decimal:
        """
        Check ownership percentages and return their sum.

        Raises:
            InvalidOwnershipSplit: If empty, out of range or not summing to 100
        """
        if not authorships:
            raise InvalidOwnershipSplit(title_id, ZERO, "no credited authors")

        total = ZERO
        for authorship in authorships:
            pct = to_decimal(authorship.ownership_percentage)
            if pct < ZERO or pct > HUNDRED:
                raise InvalidOwnershipSplit(
                    title_id,
                    sum((to_decimal(a.ownership_percentage) for a in authorships), ZERO),
                    f"author {authorship.author_id} has ownership {pct}",
                )
            total += pct

        if abs(total - HUNDRED) > self.tolerance:
            raise InvalidOwnershipSplit(title_id, total)

        return total

    def allocate(
        self,
        title_gross_royalty: Decimal,
        authorships: Sequence[AuthorshipLike],
        title_id: Optional[UUID] = None,
    ) -> List[AuthorSplit]:
        """
        Split a title's gross royalty by ownership percentage.

        Args:
            title_gross_royalty: Title-level gross royalty
            authorships: Active authorship rows for the title
            title_id: Title UUID (for error context)

        Returns:
            One AuthorSplit per authorship, in input order

        Raises:
            InvalidOwnershipSplit: If the percentages do not sum to 100
        """
        self.validate(authorships, title_id)

        total = to_money(title_gross_royalty)
        if total < ZERO:
            raise InvalidOwnershipSplit(title_id, ZERO, f"negative title royalty {total}")

        amounts = [
            to_money(total * to_decimal(a.ownership_percentage) / HUNDRED)
            for a in authorships
        ]
        residual = total - sum(amounts, ZERO)

        receiver = min(range(len(authorships)), key=lambda i: largest_share_key(authorships[i]))
        if residual != ZERO:
            amounts[receiver] += residual
            logger.info(
                f"Assigned rounding residual {residual} on title {title_id} "
                f"to author {authorships[receiver].author_id}"
            )

        return [
            AuthorSplit(
                author_id=a.author_id,
                ownership_percentage=to_decimal(a.ownership_percentage),
                split_amount=amounts[i],
                title_gross_royalty=total,
                co_author_count=len(authorships),
                residual_adjustment=residual if i == receiver else ZERO,
                is_primary=bool(getattr(a, "is_primary", False)),
            )
            for i, a in enumerate(authorships)
        ]


# Default allocator instance
split_allocator = SplitAllocator()
