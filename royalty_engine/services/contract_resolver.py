"""
Contract resolution.

Loads the active contract and its tier bands for (tenant, author, title).
The result is a detached, immutable copy of the contract terms so the
calculation steps never touch a live ORM session.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from royalty_engine.models.contract import Contract, ContractStatus, TierCalculationMode
from royalty_engine.models.contract_tier import ContractTier
from royalty_engine.services.errors import ContractNotFound
from royalty_engine.services.money import ZERO, to_money, to_rate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TierTerms:
    """One tier band as read from the contract."""
    format: str
    min_quantity: int
    max_quantity: Optional[int]
    rate: Decimal

    @classmethod
    def from_model(cls, tier: ContractTier) -> "TierTerms":
        return cls(
            format=_enum_value(tier.format),
            min_quantity=tier.min_quantity,
            max_quantity=tier.max_quantity,
            rate=to_rate(tier.rate),
        )


@dataclass(frozen=True)
class ResolvedContract:
    """Snapshot of a contract's financial terms."""
    id: UUID
    tenant_id: UUID
    author_id: UUID
    title_id: UUID
    advance_amount: Decimal
    advance_paid: Decimal
    advance_recouped: Decimal
    status: str
    tier_calculation_mode: str
    tiers: Tuple[TierTerms, ...]

    @classmethod
    def from_model(cls, contract: Contract) -> "ResolvedContract":
        return cls(
            id=contract.id,
            tenant_id=contract.tenant_id,
            author_id=contract.author_id,
            title_id=contract.title_id,
            advance_amount=to_money(contract.advance_amount or ZERO),
            advance_paid=to_money(contract.advance_paid or ZERO),
            advance_recouped=to_money(contract.advance_recouped or ZERO),
            status=_enum_value(contract.status),
            tier_calculation_mode=_enum_value(contract.tier_calculation_mode),
            tiers=tuple(TierTerms.from_model(t) for t in contract.tiers),
        )

    @property
    def is_lifetime_mode(self) -> bool:
        return self.tier_calculation_mode == TierCalculationMode.LIFETIME.value

    def tiers_for(self, format: str) -> List[TierTerms]:
        return [t for t in self.tiers if t.format == format]


def _enum_value(value) -> str:
    return value.value if hasattr(value, "value") else str(value)


class ContractResolver:
    """Read-only lookup of active contracts."""

    async def resolve(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        author_id: UUID,
        title_id: UUID,
    ) -> ResolvedContract:
        """
        Resolve the active contract for an author on a title.

        Args:
            db: Database session
            tenant_id: Tenant UUID
            author_id: Author UUID
            title_id: Title UUID

        Returns:
            ResolvedContract with its tiers

        Raises:
            ContractNotFound: If no contract in active status exists
        """
        result = await db.execute(
            select(Contract)
            .options(selectinload(Contract.tiers))
            .where(
                Contract.tenant_id == tenant_id,
                Contract.author_id == author_id,
                Contract.title_id == title_id,
                Contract.status == ContractStatus.ACTIVE,
            )
        )
        contract = result.scalar_one_or_none()

        if contract is None:
            logger.info(
                f"No active contract for author={author_id} title={title_id} tenant={tenant_id}"
            )
            raise ContractNotFound(tenant_id, author_id, title_id)

        return ResolvedContract.from_model(contract)


# Default resolver instance
contract_resolver = ContractResolver()
