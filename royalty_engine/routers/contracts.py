"""
Contracts Router

Registers author contracts with their tier bands and manages contract status.
"""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from royalty_engine.core.database import get_db
from royalty_engine.core.security import verify_admin_token
from royalty_engine.models import Author, Contract, ContractStatus, ContractTier, SalesFormat, TierCalculationMode, Title
from royalty_engine.schemas.contracts import ContractCreate, ContractResponse, ContractStatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contracts", tags=["contracts"])


async def _load_contract(db: AsyncSession, contract_id: UUID) -> Contract:
    result = await db.execute(
        select(Contract).options(selectinload(Contract.tiers)).where(Contract.id == contract_id)
    )
    contract = result.scalar_one_or_none()

    if not contract:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Contract {contract_id} not found",
        )

    return contract


@router.post("", response_model=ContractResponse, status_code=status.HTTP_201_CREATED)
async def create_contract(
    contract_data: ContractCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    _token: Annotated[str, Depends(verify_admin_token)],
):
    """
    Register a contract for an author on a title.

    Validates:
    - Author and title exist in the tenant
    - Tiers are contiguous per format, start at 0 and end unbounded
    - Only one contract per (tenant, author, title)
    """
    author = await db.get(Author, contract_data.author_id)
    if not author or author.tenant_id != contract_data.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Author {contract_data.author_id} not found",
        )

    title = await db.get(Title, contract_data.title_id)
    if not title or title.tenant_id != contract_data.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Title {contract_data.title_id} not found",
        )

    contract = Contract(
        tenant_id=contract_data.tenant_id,
        author_id=contract_data.author_id,
        title_id=contract_data.title_id,
        advance_amount=contract_data.advance_amount,
        advance_paid=contract_data.advance_paid,
        advance_recouped=contract_data.advance_recouped,
        status=ContractStatus.ACTIVE,
        tier_calculation_mode=TierCalculationMode(contract_data.tier_calculation_mode),
        tiers=[
            ContractTier(
                format=SalesFormat(tier.format),
                min_quantity=tier.min_quantity,
                max_quantity=tier.max_quantity,
                rate=tier.rate,
            )
            for tier in contract_data.tiers
        ],
    )
    db.add(contract)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"A contract already exists for author {contract_data.author_id} "
                f"on title {contract_data.title_id}"
            ),
        )

    logger.info(
        f"Created contract {contract.id} for author {contract.author_id} on title {contract.title_id} "
        f"with {len(contract_data.tiers)} tiers"
    )

    return await _load_contract(db, contract.id)


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    _token: Annotated[str, Depends(verify_admin_token)],
):
    """Get a specific contract with its tiers."""
    return await _load_contract(db, contract_id)


@router.patch("/{contract_id}/status", response_model=ContractResponse)
async def update_contract_status(
    contract_id: UUID,
    data: ContractStatusUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    _token: Annotated[str, Depends(verify_admin_token)],
):
    """
    Change a contract's status.

    Only active contracts take part in statement generation. Existing
    statements are not affected.
    """
    contract = await _load_contract(db, contract_id)
    previous = contract.status

    contract.status = ContractStatus(data.status)
    await db.commit()

    logger.info(f"Contract {contract_id} status changed from {previous} to {data.status}")

    return await _load_contract(db, contract_id)
