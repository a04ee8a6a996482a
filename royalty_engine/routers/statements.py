"""
Statements Router

Generates, reads and voids author royalty statements.
"""

import logging
from datetime import datetime
from typing import Annotated, NoReturn
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from royalty_engine.core.database import get_db
from royalty_engine.core.security import verify_admin_token
from royalty_engine.models import Statement
from royalty_engine.schemas.statements import (
    BatchResultResponse,
    PairFailureResponse,
    PairSuccessResponse,
    StatementBatchRequest,
    StatementGenerateRequest,
    StatementGenerateResponse,
    StatementListItem,
    StatementResponse,
    StatementVoidRequest,
)
from royalty_engine.services.batch_orchestrator import AuthorTitlePair, BatchOrchestrator
from royalty_engine.services.errors import (
    AggregationError,
    AuthorPeriodTaken,
    ConfigurationError,
    ContractNotFound,
    RoyaltyEngineError,
)
from royalty_engine.services.statement_generator import StatementGenerator
from royalty_engine.services.title_royalty import Period

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/statements", tags=["statements"])
authors_router = APIRouter(prefix="/authors", tags=["statements"])


_generator: StatementGenerator | None = None


def get_statement_generator() -> StatementGenerator:
    """Statement generator bound to the application database."""
    global _generator
    if _generator is None:
        _generator = StatementGenerator()
    return _generator


def get_batch_orchestrator(
    generator: Annotated[StatementGenerator, Depends(get_statement_generator)],
) -> BatchOrchestrator:
    """Batch orchestrator sharing the request's statement generator."""
    return BatchOrchestrator(generator)


def raise_for_engine_error(error: RoyaltyEngineError) -> NoReturn:
    """Map an engine error to an HTTPException."""
    detail = {"error_code": error.error_code, "message": error.message}

    if isinstance(error, ContractNotFound):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail) from error
    if isinstance(error, AuthorPeriodTaken):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail) from error
    if isinstance(error, ConfigurationError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail) from error
    if isinstance(error, AggregationError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail) from error

    logger.error(f"Royalty engine invariant violated: {error}")
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail) from error


@router.post("/generate", response_model=StatementGenerateResponse, status_code=status.HTTP_201_CREATED)
async def generate_statement(
    data: StatementGenerateRequest,
    response: Response,
    generator: Annotated[StatementGenerator, Depends(get_statement_generator)],
    _token: Annotated[str, Depends(verify_admin_token)],
) -> StatementGenerateResponse:
    """
    Generate one author's statement for a title and period.

    Returns 201 with the new statement, or 200 with the existing statement
    and duplicate=true when one was already generated for the period.
    """
    period = Period(data.period_start, data.period_end)

    try:
        result = await generator.generate(
            tenant_id=data.tenant_id,
            author_id=data.author_id,
            title_id=data.title_id,
            period=period,
            generated_by="admin",
        )
    except RoyaltyEngineError as e:
        raise_for_engine_error(e)

    if result.duplicate:
        response.status_code = status.HTTP_200_OK

    return StatementGenerateResponse(
        duplicate=result.duplicate,
        statement=StatementResponse.model_validate(result.statement),
    )


@router.post("/batch", response_model=BatchResultResponse)
async def generate_batch(
    data: StatementBatchRequest,
    orchestrator: Annotated[BatchOrchestrator, Depends(get_batch_orchestrator)],
    _token: Annotated[str, Depends(verify_admin_token)],
) -> BatchResultResponse:
    """
    Generate statements for a batch of author/title pairs.

    Failed pairs are reported with their error code and never abort the batch.
    """
    period = Period(data.period_start, data.period_end)
    pairs = [AuthorTitlePair(author_id=p.author_id, title_id=p.title_id) for p in data.pairs]

    result = await orchestrator.run_batch(
        tenant_id=data.tenant_id,
        period=period,
        pairs=pairs,
        generated_by="admin",
    )

    return BatchResultResponse(
        tenant_id=data.tenant_id,
        period_start=period.start,
        period_end=period.end,
        created_count=result.created_count,
        duplicate_count=result.duplicate_count,
        failed_count=result.failed_count,
        succeeded=[PairSuccessResponse.model_validate(s) for s in result.succeeded],
        failed=[PairFailureResponse.model_validate(f) for f in result.failed],
    )


@router.get("/{statement_id}", response_model=StatementResponse)
async def get_statement(
    statement_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    _token: Annotated[str, Depends(verify_admin_token)],
) -> StatementResponse:
    """Get a statement with its calculation snapshot."""
    statement = await db.get(Statement, statement_id)

    if statement is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Statement {statement_id} not found",
        )

    return StatementResponse.model_validate(statement)


@router.post("/{statement_id}/void", response_model=StatementResponse)
async def void_statement(
    statement_id: UUID,
    data: StatementVoidRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    _token: Annotated[str, Depends(verify_admin_token)],
) -> StatementResponse:
    """
    Flag a statement as void.

    The amounts and calculation stay untouched; a correction is a new statement.
    """
    statement = await db.get(Statement, statement_id)

    if statement is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Statement {statement_id} not found",
        )

    if statement.is_voided:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Statement {statement_id} is already void",
        )

    statement.voided_at = datetime.utcnow()
    statement.void_reason = data.reason
    await db.commit()
    await db.refresh(statement)

    logger.info(f"Voided statement {statement_id}: {data.reason}")

    return StatementResponse.model_validate(statement)


@authors_router.get("/{author_id}/statements", response_model=list[StatementListItem])
async def list_author_statements(
    author_id: UUID,
    tenant_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    _token: Annotated[str, Depends(verify_admin_token)],
    include_voided: bool = True,
) -> list[StatementListItem]:
    """
    Statement history of an author, most recent period first.

    Query params:
    - tenant_id: Tenant the author belongs to
    - include_voided: Include voided statements (default true)
    """
    query = select(Statement).where(
        Statement.tenant_id == tenant_id,
        Statement.author_id == author_id,
    )

    if not include_voided:
        query = query.where(Statement.voided_at.is_(None))

    query = query.order_by(Statement.period_start.desc(), Statement.created_at.desc())

    result = await db.execute(query)
    return [StatementListItem.model_validate(s) for s in result.scalars().all()]
