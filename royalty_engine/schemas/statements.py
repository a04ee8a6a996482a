"""Pydantic schemas for the statements API."""
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from royalty_engine.schemas.calculations import StatementCalculation


# Request schemas

class PeriodFields(BaseModel):
    """Statement period [period_start, period_end)."""
    period_start: date = Field(description="Start of the statement period (inclusive)")
    period_end: date = Field(description="End of the statement period (exclusive)")

    @model_validator(mode="after")
    def validate_period(self):
        if self.period_end <= self.period_start:
            raise ValueError("period_end must be after period_start")
        return self


class StatementGenerateRequest(PeriodFields):
    """Request schema for generating one author's statement for a title."""
    tenant_id: UUID
    author_id: UUID
    title_id: UUID


class AuthorTitlePairRequest(BaseModel):
    author_id: UUID
    title_id: UUID


class StatementBatchRequest(PeriodFields):
    """Request schema for a batch of author/title pairs."""
    tenant_id: UUID
    pairs: List[AuthorTitlePairRequest] = Field(..., min_length=1)


class StatementVoidRequest(BaseModel):
    """Request schema for voiding a statement."""
    reason: str = Field(..., min_length=1, max_length=1000)


# Response schemas

class StatementResponse(BaseModel):
    """Response schema for a statement."""
    id: UUID
    tenant_id: UUID
    author_id: UUID
    contract_id: UUID
    title_id: UUID
    period_start: date
    period_end: date
    total_royalty_earned: Decimal
    recoupment: Decimal
    net_payable: Decimal
    status: str
    voided_at: Optional[datetime] = None
    void_reason: Optional[str] = None
    generated_by: Optional[str] = None
    created_at: datetime
    calculation: StatementCalculation

    class Config:
        from_attributes = True


class StatementListItem(BaseModel):
    """Simplified statement for history lists."""
    id: UUID
    title_id: UUID
    period_start: date
    period_end: date
    total_royalty_earned: Decimal
    recoupment: Decimal
    net_payable: Decimal
    status: str
    voided_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StatementGenerateResponse(BaseModel):
    """Result of a single generation; duplicate=True returns the existing statement."""
    duplicate: bool
    statement: StatementResponse


class PairSuccessResponse(BaseModel):
    author_id: UUID
    title_id: UUID
    statement_id: UUID
    net_payable: Decimal
    duplicate: bool

    class Config:
        from_attributes = True


class PairFailureResponse(BaseModel):
    author_id: Optional[UUID] = None
    title_id: UUID
    error_code: str
    reason: str

    class Config:
        from_attributes = True


class BatchResultResponse(BaseModel):
    """Response schema for a batch run."""
    tenant_id: UUID
    period_start: date
    period_end: date
    created_count: int
    duplicate_count: int
    failed_count: int
    succeeded: List[PairSuccessResponse]
    failed: List[PairFailureResponse]
