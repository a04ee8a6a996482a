"""Schemas for author contracts and their tier bands."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

FORMATS = ["physical", "ebook", "audiobook"]
CONTRACT_STATUSES = ["active", "terminated", "suspended"]
TIER_MODES = ["period", "lifetime"]


class TierBase(BaseModel):
    """Base schema for a tier band [min_quantity, max_quantity)."""
    format: str = Field(..., description="Sales format: 'physical', 'ebook' or 'audiobook'")
    min_quantity: int = Field(..., ge=0, description="First unit of the band (inclusive)")
    max_quantity: Optional[int] = Field(None, description="End of the band (exclusive), null = unbounded")
    rate: Decimal = Field(..., ge=0, le=1, max_digits=5, decimal_places=4, description="Royalty per unit (0.0 to 1.0)")

    @field_validator('format')
    @classmethod
    def validate_format(cls, v):
        if v not in FORMATS:
            raise ValueError("format must be 'physical', 'ebook' or 'audiobook'")
        return v

    @model_validator(mode="after")
    def validate_bounds(self):
        if self.max_quantity is not None and self.max_quantity <= self.min_quantity:
            raise ValueError(
                f"max_quantity ({self.max_quantity}) must be greater than min_quantity ({self.min_quantity})"
            )
        return self


class TierCreate(TierBase):
    """Schema for creating a tier band."""
    pass


class TierResponse(TierBase):
    """Schema for tier band response."""
    id: UUID
    contract_id: UUID

    class Config:
        from_attributes = True


class ContractCreate(BaseModel):
    """Schema for registering a contract with its tier bands."""
    tenant_id: UUID
    author_id: UUID
    title_id: UUID
    advance_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    advance_paid: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    advance_recouped: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    tier_calculation_mode: str = Field(default="period", description="'period' or 'lifetime'")
    tiers: list[TierCreate] = Field(..., description="Tier bands, per format contiguous from 0")

    @field_validator('tier_calculation_mode')
    @classmethod
    def validate_mode(cls, v):
        if v not in TIER_MODES:
            raise ValueError("tier_calculation_mode must be 'period' or 'lifetime'")
        return v

    @field_validator('tiers')
    @classmethod
    def validate_tiers(cls, v):
        if not v:
            raise ValueError("At least one tier is required")

        for fmt in FORMATS:
            bands = sorted((t for t in v if t.format == fmt), key=lambda t: t.min_quantity)
            if not bands:
                continue
            if bands[0].min_quantity != 0:
                raise ValueError(f"{fmt} tiers must start at 0, first band starts at {bands[0].min_quantity}")
            for previous, band in zip(bands, bands[1:]):
                if previous.max_quantity is None:
                    raise ValueError(f"Only the last {fmt} tier may be unbounded")
                if band.min_quantity != previous.max_quantity:
                    raise ValueError(
                        f"{fmt} tiers must be contiguous: band ending at {previous.max_quantity} "
                        f"is followed by a band starting at {band.min_quantity}"
                    )
            if bands[-1].max_quantity is not None:
                raise ValueError(f"The last {fmt} tier must be unbounded (max_quantity null)")

        return v

    @model_validator(mode="after")
    def validate_advance(self):
        if self.advance_recouped > self.advance_amount:
            raise ValueError("advance_recouped cannot exceed advance_amount")
        return self


class ContractStatusUpdate(BaseModel):
    """Schema for changing a contract's status."""
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        if v not in CONTRACT_STATUSES:
            raise ValueError("status must be 'active', 'terminated' or 'suspended'")
        return v


class ContractResponse(BaseModel):
    """Schema for contract response."""
    id: UUID
    tenant_id: UUID
    author_id: UUID
    title_id: UUID
    advance_amount: Decimal
    advance_paid: Decimal
    advance_recouped: Decimal
    status: str
    tier_calculation_mode: str
    created_at: datetime
    updated_at: datetime
    tiers: list[TierResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True
