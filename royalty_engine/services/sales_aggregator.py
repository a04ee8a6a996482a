"""
Sales aggregation.

Business rules:
1. A sale counts for a period when period_start <= sale_date < period_end
2. Approved returns dated within the period are deducted from that
   period's units and revenue (pending and rejected returns are ignored)
3. Net quantities are floored at zero per format
4. Every format is always present in the result, with zeros when there
   were no sales, so tier calculation always has a defined input
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from royalty_engine.models.sale import Sale, SalesFormat
from royalty_engine.models.sale_return import SaleReturn, ReturnStatus
from royalty_engine.services.errors import AggregationError, InvalidPeriodError
from royalty_engine.services.money import ZERO, to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormatSales:
    """Aggregated sales for one format within a period."""
    format: str
    gross_quantity: int = 0
    returned_quantity: int = 0
    gross_revenue: Decimal = ZERO
    returned_revenue: Decimal = ZERO

    @property
    def net_quantity(self) -> int:
        return max(self.gross_quantity - self.returned_quantity, 0)

    @property
    def net_revenue(self) -> Decimal:
        return max(self.gross_revenue - self.returned_revenue, ZERO)


def validate_period(period_start: date, period_end: date) -> None:
    """Raise InvalidPeriodError unless period_start < period_end."""
    if period_end <= period_start:
        raise InvalidPeriodError(
            f"period_end ({period_end}) must be after period_start ({period_start})"
        )


def _format_key(value) -> str:
    return value.value if isinstance(value, SalesFormat) else str(value)


class SalesAggregator:
    """Sums sales and approved returns for a title by format."""

    async def aggregate(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        title_id: UUID,
        period_start: date,
        period_end: date,
    ) -> Dict[SalesFormat, int]:
        """
        Net units sold per format within [period_start, period_end).

        Returns:
            Mapping with every SalesFormat as key
        """
        breakdown = await self.aggregate_breakdown(db, tenant_id, title_id, period_start, period_end)
        return {fmt: breakdown[fmt.value].net_quantity for fmt in SalesFormat}

    async def aggregate_breakdown(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        title_id: UUID,
        period_start: date,
        period_end: date,
    ) -> Dict[str, FormatSales]:
        """
        Gross sales, approved returns and net figures per format.

        Args:
            db: Database session
            tenant_id: Tenant UUID
            title_id: Title UUID
            period_start: Start of period (inclusive)
            period_end: End of period (exclusive)

        Returns:
            Mapping of format value to FormatSales, one entry per SalesFormat

        Raises:
            InvalidPeriodError: If the period is empty or inverted
            AggregationError: If the sales data cannot be read
        """
        validate_period(period_start, period_end)

        sales_query = (
            select(
                Sale.format,
                func.coalesce(func.sum(Sale.quantity), 0),
                func.coalesce(func.sum(Sale.total_amount), 0),
            )
            .where(
                Sale.tenant_id == tenant_id,
                Sale.title_id == title_id,
                Sale.sale_date >= period_start,
                Sale.sale_date < period_end,
            )
            .group_by(Sale.format)
        )
        returns_query = (
            select(
                SaleReturn.format,
                func.coalesce(func.sum(SaleReturn.quantity), 0),
                func.coalesce(func.sum(SaleReturn.total_amount), 0),
            )
            .where(
                SaleReturn.tenant_id == tenant_id,
                SaleReturn.title_id == title_id,
                SaleReturn.status == ReturnStatus.APPROVED,
                SaleReturn.return_date >= period_start,
                SaleReturn.return_date < period_end,
            )
            .group_by(SaleReturn.format)
        )

        try:
            sales_rows = (await db.execute(sales_query)).all()
            returns_rows = (await db.execute(returns_query)).all()
        except SQLAlchemyError as e:
            logger.error(f"Sales aggregation failed for title {title_id}: {e}")
            raise AggregationError(
                f"Could not aggregate sales for title {title_id} "
                f"between {period_start} and {period_end}: {e}"
            ) from e

        sales = {_format_key(fmt): (int(qty), Decimal(str(amount))) for fmt, qty, amount in sales_rows}
        returns = {_format_key(fmt): (int(qty), Decimal(str(amount))) for fmt, qty, amount in returns_rows}

        result: Dict[str, FormatSales] = {}
        for fmt in SalesFormat:
            sold_qty, sold_amount = sales.get(fmt.value, (0, ZERO))
            returned_qty, returned_amount = returns.get(fmt.value, (0, ZERO))
            result[fmt.value] = FormatSales(
                format=fmt.value,
                gross_quantity=sold_qty,
                returned_quantity=returned_qty,
                gross_revenue=to_money(sold_amount),
                returned_revenue=to_money(returned_amount),
            )

        logger.debug(
            f"Aggregated sales for title {title_id} [{period_start}, {period_end}): "
            + ", ".join(f"{k}={v.net_quantity}" for k, v in result.items())
        )
        return result

    async def lifetime_quantities_before(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        title_id: UUID,
        before: date,
    ) -> Dict[str, int]:
        """
        Cumulative net units per format sold before a date.

        Used by lifetime tier mode to position a period's units on the
        tier bands after everything sold earlier.
        """
        sales_query = (
            select(Sale.format, func.coalesce(func.sum(Sale.quantity), 0))
            .where(
                Sale.tenant_id == tenant_id,
                Sale.title_id == title_id,
                Sale.sale_date < before,
            )
            .group_by(Sale.format)
        )
        returns_query = (
            select(SaleReturn.format, func.coalesce(func.sum(SaleReturn.quantity), 0))
            .where(
                SaleReturn.tenant_id == tenant_id,
                SaleReturn.title_id == title_id,
                SaleReturn.status == ReturnStatus.APPROVED,
                SaleReturn.return_date < before,
            )
            .group_by(SaleReturn.format)
        )

        try:
            sales_rows = (await db.execute(sales_query)).all()
            returns_rows = (await db.execute(returns_query)).all()
        except SQLAlchemyError as e:
            logger.error(f"Lifetime sales lookup failed for title {title_id}: {e}")
            raise AggregationError(
                f"Could not read lifetime sales for title {title_id} before {before}: {e}"
            ) from e

        sold = {_format_key(fmt): int(qty) for fmt, qty in sales_rows}
        returned = {_format_key(fmt): int(qty) for fmt, qty in returns_rows}

        return {
            fmt.value: max(sold.get(fmt.value, 0) - returned.get(fmt.value, 0), 0)
            for fmt in SalesFormat
        }


# Default aggregator instance
sales_aggregator = SalesAggregator()
