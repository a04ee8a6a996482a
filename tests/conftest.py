"""
Pytest fixtures for the royalty engine test suite.

Provides:
- A fresh SQLite (aiosqlite) database file per test
- A Seeder for authors, titles, contracts, authorships, sales and returns
- Service instances bound to the test database
- An httpx AsyncClient over the FastAPI app

Environment variables are set before the application package is imported
so the module-level engine never points at PostgreSQL during tests.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./royalty_engine_test.db")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Tuple
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from royalty_engine.core.database import Base, get_db
from royalty_engine.models import (
    Author,
    Contract,
    ContractStatus,
    ContractTier,
    ReturnStatus,
    Sale,
    SaleReturn,
    SalesChannel,
    SalesFormat,
    TierCalculationMode,
    Title,
    TitleAuthorship,
)
from royalty_engine.services.batch_orchestrator import BatchOrchestrator
from royalty_engine.services.statement_assembler import StatementAssembler
from royalty_engine.services.statement_generator import StatementGenerator
from royalty_engine.services.title_royalty import Period

ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}

# (format, min_quantity, max_quantity, rate)
TierSpec = Tuple[str, int, Optional[int], str]

FLAT_TIERS = [("physical", 0, None, "0.10")]
ESCALATING_TIERS = [
    ("physical", 0, 5000, "0.10"),
    ("physical", 5000, None, "0.15"),
]

Q1_2024 = Period(date(2024, 1, 1), date(2024, 4, 1))
Q2_2024 = Period(date(2024, 4, 1), date(2024, 7, 1))


class Seeder:
    """Inserts test data, each row in its own committed session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], tenant_id: UUID):
        self.session_factory = session_factory
        self.tenant_id = tenant_id

    async def _add(self, obj):
        async with self.session_factory() as db:
            db.add(obj)
            await db.commit()
        return obj

    async def author(self, name: str = "Jane Author") -> Author:
        return await self._add(Author(tenant_id=self.tenant_id, name=name))

    async def title(self, name: str = "A Novel") -> Title:
        return await self._add(Title(tenant_id=self.tenant_id, title=name))

    async def contract(
        self,
        author: Author,
        title: Title,
        tiers: Iterable[TierSpec] = FLAT_TIERS,
        advance_amount: str = "0",
        advance_recouped: str = "0",
        status: ContractStatus = ContractStatus.ACTIVE,
        mode: TierCalculationMode = TierCalculationMode.PERIOD,
    ) -> Contract:
        contract = Contract(
            tenant_id=self.tenant_id,
            author_id=author.id,
            title_id=title.id,
            advance_amount=Decimal(advance_amount),
            advance_paid=Decimal(advance_amount),
            advance_recouped=Decimal(advance_recouped),
            status=status,
            tier_calculation_mode=mode,
            tiers=[
                ContractTier(
                    format=SalesFormat(fmt),
                    min_quantity=min_qty,
                    max_quantity=max_qty,
                    rate=Decimal(rate),
                )
                for fmt, min_qty, max_qty, rate in tiers
            ],
        )
        return await self._add(contract)

    async def authorship(
        self,
        title: Title,
        author: Author,
        percentage: str,
        is_primary: bool = False,
        is_active: bool = True,
    ) -> TitleAuthorship:
        return await self._add(
            TitleAuthorship(
                title_id=title.id,
                author_id=author.id,
                ownership_percentage=Decimal(percentage),
                is_primary=is_primary,
                is_active=is_active,
            )
        )

    async def sale(
        self,
        title: Title,
        quantity: int,
        sale_date: date,
        format: str = "physical",
        unit_price: str = "10.00",
    ) -> Sale:
        price = Decimal(unit_price)
        return await self._add(
            Sale(
                tenant_id=self.tenant_id,
                title_id=title.id,
                format=SalesFormat(format),
                channel=SalesChannel.RETAIL,
                quantity=quantity,
                unit_price=price,
                total_amount=price * quantity,
                sale_date=sale_date,
            )
        )

    async def sale_return(
        self,
        title: Title,
        quantity: int,
        return_date: date,
        format: str = "physical",
        status: ReturnStatus = ReturnStatus.APPROVED,
        unit_price: str = "10.00",
    ) -> SaleReturn:
        return await self._add(
            SaleReturn(
                tenant_id=self.tenant_id,
                title_id=title.id,
                format=SalesFormat(format),
                quantity=quantity,
                total_amount=Decimal(unit_price) * quantity,
                return_date=return_date,
                status=status,
            )
        )


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'royalties.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def seed(session_factory, tenant_id) -> Seeder:
    return Seeder(session_factory, tenant_id)


@pytest.fixture
def assembler(session_factory) -> StatementAssembler:
    return StatementAssembler(session_factory=session_factory)


@pytest.fixture
def generator(session_factory) -> StatementGenerator:
    return StatementGenerator(session_factory=session_factory)


@pytest.fixture
def orchestrator(generator) -> BatchOrchestrator:
    return BatchOrchestrator(generator=generator, max_concurrency=4)


@pytest.fixture
async def client(session_factory, generator):
    from royalty_engine.main import app
    from royalty_engine.routers.statements import get_statement_generator

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_statement_generator] = lambda: generator

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
