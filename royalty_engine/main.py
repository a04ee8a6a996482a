"""
Royalty Engine - FastAPI Application

Author royalty statements for publishers: tiered rates, advance
recoupment and co-author splits.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from royalty_engine.core.config import settings
from royalty_engine.core.database import engine, Base
from royalty_engine.routers.contracts import router as contracts_router
from royalty_engine.routers.statements import router as statements_router, authors_router as statements_authors_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Create tables on startup (for development; production uses alembic)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield
    # Cleanup on shutdown
    await engine.dispose()


app = FastAPI(
    title="Royalty Engine",
    description="Author royalty statement generation",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(statements_router)
app.include_router(statements_authors_router)
app.include_router(contracts_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
