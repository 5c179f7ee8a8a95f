"""
Pharmacy ERP backend: combo lot allocation and POS sale settlement.

ARCHITECTURE:
- FastAPI: HTTP surface for the POS and back-office screens
- SQLAlchemy: ledger, inventory, lots and combos (SQLite by default)
- Groq: optional supplier invoice extraction, always reviewed by the operator

The allocation workflow never writes on its own; settlement writes the ledger
entry first and compensates it if the inventory batch fails.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pharma_erp.api.routes import ai, allocations, combos, lots, sales, transactions
from pharma_erp.core.config import settings
from pharma_erp.core.logging_config import setup_logging
from pharma_erp.db.init_db import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    1. Configure logging
    2. Create tables and the default fund / warehouse
    """
    setup_logging()
    logger.info("Initializing database...")
    init_db()
    logger.info(f"Database initialized ({settings.ENVIRONMENT})")

    yield

    logger.info("Shutting down")


app = FastAPI(
    title="Pharma ERP API",
    description="Combo lot allocation, POS settlement, lots and ledger.",
    version="0.1.0",
    lifespan=lifespan,
)

# SECURITY: Restrict CORS to specific origins, methods and headers (not wildcards)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
    ],
    max_age=600,
)

app.include_router(allocations.router, prefix="/allocations", tags=["allocations"])
app.include_router(sales.router, prefix="/sales", tags=["sales"])
app.include_router(combos.router, prefix="/combos", tags=["combos"])
app.include_router(lots.router, prefix="/lots", tags=["lots"])
app.include_router(transactions.router, prefix="/transactions", tags=["transactions"])
app.include_router(ai.router, prefix="/ai", tags=["ai"])


@app.get("/health")
def health():
    return {"status": "ok", "environment": settings.ENVIRONMENT}
