"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api import accounts, balances, history
from database import init_db
from logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Ensure the history log table exists on startup."""
    init_db()
    yield


app = FastAPI(
    title="Brokerage Ledger",
    description="Brokerage balance aggregation and daily value history",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(accounts.router)
app.include_router(balances.router)
app.include_router(history.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
