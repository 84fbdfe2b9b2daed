#!/usr/bin/env python
"""
costbasis/main.py

Sets up the FastAPI application for the cost basis engine.

Key Roles:
 - Configures logging from LOG_LEVEL
 - Adds CORS middleware for frontend integration
 - Includes the 'gains' and 'transaction' routers
 - Creates the ledger tables at startup

Run with: uvicorn costbasis.main:app --reload
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from costbasis import config
from costbasis.database import create_tables
from costbasis.routers import gains, transaction

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# Initialize the FastAPI application
# ---------------------------------------------------------
app = FastAPI(
    title="Cost Basis API",
    description=(
        "Realized gains/losses with FIFO, LIFO and average cost lot matching. "
        "Holdings snapshots and CSV/PDF report export."
    ),
    version="1.0",
    redirect_slashes=True,
)

# ---------------------------------------------------------
# CORS Middleware
# ---------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------
# Database: Create Tables at Startup
# ---------------------------------------------------------
@app.on_event("startup")
def startup_event():
    """
    Ensures tables exist when FastAPI starts. Idempotent.
    """
    logger.info("Running create_tables() at startup...")
    create_tables()
    logger.info("Database tables created or verified.")


# ---------------------------------------------------------
# Routers
# ---------------------------------------------------------
app.include_router(gains.router, prefix="/api/gains", tags=["gains"])
app.include_router(transaction.router, prefix="/api/clients", tags=["transactions"])


# ---------------------------------------------------------
# Root Route
# ---------------------------------------------------------
@app.get("/")
def read_root():
    """
    Basic root path to confirm the API is running.
    """
    return {
        "message": "Cost basis engine ready",
        "default_method": config.DEFAULT_COST_BASIS_METHOD,
    }
