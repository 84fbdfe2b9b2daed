"""
costbasis/config.py

Runtime settings, loaded from a .env file at the project root and then from
the process environment. Anything that is a tax policy (e.g. the long-term
threshold) lives in constants.py instead and is not configurable.
"""

import os
from dotenv import load_dotenv

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BASE_DIR)

dotenv_path = os.path.join(PROJECT_ROOT, ".env")
load_dotenv(dotenv_path=dotenv_path)

# ------------------------------------------------------------------
# Engine defaults
# ------------------------------------------------------------------
DEFAULT_COST_BASIS_METHOD = os.getenv("COST_BASIS_DEFAULT_METHOD", "FIFO").strip().upper()

# "reject" raises on a disposal larger than the open lots, "truncate" consumes what exists
OVERSELL_POLICY = os.getenv("COST_BASIS_OVERSELL_POLICY", "reject").strip().lower()

CURRENCY_SYMBOL = os.getenv("COST_BASIS_CURRENCY_SYMBOL", "$")

# ------------------------------------------------------------------
# Service
# ------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_FILE_ENV = os.getenv("DATABASE_FILE", "costbasis/ledger.db")
DATABASE_FILE = (
    DATABASE_FILE_ENV if os.path.isabs(DATABASE_FILE_ENV)
    else os.path.join(PROJECT_ROOT, DATABASE_FILE_ENV)
)
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATABASE_FILE}")

default_origins = (
    "http://127.0.0.1:3000,"
    "http://localhost:3000,"
    "http://127.0.0.1:5173,"
    "http://localhost:5173"
)
raw_origins = os.getenv("CORS_ALLOW_ORIGINS", default_origins)
ALLOWED_ORIGINS = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
