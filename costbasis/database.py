#!/usr/bin/env python
"""
costbasis/database.py

SQLAlchemy engine, session factory and declarative Base for the stored
transaction ledger (the transaction source the gains engine reads from).

Key Features:
- DATABASE_URL comes from config (.env or environment), default SQLite file
- get_db() for FastAPI dependency injection
- UTCDateTime keeps timestamps offset-aware UTC when stored in SQLite
- DecimalText stores amounts and prices as exact decimal text
- create_tables() is idempotent and safe to call at every startup
"""

import os
import logging
import datetime
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.types import TypeDecorator, String

from costbasis import config

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# 1) Engine and Session Setup
# ------------------------------------------------------------------
DATABASE_URL = config.DATABASE_URL

if DATABASE_URL.startswith("sqlite:///"):
    db_dir = os.path.dirname(DATABASE_URL.replace("sqlite:///", "", 1))
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir)
        logger.debug(f"Created directory for database: {db_dir}")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)
logger.debug(f"SQLAlchemy engine created for {DATABASE_URL}")

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# ------------------------------------------------------------------
# 2) Custom UTC DateTime for SQLite
# ------------------------------------------------------------------
class UTCDateTime(TypeDecorator):
    """
    Stores Python datetime objects as ISO8601 strings with 'Z' in SQLite,
    ensuring they are read back as offset-aware UTC datetimes.
    """
    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        """Convert Python datetime -> string before saving to DB."""
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        else:
            value = value.astimezone(datetime.timezone.utc)
        return value.isoformat().replace("+00:00", "Z")

    def process_result_value(self, value, dialect):
        """Convert string -> Python datetime (UTC) after fetching from DB."""
        if value is None:
            return None
        value = value.replace("Z", "+00:00")
        return datetime.datetime.fromisoformat(value)


class DecimalText(TypeDecorator):
    """
    Stores Decimal values as their exact text so quantities and prices come
    back digit for digit (SQLite NUMERIC would round-trip through float).
    """
    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return format(Decimal(str(value)), "f")

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


# ------------------------------------------------------------------
# 3) FastAPI Dependency Injection
# ------------------------------------------------------------------
def get_db():
    """
    Provides a DB session for FastAPI routes. Yields a SessionLocal instance
    and closes it after use to prevent leaks.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ------------------------------------------------------------------
# 4) Table Initialization
# ------------------------------------------------------------------
def create_tables():
    """
    Creates any missing tables. Existing data is left untouched.
    """
    # Import models so they register with Base.metadata
    from costbasis.models import transaction  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created or verified.")


if __name__ == "__main__":
    create_tables()
