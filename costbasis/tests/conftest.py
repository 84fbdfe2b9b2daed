"""
Shared pytest fixtures for the cost basis test suite.

Uses FastAPI TestClient with an isolated temporary database so tests
never touch the real ledger database.
"""

import os
import pytest
import tempfile
from datetime import datetime, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from costbasis.database import Base, get_db
from costbasis.main import app
from costbasis.schemas.gains import TransactionInput

# Import all models so Base.metadata knows about them
from costbasis.models.transaction import LedgerTransaction  # noqa: F401


def make_tx(tx_id, when, tx_type, amount, price=None, asset="BTC", fee=None, exchange=None):
    """Build a TransactionInput; 'when' is 'YYYY-MM-DD' or a datetime."""
    if isinstance(when, str):
        when = datetime.strptime(when, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    return TransactionInput(
        id=tx_id,
        timestamp=when,
        type=tx_type,
        asset=asset,
        amount=amount,
        price=price,
        fee=fee,
        exchange=exchange,
    )


@pytest.fixture
def tx():
    """Factory fixture for TransactionInput rows."""
    return make_tx


@pytest.fixture(scope="session")
def test_engine():
    """Create a temporary SQLite database for the entire test session."""
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    engine = create_engine(
        f"sqlite:///{tmp.name}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()
    os.unlink(tmp.name)


@pytest.fixture(scope="session")
def api_client(test_engine):
    """TestClient wired to the isolated test database."""
    TestSessionLocal = sessionmaker(bind=test_engine)

    def override_get_db():
        db = TestSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()

