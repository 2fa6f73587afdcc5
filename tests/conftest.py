import os

# Set before main is imported: the limiter reads them at import time.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT", "5/minute")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

import main
from models.tables import ExpenseRow
from services.ledger import Ledger
from utils.database import create_db_engine, create_schema


@pytest.fixture
def engine(tmp_path):
    """A file-backed SQLite engine with the expenses table provisioned."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def ledger(engine):
    return Ledger(engine)


@pytest.fixture
def count_rows(engine):
    def _count():
        with engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(ExpenseRow)).scalar_one()
    return _count


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Runs the app lifespan against a fresh database file."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'api.db'}")
    with TestClient(main.app) as test_client:
        yield test_client
