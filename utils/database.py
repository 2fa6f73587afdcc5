"""Database configuration: environment-selected URL, engine and schema."""
import os
import logging
from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from models.tables import Base

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URLS = {
    "production": "sqlite:///expenses.db",
    "development": "sqlite:///expenses_dev.db",
    "test": "sqlite:///expenses_test.db",
}

def resolve_database_url(env: Optional[str] = None) -> str:
    """
    Returns DATABASE_URL if set, otherwise the default for the LEDGER_ENV mode.
    """
    explicit_url = os.getenv("DATABASE_URL")
    if explicit_url:
        return explicit_url

    mode = (env or os.getenv("LEDGER_ENV", "production")).lower()
    if mode not in DEFAULT_DATABASE_URLS:
        raise ValueError(f"Unknown LEDGER_ENV '{mode}'. Expected one of: {', '.join(DEFAULT_DATABASE_URLS)}")
    return DEFAULT_DATABASE_URLS[mode]

def create_db_engine(database_url: str) -> Engine:
    """Creates the engine the Ledger writes through."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Route handlers hand Ledger calls to a threadpool.
        connect_args["check_same_thread"] = False
    logger.info(f"Creating database engine for {database_url}")
    return create_engine(database_url, connect_args=connect_args)

def create_schema(engine: Engine) -> None:
    """Provisions the expenses table if it does not exist yet."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ready.")
