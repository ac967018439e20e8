"""SQLAlchemy engine construction and schema bootstrap for accounts and saved cities."""

from __future__ import annotations

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from utils.logging_utils import get_tagged_logger, mask_db_url

logger = get_tagged_logger(__name__, tag="database")

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id VARCHAR(36) PRIMARY KEY,
        email VARCHAR(320) NOT NULL UNIQUE,
        password_hash VARCHAR(255) NOT NULL,
        created_at VARCHAR(40) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS saved_cities (
        id VARCHAR(36) PRIMARY KEY,
        user_id VARCHAR(36) NOT NULL,
        city_name VARCHAR(255) NOT NULL,
        country VARCHAR(8),
        weather_data TEXT NOT NULL,
        last_updated VARCHAR(40) NOT NULL,
        UNIQUE (user_id, city_name)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_saved_cities_user ON saved_cities (user_id)",
)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections may be used from worker threads."""
    kwargs: dict = {"future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
    logger.info("Creating database engine", extra={"db_url": mask_db_url(database_url)})
    return create_engine(database_url, **kwargs)


def init_schema(engine: Engine) -> None:
    """Create the tables if they do not exist yet."""
    with engine.begin() as conn:
        for statement in SCHEMA_STATEMENTS:
            conn.execute(text(statement))
    logger.debug("Database schema ready")
