"""Database configuration and session management"""

from datetime import datetime, timezone
from typing import Any, Dict, Generator
import logging

from sqlalchemy import create_engine, text, inspect
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from wordle_identity.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return options
    options = {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_timeout": 30,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }
    if url.startswith("postgresql"):
        # Expiry columns hold naive UTC values.
        options["connect_args"] = {"options": "-c timezone=utc"}
    return options


_database_url = settings.get_database_url()

engine = create_engine(
    _database_url,
    echo=settings.DEBUG,
    **_engine_options(_database_url),
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()

# Import models after Base is defined so metadata is populated.
from wordle_identity import models  # noqa: E402,F401


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored in every expiry column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session

    Yields:
        Session: Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """
    Initialize database according to configured strategy.

    DB_INIT_MODE:
      - migrate: require alembic_version table (migration-first discipline)
      - create_all: legacy behavior for local/dev bootstrap
      - off: skip initialization check
    """
    mode = settings.DB_INIT_MODE.lower().strip()
    if mode == "off":
        logger.info("DB initialization check skipped (DB_INIT_MODE=off)")
        return

    if mode == "create_all":
        Base.metadata.create_all(bind=engine)
        logger.warning("Using create_all database initialization (recommended only for local development).")
        return

    if mode == "migrate":
        with engine.connect() as conn:
            if engine.dialect.name == "postgresql":
                version_table_exists = conn.execute(
                    text("SELECT to_regclass('public.alembic_version')")
                ).scalar()
                exists = bool(version_table_exists)
            elif engine.dialect.name == "sqlite":
                version_table_exists = conn.execute(
                    text(
                        "SELECT name FROM sqlite_master WHERE type='table' AND name='alembic_version'"
                    )
                ).fetchone()
                exists = bool(version_table_exists)
            else:
                exists = "alembic_version" in inspect(conn).get_table_names()
            if settings.DB_REQUIRE_HEAD and not exists:
                raise RuntimeError(
                    "Migration table missing. Run Alembic migrations before starting the API."
                )
        logger.info("Migration metadata detected.")
        return

    raise RuntimeError(f"Unknown DB_INIT_MODE: {settings.DB_INIT_MODE}")
