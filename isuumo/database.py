"""Database engines and session management.

Chairs and estates live in two independent stores; each gets its own
engine and session factory, owned by the application context.
"""
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base

from isuumo.config import Settings, settings as default_settings
from isuumo.errors import StoreFailure
from isuumo.logging_config import get_logger


logger = get_logger(__name__)

# Base class for models
Base = declarative_base()


def store_connect_args(url: str, settings: Settings = default_settings) -> dict:
    """DBAPI connect arguments; PostgreSQL sessions get a statement timeout."""
    timeout_ms = settings.DB_STATEMENT_TIMEOUT_MS
    if make_url(url).get_backend_name() != "postgresql" or timeout_ms <= 0:
        return {}
    return {"options": f"-c statement_timeout={timeout_ms}"}


def create_store_engine(url: str, settings: Settings = default_settings) -> Engine:
    """Create a pooled engine for one of the two stores."""
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=settings.DB_POOL_RECYCLE,
        connect_args=store_connect_args(url, settings),
    )


@contextmanager
def store_errors(operation: str):
    """Translate SQLAlchemy errors raised inside the block into StoreFailure."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("%s DB execution error : %s", operation, exc)
        raise StoreFailure(f"{operation} failed") from exc
