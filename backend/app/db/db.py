import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Card catalog database (SQLite by default)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./card_catalog.db")


def build_engine(url: str) -> Engine:
    """Create an engine; SQLite gets thread-safe args and in-memory DBs share one connection."""
    if not url.startswith("sqlite"):
        return create_engine(url)
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, connect_args={"check_same_thread": False})


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def init_db(bind: Engine | None = None) -> None:
    """Create the catalog tables if they do not exist yet."""
    # Register every mapped table before create_all
    import app.models  # noqa: F401

    target = bind or engine
    Base.metadata.create_all(bind=target)
    logger.info("Catalog tables ready on %s", target.url)
