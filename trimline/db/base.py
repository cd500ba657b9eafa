"""
Database base configuration and session management.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from trimline.core.config import settings


def _engine_kwargs(url: str) -> dict:
    """SQLite needs cross-thread access for the FastAPI threadpool; others get a pool."""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


# Create database engine
engine = create_engine(
    settings.DATABASE_URL,
    echo=False,  # Set to True for SQL debugging
    **_engine_kwargs(settings.DATABASE_URL),
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()


def init_db(bind=None) -> None:
    """Create any missing tables."""
    # Registers every model on Base.metadata
    import trimline.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
