"""API Dependencies for dependency injection."""

from collections.abc import Generator
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from trimline.db.base import SessionLocal
from trimline.services.condenser import ContentCondenser, LLMContentCondenser
from trimline.services.word_count_revision import WordCountRevisionService

_condenser: Optional[ContentCondenser] = None


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_condenser() -> ContentCondenser:
    """Shared model-backed condenser, created on first use."""
    global _condenser
    if _condenser is None:
        _condenser = LLMContentCondenser()
    return _condenser


def get_revision_service(
    db: Session = Depends(get_db),
    condenser: ContentCondenser = Depends(get_condenser),
) -> WordCountRevisionService:
    return WordCountRevisionService.for_session(db, condenser)
