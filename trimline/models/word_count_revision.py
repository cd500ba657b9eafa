"""
Word count revision model.

A revision is one attempt to bring a book inside a target word count band.
A book has at most one active revision: ``active_book_id`` holds the book id
while the revision is active and is cleared when it completes or is
abandoned, and the unique constraint on it enforces the rule in the database.
"""

import enum
import uuid

from sqlalchemy import Column, DateTime, Enum, Float, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from trimline.db.base import Base


def prefixed_id(prefix: str) -> str:
    """Short readable id such as ``wcr_1a2b3c4d5e6f``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class RevisionStatus(enum.Enum):
    """Revision status enumeration."""

    READY = "ready"  # Proposals created, nothing decided yet
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"  # Every chapter approved or rejected
    ABANDONED = "abandoned"


ACTIVE_REVISION_STATUSES = (RevisionStatus.READY, RevisionStatus.IN_PROGRESS)


class WordCountRevision(Base):
    """Word count revision session for a book."""

    __tablename__ = "word_count_revisions"

    id = Column(String(32), primary_key=True, default=lambda: prefixed_id("wcr"))
    book_id = Column(String(64), nullable=False, index=True)
    active_book_id = Column(String(64), unique=True, nullable=True)
    editorial_report_id = Column(String(36))

    # Word counts
    original_word_count = Column(Integer, nullable=False)
    current_word_count = Column(Integer, nullable=False)
    target_word_count = Column(Integer, nullable=False)
    tolerance_percent = Column(Float, nullable=False)
    min_acceptable = Column(Integer, nullable=False)
    max_acceptable = Column(Integer, nullable=False)
    words_to_cut = Column(Integer, nullable=False)  # Fixed at start

    # Progress
    status = Column(
        Enum(RevisionStatus, values_callable=lambda obj: [e.value for e in obj]),
        default=RevisionStatus.READY,
        nullable=False,
    )
    chapters_total = Column(Integer, default=0)
    chapters_reviewed = Column(Integer, default=0)
    words_cut_so_far = Column(Integer, default=0)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True))

    # Relationships
    proposals = relationship(
        "ChapterReductionProposal",
        back_populates="revision",
        order_by="ChapterReductionProposal.chapter_number",
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_REVISION_STATUSES
