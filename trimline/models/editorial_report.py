"""
Editorial report model.

Holds the per-chapter findings of an editorial pass over a book. Only the
chapter results are read here, as issue context for prioritising cuts.
"""

import uuid

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.sql import func

from trimline.db.base import Base


class EditorialReport(Base):
    """Editorial analysis of a book."""

    __tablename__ = "editorial_reports"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    book_id = Column(String(64), nullable=False, index=True)
    status = Column(String(50), default="pending")  # pending, completed, failed

    # [{chapterId, chapterNumber, scenePurpose, expositionIssues, pacingIssues}, ...]
    chapter_results = Column(JSON, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True))
