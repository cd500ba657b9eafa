"""
Chapter model for book content.
"""

import uuid

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from trimline.db.base import Base


class Chapter(Base):
    """A chapter of a book as supplied by the manuscript store."""

    __tablename__ = "chapters"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    book_id = Column(String(64), nullable=False, index=True)
    chapter_number = Column(Integer, nullable=False)
    title = Column(String(500))

    # Content
    content = Column(Text)  # Plain prose
    word_count = Column(Integer, default=0)

    # Status tracking
    status = Column(String(50), default="draft")  # draft, completed

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
