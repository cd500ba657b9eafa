"""
Chapter source.

Supplies the chapters of a book when a revision starts, together with any
editorial issue context, and receives condensed text when a proposal is
approved. ``DatabaseChapterSource`` reads the ``chapters`` and
``editorial_reports`` tables.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from trimline.models.chapter import Chapter
from trimline.models.editorial_report import EditorialReport
from trimline.schemas.word_count_revision import IssueContext

logger = logging.getLogger(__name__)


@dataclass
class ChapterSnapshot:
    """A chapter as it stood when the revision started."""
    chapter_id: str
    chapter_number: int
    title: Optional[str]
    word_count: int
    content: str
    issues: Optional[IssueContext] = None


@dataclass
class BookSnapshot:
    """Every chapter of a book plus the report the issues came from."""
    book_id: str
    chapters: list[ChapterSnapshot]
    editorial_report_id: Optional[str] = None

    @property
    def total_word_count(self) -> int:
        return sum(ch.word_count for ch in self.chapters)


class ChapterSource(ABC):
    """Where chapter text comes from and where approved cuts go."""

    @abstractmethod
    def load_book(self, book_id: str) -> BookSnapshot:
        """Snapshot the book's chapters in chapter order."""

    @abstractmethod
    def apply_condensed(self, chapter_id: str, content: str, word_count: int) -> None:
        """Store approved condensed text for a chapter."""


def extract_chapter_issues(
    chapter_results: Optional[list],
    chapter_id: str,
    chapter_number: int,
) -> Optional[IssueContext]:
    """
    Find one chapter's issues in an editorial report's chapter results.

    Matches on chapter id first, then on chapter number.
    """
    if not chapter_results:
        return None

    match = next(
        (r for r in chapter_results if isinstance(r, dict) and r.get("chapterId") == chapter_id),
        None,
    )
    if match is None:
        match = next(
            (
                r
                for r in chapter_results
                if isinstance(r, dict) and r.get("chapterNumber") == chapter_number
            ),
            None,
        )
    if match is None:
        return None

    try:
        return IssueContext.model_validate(match)
    except ValidationError as e:
        logger.warning("Ignoring malformed editorial result for chapter %s: %s", chapter_id, e)
        return None


class DatabaseChapterSource(ChapterSource):
    """Chapter source backed by the ``chapters`` table."""

    COMPLETED_STATUS = "completed"

    def __init__(self, db: Session):
        self.db = db

    def _latest_report(self, book_id: str) -> Optional[EditorialReport]:
        return (
            self.db.query(EditorialReport)
            .filter(
                EditorialReport.book_id == book_id,
                EditorialReport.status == "completed",
            )
            .order_by(EditorialReport.completed_at.desc(), EditorialReport.created_at.desc())
            .first()
        )

    def load_book(self, book_id: str) -> BookSnapshot:
        chapters = (
            self.db.query(Chapter)
            .filter(Chapter.book_id == book_id, Chapter.status == self.COMPLETED_STATUS)
            .order_by(Chapter.chapter_number.asc())
            .all()
        )
        report = self._latest_report(book_id)
        chapter_results = report.chapter_results if report else None

        snapshots = [
            ChapterSnapshot(
                chapter_id=chapter.id,
                chapter_number=chapter.chapter_number,
                title=chapter.title,
                word_count=chapter.word_count or 0,
                content=chapter.content or "",
                issues=extract_chapter_issues(
                    chapter_results, chapter.id, chapter.chapter_number
                ),
            )
            for chapter in chapters
        ]
        return BookSnapshot(
            book_id=book_id,
            chapters=snapshots,
            editorial_report_id=report.id if report else None,
        )

    def apply_condensed(self, chapter_id: str, content: str, word_count: int) -> None:
        chapter = self.db.query(Chapter).filter(Chapter.id == chapter_id).first()
        if chapter is None:
            logger.warning("Chapter %s no longer exists; condensed text not written back", chapter_id)
            return
        chapter.content = content
        chapter.word_count = word_count
