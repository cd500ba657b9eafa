"""
Revision controller.

Starts and ends word count revisions and derives their progress. A book has
at most one active revision; the ``active_book_id`` unique column is the
ownership record, so two concurrent starts cannot both succeed.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from trimline.core.config import settings
from trimline.core.errors import (
    ActiveRevisionExistsError,
    RevisionNotFoundError,
    RevisionStateError,
    RevisionValidationError,
)
from trimline.models.chapter_proposal import (
    ChapterReductionProposal,
    ProposalStatus,
    UserDecision,
)
from trimline.models.word_count_revision import (
    ACTIVE_REVISION_STATUSES,
    RevisionStatus,
    WordCountRevision,
)
from trimline.schemas.word_count_revision import CompletionValidation, RevisionProgress
from trimline.services.chapter_source import ChapterSource
from trimline.services.locks import RevisionLockRegistry, get_revision_locks
from trimline.services.priority import calculate_priority_score
from trimline.services.targets import ChapterWeight, apportion_cuts
from trimline.services.tolerance import (
    percent_complete,
    tolerance_band,
    words_to_cut,
)

logger = logging.getLogger(__name__)


class RevisionService:
    """Lifecycle and progress of word count revisions."""

    def __init__(
        self,
        db: Session,
        chapter_source: ChapterSource,
        locks: Optional[RevisionLockRegistry] = None,
    ):
        self.db = db
        self.chapter_source = chapter_source
        self.locks = locks if locks is not None else get_revision_locks()

    def get_revision(self, revision_id: str) -> WordCountRevision:
        revision = (
            self.db.query(WordCountRevision)
            .filter(WordCountRevision.id == revision_id)
            .first()
        )
        if revision is None:
            raise RevisionNotFoundError(revision_id)
        return revision

    def get_active_revision(self, book_id: str) -> Optional[WordCountRevision]:
        return (
            self.db.query(WordCountRevision)
            .filter(
                WordCountRevision.book_id == book_id,
                WordCountRevision.status.in_(ACTIVE_REVISION_STATUSES),
            )
            .order_by(WordCountRevision.created_at.desc())
            .first()
        )

    def start_revision(
        self,
        book_id: str,
        target_word_count: int,
        tolerance_percent: Optional[float] = None,
        force_restart: bool = False,
    ) -> WordCountRevision:
        """
        Start a revision and create one pending proposal per chapter.

        Args:
            book_id: Book to revise
            target_word_count: Word count the book should end up near
            tolerance_percent: Allowed deviation either side; defaults to
                ``DEFAULT_TOLERANCE_PERCENT``
            force_restart: Abandon the book's active revision instead of failing

        Raises:
            RevisionValidationError: bad target or tolerance, or no chapters
            ActiveRevisionExistsError: the book already has an active revision
        """
        if target_word_count is None or target_word_count <= 0:
            raise RevisionValidationError("Target word count must be a positive integer")

        if tolerance_percent is None:
            tolerance_percent = settings.DEFAULT_TOLERANCE_PERCENT
        if tolerance_percent < 0 or tolerance_percent > settings.MAX_TOLERANCE_PERCENT:
            raise RevisionValidationError(
                f"Tolerance must be between 0 and {settings.MAX_TOLERANCE_PERCENT:g} percent"
            )

        existing = self.get_active_revision(book_id)
        if existing is not None and not force_restart:
            raise ActiveRevisionExistsError(book_id, existing.id)

        book = self.chapter_source.load_book(book_id)
        if not book.chapters:
            raise RevisionValidationError(f"Book {book_id} has no completed chapters to revise")

        original_word_count = book.total_word_count
        band = tolerance_band(target_word_count, tolerance_percent)
        cut = words_to_cut(original_word_count, target_word_count)

        scores = [calculate_priority_score(ch.issues) for ch in book.chapters]
        targets = apportion_cuts(
            [
                ChapterWeight(ch.chapter_id, ch.word_count, score)
                for ch, score in zip(book.chapters, scores)
            ],
            cut,
            settings.MAX_CHAPTER_CUT_PERCENT,
        )

        # Only replace the old revision once the new one is known to be valid
        if existing is not None:
            logger.info("Force restart: abandoning revision %s for book %s", existing.id, book_id)
            self.abandon_revision(existing.id)

        revision = WordCountRevision(
            book_id=book_id,
            active_book_id=book_id,
            editorial_report_id=book.editorial_report_id,
            original_word_count=original_word_count,
            current_word_count=original_word_count,
            target_word_count=target_word_count,
            tolerance_percent=tolerance_percent,
            min_acceptable=band.min_acceptable,
            max_acceptable=band.max_acceptable,
            words_to_cut=cut,
            status=RevisionStatus.READY,
            chapters_total=len(book.chapters),
            chapters_reviewed=0,
            words_cut_so_far=0,
        )

        try:
            self.db.add(revision)
            self.db.flush()

            for chapter, score, target in zip(book.chapters, scores, targets):
                self.db.add(
                    ChapterReductionProposal(
                        revision_id=revision.id,
                        chapter_id=chapter.chapter_id,
                        chapter_number=chapter.chapter_number,
                        chapter_title=chapter.title,
                        original_content=chapter.content,
                        original_word_count=chapter.word_count,
                        target_word_count=target.target_word_count,
                        reduction_percent=round(target.reduction_percent, 2),
                        priority_score=score,
                        issues=chapter.issues.model_dump() if chapter.issues else None,
                        status=ProposalStatus.PENDING,
                        user_decision=UserDecision.PENDING,
                    )
                )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Concurrent start for book %s lost the race: %s", book_id, e.orig)
            raise ActiveRevisionExistsError(book_id) from e
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(revision)
        logger.info(
            "Started revision %s for book %s: %d -> %d words (%d to cut, %d chapters)",
            revision.id,
            book_id,
            original_word_count,
            target_word_count,
            cut,
            revision.chapters_total,
        )
        return revision

    def abandon_revision(self, revision_id: str) -> WordCountRevision:
        """Stop a revision and release the book's active slot."""
        with self.locks.hold(revision_id):
            revision = self.get_revision(revision_id)
            if not revision.is_active:
                raise RevisionStateError(
                    f"Revision {revision_id} is already {revision.status.value}"
                )

            revision.status = RevisionStatus.ABANDONED
            revision.active_book_id = None
            revision.updated_at = datetime.now(timezone.utc)
            try:
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise
            self.db.refresh(revision)

            logger.info("Revision %s abandoned", revision_id)
            return revision

    def get_progress(self, revision_id: str) -> RevisionProgress:
        """Derived progress. Read-only."""
        revision = self.get_revision(revision_id)
        band = tolerance_band(revision.target_word_count, revision.tolerance_percent)
        current = revision.current_word_count
        within = band.contains(current)

        return RevisionProgress(
            revision_id=revision.id,
            current_word_count=current,
            target_word_count=revision.target_word_count,
            words_to_cut=revision.words_to_cut,
            words_reduced=revision.words_cut_so_far,
            words_remaining=words_to_cut(current, revision.target_word_count),
            percent_complete=percent_complete(revision.words_cut_so_far, revision.words_to_cut),
            chapters_reviewed=revision.chapters_reviewed,
            chapters_total=revision.chapters_total,
            min_acceptable=band.min_acceptable,
            max_acceptable=band.max_acceptable,
            is_within_tolerance=within,
            is_complete=revision.words_to_cut == 0 or within,
        )

    def validate_completion(self, revision_id: str) -> CompletionValidation:
        revision = self.get_revision(revision_id)
        band = tolerance_band(revision.target_word_count, revision.tolerance_percent)
        current = revision.current_word_count
        status = band.classify(current)

        return CompletionValidation(
            is_valid=status == "within_tolerance",
            current_word_count=current,
            target_word_count=revision.target_word_count,
            min_acceptable=band.min_acceptable,
            max_acceptable=band.max_acceptable,
            words_remaining=words_to_cut(current, revision.target_word_count),
            status=status,
        )
