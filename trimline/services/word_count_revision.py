"""
Word count revision service.

Single entry point for the revision workflow. Wires the revision controller,
the proposal store and the batch orchestrator to one database session,
chapter source and condenser.
"""

from typing import Optional

from sqlalchemy.orm import Session

from trimline.core.errors import NoActiveRevisionError
from trimline.models.chapter_proposal import ChapterReductionProposal
from trimline.models.word_count_revision import WordCountRevision
from trimline.schemas.word_count_revision import (
    BatchResult,
    CompletionValidation,
    RevisionProgress,
)
from trimline.services.batch import BatchOrchestrator, ProgressCallback
from trimline.services.chapter_source import ChapterSource, DatabaseChapterSource
from trimline.services.condenser import ContentCondenser
from trimline.services.locks import RevisionLockRegistry, get_revision_locks
from trimline.services.proposals import ProposalService
from trimline.services.revisions import RevisionService


class WordCountRevisionService:
    """
    Facade over the revision workflow.

    Usage:
        service = WordCountRevisionService.for_session(db, condenser)
        revision = service.start_revision(book_id, target_word_count=80000)
        service.generate_all(revision.id)
        service.approve_all(revision.id)
    """

    def __init__(
        self,
        db: Session,
        condenser: ContentCondenser,
        chapter_source: ChapterSource,
        locks: Optional[RevisionLockRegistry] = None,
    ):
        if locks is None:
            locks = get_revision_locks()
        self.revisions = RevisionService(db, chapter_source, locks)
        self.proposals = ProposalService(db, condenser, chapter_source, locks)
        self.batch = BatchOrchestrator(self.proposals)

    @classmethod
    def for_session(
        cls, db: Session, condenser: ContentCondenser
    ) -> "WordCountRevisionService":
        """Service reading chapters from the database behind ``db``."""
        return cls(db, condenser, DatabaseChapterSource(db))

    # Revisions

    def start_revision(
        self,
        book_id: str,
        target_word_count: int,
        tolerance_percent: Optional[float] = None,
        force_restart: bool = False,
    ) -> WordCountRevision:
        return self.revisions.start_revision(
            book_id, target_word_count, tolerance_percent, force_restart
        )

    def get_revision(self, revision_id: str) -> WordCountRevision:
        return self.revisions.get_revision(revision_id)

    def get_active_revision(self, book_id: str) -> Optional[WordCountRevision]:
        return self.revisions.get_active_revision(book_id)

    def require_active_revision(self, book_id: str) -> WordCountRevision:
        revision = self.revisions.get_active_revision(book_id)
        if revision is None:
            raise NoActiveRevisionError(book_id)
        return revision

    def abandon_revision(self, revision_id: str) -> WordCountRevision:
        return self.revisions.abandon_revision(revision_id)

    def get_progress(self, revision_id: str) -> RevisionProgress:
        return self.revisions.get_progress(revision_id)

    def validate_completion(self, revision_id: str) -> CompletionValidation:
        return self.revisions.validate_completion(revision_id)

    # Proposals

    def list_proposals(self, revision_id: str) -> list[ChapterReductionProposal]:
        return self.proposals.list_proposals(revision_id)

    def get_proposal(self, revision_id: str, chapter_id: str) -> ChapterReductionProposal:
        return self.proposals.get_proposal(revision_id, chapter_id)

    def generate_proposal(self, revision_id: str, chapter_id: str) -> ChapterReductionProposal:
        return self.proposals.generate(revision_id, chapter_id)

    def regenerate_proposal(self, revision_id: str, chapter_id: str) -> ChapterReductionProposal:
        return self.proposals.regenerate(revision_id, chapter_id)

    def approve_proposal(self, revision_id: str, chapter_id: str) -> WordCountRevision:
        return self.proposals.approve(revision_id, chapter_id)

    def reject_proposal(
        self, revision_id: str, chapter_id: str, notes: Optional[str] = None
    ) -> ChapterReductionProposal:
        return self.proposals.reject(revision_id, chapter_id, notes)

    # Batches

    def generate_all(
        self, revision_id: str, on_progress: Optional[ProgressCallback] = None
    ) -> BatchResult:
        return self.batch.generate_all(revision_id, on_progress)

    def approve_all(
        self, revision_id: str, on_progress: Optional[ProgressCallback] = None
    ) -> BatchResult:
        return self.batch.approve_all(revision_id, on_progress)
