"""
Chapter proposal store.

Owns the proposal state machine:

    pending  --generate ok-->   ready
    pending  --generate fails-> error
    error    --generate-->      ready | error
    ready    --approve-->       applied   (counts toward the revision's cut)
    ready    --reject-->        rejected
    ready | rejected | error --regenerate--> pending --> generate

``generating`` marks a condenser call in flight. It is claimed with a
conditional UPDATE, so a second caller cannot start the same generation.
Condenser failures never propagate: they become the ``error`` state. A call
interrupted after the claim still re-raises, but leaves the proposal in
``error`` rather than ``generating``.

The revision completes once every chapter is reviewed and the book is no
longer over its tolerance band.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from trimline.core.errors import (
    CondensationError,
    ProposalNotFoundError,
    ProposalStateError,
    RevisionNotFoundError,
    RevisionStateError,
)
from trimline.models.chapter_proposal import (
    ChapterReductionProposal,
    ProposalStatus,
    UserDecision,
)
from trimline.models.word_count_revision import RevisionStatus, WordCountRevision
from trimline.schemas.word_count_revision import (
    CondensationRequest,
    CondensationResult,
    IssueContext,
)
from trimline.services.chapter_source import ChapterSource
from trimline.services.condenser import ContentCondenser
from trimline.services.locks import RevisionLockRegistry, get_revision_locks
from trimline.services.tolerance import tolerance_band

logger = logging.getLogger(__name__)

GENERATABLE_STATUSES = (ProposalStatus.PENDING, ProposalStatus.ERROR)
REGENERATABLE_STATUSES = (ProposalStatus.READY, ProposalStatus.REJECTED, ProposalStatus.ERROR)
REVIEWED_STATUSES = (ProposalStatus.APPLIED, ProposalStatus.REJECTED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _values(statuses: Iterable[ProposalStatus]) -> list[str]:
    return [s.value for s in statuses]


class ProposalService:
    """
    State transitions for chapter reduction proposals.

    Usage:
        service = ProposalService(db, condenser, chapter_source)
        proposal = service.generate(revision_id, chapter_id)
        revision = service.approve(revision_id, chapter_id)
    """

    def __init__(
        self,
        db: Session,
        condenser: ContentCondenser,
        chapter_source: Optional[ChapterSource] = None,
        locks: Optional[RevisionLockRegistry] = None,
    ):
        self.db = db
        self.condenser = condenser
        self.chapter_source = chapter_source
        self.locks = locks if locks is not None else get_revision_locks()

    # ─────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────

    def get_revision(self, revision_id: str) -> WordCountRevision:
        revision = (
            self.db.query(WordCountRevision)
            .filter(WordCountRevision.id == revision_id)
            .first()
        )
        if revision is None:
            raise RevisionNotFoundError(revision_id)
        return revision

    def get_active_revision(self, revision_id: str) -> WordCountRevision:
        revision = self.get_revision(revision_id)
        if not revision.is_active:
            raise RevisionStateError(
                f"Revision {revision_id} is {revision.status.value}, not active"
            )
        return revision

    def get_proposal(self, revision_id: str, chapter_id: str) -> ChapterReductionProposal:
        self.get_revision(revision_id)
        proposal = (
            self.db.query(ChapterReductionProposal)
            .filter(
                ChapterReductionProposal.revision_id == revision_id,
                ChapterReductionProposal.chapter_id == chapter_id,
            )
            .first()
        )
        if proposal is None:
            raise ProposalNotFoundError(revision_id, chapter_id)
        return proposal

    def list_proposals(
        self,
        revision_id: str,
        statuses: Optional[Iterable[ProposalStatus]] = None,
    ) -> list[ChapterReductionProposal]:
        """Proposals in processing order: highest priority first, then chapter order."""
        self.get_revision(revision_id)
        query = self.db.query(ChapterReductionProposal).filter(
            ChapterReductionProposal.revision_id == revision_id
        )
        if statuses is not None:
            query = query.filter(ChapterReductionProposal.status.in_(list(statuses)))
        return query.order_by(
            ChapterReductionProposal.priority_score.desc(),
            ChapterReductionProposal.chapter_number.asc(),
        ).all()

    # ─────────────────────────────────────────────────────────────────────
    # Transitions
    # ─────────────────────────────────────────────────────────────────────

    def generate(self, revision_id: str, chapter_id: str) -> ChapterReductionProposal:
        """
        Ask the condenser for a shorter version of the chapter.

        Returns the proposal in ``ready`` on success or ``error`` on any
        condenser failure. Does not touch the revision's counters.

        Raises:
            ProposalStateError: proposal is not pending or error
            RevisionStateError: revision is completed or abandoned
        """
        with self.locks.hold(revision_id):
            self.get_active_revision(revision_id)
            proposal = self.get_proposal(revision_id, chapter_id)
            self._claim_for_generation(proposal)

            logger.info(
                "Generating condensation proposal revision=%s chapter=%s target=%d",
                revision_id,
                chapter_id,
                proposal.target_word_count,
            )

            try:
                try:
                    result = self.condenser.condense(self._build_request(proposal))
                    self._check_result(proposal, result)
                except CondensationError as e:
                    return self._mark_error(proposal, str(e))
                except Exception as e:
                    logger.exception("Condenser crashed for proposal %s", proposal.id)
                    return self._mark_error(proposal, f"Unexpected condensation failure: {e}")

                return self._mark_ready(proposal, result)
            except BaseException:
                self._release_claim(proposal.id)
                raise

    def regenerate(self, revision_id: str, chapter_id: str) -> ChapterReductionProposal:
        """Discard the current proposal text or error and generate again."""
        with self.locks.hold(revision_id):
            revision = self.get_active_revision(revision_id)
            proposal = self.get_proposal(revision_id, chapter_id)
            if proposal.status not in REGENERATABLE_STATUSES:
                raise ProposalStateError(
                    "regenerate", proposal.status.value, _values(REGENERATABLE_STATUSES)
                )

            proposal.status = ProposalStatus.PENDING
            proposal.clear_condensation()
            proposal.user_decision = UserDecision.PENDING
            proposal.user_notes = None
            proposal.decision_at = None
            proposal.error_message = None
            proposal.input_tokens = 0
            proposal.output_tokens = 0
            self._refresh_revision_counters(revision)
            self._commit()
            logger.info("Reset proposal %s for regeneration", proposal.id)

            return self.generate(revision_id, chapter_id)

    def approve(self, revision_id: str, chapter_id: str) -> WordCountRevision:
        """
        Apply a ready proposal and fold its reduction into the revision.

        Status change, chapter write-back and counter update commit together.
        A second approve on the same chapter fails on the status guard.
        """
        with self.locks.hold(revision_id):
            revision = self.get_active_revision(revision_id)
            proposal = self.get_proposal(revision_id, chapter_id)
            if proposal.status != ProposalStatus.READY:
                raise ProposalStateError(
                    "approve", proposal.status.value, [ProposalStatus.READY.value]
                )

            proposal.status = ProposalStatus.APPLIED
            proposal.user_decision = UserDecision.APPROVED
            proposal.decision_at = _utcnow()

            if self.chapter_source is not None:
                self.chapter_source.apply_condensed(
                    proposal.chapter_id,
                    proposal.condensed_content,
                    proposal.condensed_word_count,
                )

            self._refresh_revision_counters(revision)
            self._commit()
            self.db.refresh(revision)

            logger.info(
                "Approved proposal %s: -%d words, revision %s now at %d (%d/%d reviewed)",
                proposal.id,
                proposal.actual_reduction,
                revision.id,
                revision.current_word_count,
                revision.chapters_reviewed,
                revision.chapters_total,
            )
            return revision

    def reject(
        self, revision_id: str, chapter_id: str, notes: Optional[str] = None
    ) -> ChapterReductionProposal:
        """Decline a ready proposal. Word counts are unchanged."""
        with self.locks.hold(revision_id):
            revision = self.get_active_revision(revision_id)
            proposal = self.get_proposal(revision_id, chapter_id)
            if proposal.status != ProposalStatus.READY:
                raise ProposalStateError(
                    "reject", proposal.status.value, [ProposalStatus.READY.value]
                )

            proposal.status = ProposalStatus.REJECTED
            proposal.user_decision = UserDecision.REJECTED
            proposal.user_notes = notes
            proposal.decision_at = _utcnow()
            proposal.clear_condensation()

            self._refresh_revision_counters(revision)
            self._commit()
            self.db.refresh(proposal)

            logger.info("Rejected proposal %s (revision %s)", proposal.id, revision_id)
            return proposal

    # ─────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _claim_for_generation(self, proposal: ChapterReductionProposal) -> None:
        """Compare-and-set ``pending|error -> generating``."""
        claimed = (
            self.db.query(ChapterReductionProposal)
            .filter(
                ChapterReductionProposal.id == proposal.id,
                ChapterReductionProposal.status.in_(GENERATABLE_STATUSES),
            )
            .update(
                {
                    ChapterReductionProposal.status: ProposalStatus.GENERATING,
                    ChapterReductionProposal.error_message: None,
                    ChapterReductionProposal.updated_at: _utcnow(),
                },
                synchronize_session=False,
            )
        )
        self._commit()
        self.db.refresh(proposal)
        if not claimed:
            raise ProposalStateError(
                "generate", proposal.status.value, _values(GENERATABLE_STATUSES)
            )

    def _release_claim(self, proposal_id: str) -> None:
        """Move a proposal left in ``generating`` by an interrupted call to ``error``."""
        try:
            self.db.rollback()
            released = (
                self.db.query(ChapterReductionProposal)
                .filter(
                    ChapterReductionProposal.id == proposal_id,
                    ChapterReductionProposal.status == ProposalStatus.GENERATING,
                )
                .update(
                    {
                        ChapterReductionProposal.status: ProposalStatus.ERROR,
                        ChapterReductionProposal.error_message: "Generation was interrupted",
                        ChapterReductionProposal.updated_at: _utcnow(),
                    },
                    synchronize_session=False,
                )
            )
            self._commit()
        except SQLAlchemyError:
            logger.exception("Could not release generation claim on proposal %s", proposal_id)
            return

        if released:
            logger.warning("Proposal %s generation interrupted, marked as error", proposal_id)

    def _build_request(self, proposal: ChapterReductionProposal) -> CondensationRequest:
        issues = IssueContext.model_validate(proposal.issues) if proposal.issues else None
        return CondensationRequest(
            original_content=proposal.original_content,
            original_word_count=proposal.original_word_count,
            target_word_count=proposal.target_word_count,
            issues=issues,
            chapter_number=proposal.chapter_number,
            chapter_title=proposal.chapter_title,
        )

    def _check_result(
        self, proposal: ChapterReductionProposal, result: CondensationResult
    ) -> None:
        if not result.condensed_content.strip():
            raise CondensationError("Condenser returned no content")
        if result.condensed_word_count >= proposal.original_word_count:
            raise CondensationError(
                f"Condensed chapter has {result.condensed_word_count} words, "
                f"not fewer than the original {proposal.original_word_count}"
            )

    def _mark_ready(
        self, proposal: ChapterReductionProposal, result: CondensationResult
    ) -> ChapterReductionProposal:
        proposal.status = ProposalStatus.READY
        proposal.condensed_content = result.condensed_content
        proposal.condensed_word_count = result.condensed_word_count
        proposal.actual_reduction = proposal.original_word_count - result.condensed_word_count
        proposal.cuts_explanation = [c.model_dump() for c in result.cuts_explanation]
        proposal.preserved_elements = list(result.preserved_elements)
        proposal.input_tokens = result.input_tokens
        proposal.output_tokens = result.output_tokens
        proposal.generated_at = _utcnow()
        proposal.error_message = None
        self._commit()
        self.db.refresh(proposal)

        logger.info(
            "Proposal %s ready: %d -> %d words (target %d)",
            proposal.id,
            proposal.original_word_count,
            proposal.condensed_word_count,
            proposal.target_word_count,
        )
        return proposal

    def _mark_error(
        self, proposal: ChapterReductionProposal, message: str
    ) -> ChapterReductionProposal:
        proposal.status = ProposalStatus.ERROR
        proposal.error_message = message
        proposal.clear_condensation()
        self._commit()
        self.db.refresh(proposal)

        logger.warning("Proposal %s failed to generate: %s", proposal.id, message)
        return proposal

    def _refresh_revision_counters(self, revision: WordCountRevision) -> None:
        """Recompute reviewed count, cut total and status from the proposal rows."""
        self.db.flush()
        is_applied = ChapterReductionProposal.status == ProposalStatus.APPLIED
        is_reviewed = ChapterReductionProposal.status.in_(REVIEWED_STATUSES)

        reviewed, words_cut = (
            self.db.query(
                func.coalesce(func.sum(case((is_reviewed, 1), else_=0)), 0),
                func.coalesce(
                    func.sum(case((is_applied, ChapterReductionProposal.actual_reduction), else_=0)),
                    0,
                ),
            )
            .filter(ChapterReductionProposal.revision_id == revision.id)
            .one()
        )

        revision.chapters_reviewed = int(reviewed)
        revision.words_cut_so_far = int(words_cut)
        revision.current_word_count = revision.original_word_count - revision.words_cut_so_far

        all_reviewed = revision.chapters_reviewed >= revision.chapters_total
        band = tolerance_band(revision.target_word_count, revision.tolerance_percent)
        over_target = band.classify(revision.current_word_count) == "over_target"

        if all_reviewed and not over_target:
            revision.status = RevisionStatus.COMPLETED
            revision.completed_at = _utcnow()
            revision.active_book_id = None
            logger.info(
                "Revision %s completed at %d words", revision.id, revision.current_word_count
            )
        elif revision.chapters_reviewed > 0:
            if all_reviewed:
                logger.info(
                    "Revision %s reviewed but still over target (%d > %d)",
                    revision.id,
                    revision.current_word_count,
                    band.max_acceptable,
                )
            revision.status = RevisionStatus.IN_PROGRESS
        else:
            revision.status = RevisionStatus.READY
