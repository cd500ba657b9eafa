"""
Batch orchestrator.

Runs generate or approve over every eligible proposal of a revision, one
chapter at a time in priority order. A failing chapter is recorded and the
batch moves on.
"""

import logging
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from trimline.core.errors import RevisionError
from trimline.models.chapter_proposal import ProposalStatus
from trimline.schemas.word_count_revision import BatchItemResult, BatchResult
from trimline.services.proposals import ProposalService

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

FAILED = "failed"


class BatchOrchestrator:
    """Sequential bulk operations over a revision's proposals."""

    def __init__(self, proposals: ProposalService):
        self.proposals = proposals

    def generate_all(
        self, revision_id: str, on_progress: Optional[ProgressCallback] = None
    ) -> BatchResult:
        """
        Generate every pending proposal.

        Condenser failures leave the proposal in ``error`` and count as
        failed; ``processed`` counts every attempt.
        """
        with self.proposals.locks.hold(revision_id):
            self.proposals.get_active_revision(revision_id)
            chapter_ids = [
                p.chapter_id
                for p in self.proposals.list_proposals(revision_id, [ProposalStatus.PENDING])
            ]
            logger.info("generate-all on revision %s: %d pending", revision_id, len(chapter_ids))

            items = []
            for index, chapter_id in enumerate(chapter_ids, start=1):
                try:
                    proposal = self.proposals.generate(revision_id, chapter_id)
                    items.append(
                        BatchItemResult(
                            chapter_id=chapter_id,
                            status=proposal.status.value,
                            error_message=proposal.error_message,
                        )
                    )
                except (RevisionError, SQLAlchemyError) as e:
                    logger.warning("generate-all: chapter %s skipped: %s", chapter_id, e)
                    items.append(
                        BatchItemResult(chapter_id=chapter_id, status=FAILED, error_message=str(e))
                    )
                if on_progress is not None:
                    on_progress(index, len(chapter_ids))

            return self._summarize(revision_id, items, ProposalStatus.READY)

    def approve_all(
        self, revision_id: str, on_progress: Optional[ProgressCallback] = None
    ) -> BatchResult:
        """Approve every ready proposal."""
        with self.proposals.locks.hold(revision_id):
            self.proposals.get_active_revision(revision_id)
            chapter_ids = [
                p.chapter_id
                for p in self.proposals.list_proposals(revision_id, [ProposalStatus.READY])
            ]
            logger.info("approve-all on revision %s: %d ready", revision_id, len(chapter_ids))

            items = []
            for index, chapter_id in enumerate(chapter_ids, start=1):
                try:
                    self.proposals.approve(revision_id, chapter_id)
                    items.append(
                        BatchItemResult(chapter_id=chapter_id, status=ProposalStatus.APPLIED.value)
                    )
                except (RevisionError, SQLAlchemyError) as e:
                    logger.warning("approve-all: chapter %s not applied: %s", chapter_id, e)
                    items.append(
                        BatchItemResult(chapter_id=chapter_id, status=FAILED, error_message=str(e))
                    )
                if on_progress is not None:
                    on_progress(index, len(chapter_ids))

            return self._summarize(revision_id, items, ProposalStatus.APPLIED)

    @staticmethod
    def _summarize(
        revision_id: str, items: list[BatchItemResult], success: ProposalStatus
    ) -> BatchResult:
        succeeded = sum(1 for item in items if item.status == success.value)
        result = BatchResult(
            revision_id=revision_id,
            processed=len(items),
            total=len(items),
            succeeded=succeeded,
            failed=len(items) - succeeded,
            items=items,
        )
        logger.info(
            "Batch on revision %s finished: %d/%d succeeded",
            revision_id,
            result.succeeded,
            result.total,
        )
        return result
