"""Word count revision endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, status

from trimline.api import deps
from trimline.schemas.word_count_revision import (
    BatchResult,
    CompletionValidation,
    ProposalListResponse,
    ProposalResponse,
    RejectProposalRequest,
    RevisionProgress,
    RevisionResponse,
    StartRevisionRequest,
)
from trimline.services.word_count_revision import WordCountRevisionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/books/{book_id}/start",
    response_model=RevisionResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_revision(
    book_id: str,
    request: StartRevisionRequest,
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    """Start a word count revision for a book."""
    return service.start_revision(
        book_id,
        target_word_count=request.target_word_count,
        tolerance_percent=request.tolerance_percent,
        force_restart=request.force_restart,
    )


@router.get("/books/{book_id}/current", response_model=RevisionResponse)
def get_current_revision(
    book_id: str,
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    """Get the book's active revision."""
    return service.require_active_revision(book_id)


@router.get("/{revision_id}", response_model=RevisionResponse)
def get_revision(
    revision_id: str,
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    return service.get_revision(revision_id)


@router.delete("/{revision_id}/abandon", response_model=RevisionResponse)
def abandon_revision(
    revision_id: str,
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    """Abandon a revision and free the book for a new one."""
    return service.abandon_revision(revision_id)


@router.get("/{revision_id}/progress", response_model=RevisionProgress)
def get_progress(
    revision_id: str,
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    return service.get_progress(revision_id)


@router.get("/{revision_id}/validate", response_model=CompletionValidation)
def validate_completion(
    revision_id: str,
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    """Check whether the current word count is inside the tolerance band."""
    return service.validate_completion(revision_id)


# ─────────────────────────────────────────────────────────────────────────────
# Proposals
# ─────────────────────────────────────────────────────────────────────────────


@router.get("/{revision_id}/proposals", response_model=ProposalListResponse)
def list_proposals(
    revision_id: str,
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    """List proposals, highest priority first."""
    proposals = service.list_proposals(revision_id)
    return ProposalListResponse(
        proposals=[ProposalResponse.model_validate(p) for p in proposals]
    )


@router.get(
    "/{revision_id}/chapters/{chapter_id}/proposal", response_model=ProposalResponse
)
def get_proposal(
    revision_id: str,
    chapter_id: str,
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    return service.get_proposal(revision_id, chapter_id)


@router.post(
    "/{revision_id}/chapters/{chapter_id}/generate", response_model=ProposalResponse
)
def generate_proposal(
    revision_id: str,
    chapter_id: str,
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    """
    Generate a condensed version of one chapter.

    A condenser failure is not an HTTP error: the proposal comes back with
    status ``error`` and an ``error_message``.
    """
    return service.generate_proposal(revision_id, chapter_id)


@router.post(
    "/{revision_id}/chapters/{chapter_id}/regenerate", response_model=ProposalResponse
)
def regenerate_proposal(
    revision_id: str,
    chapter_id: str,
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    return service.regenerate_proposal(revision_id, chapter_id)


@router.post(
    "/{revision_id}/chapters/{chapter_id}/approve", response_model=RevisionResponse
)
def approve_proposal(
    revision_id: str,
    chapter_id: str,
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    """Apply a ready proposal. Returns the updated revision."""
    return service.approve_proposal(revision_id, chapter_id)


@router.post(
    "/{revision_id}/chapters/{chapter_id}/reject", response_model=ProposalResponse
)
def reject_proposal(
    revision_id: str,
    chapter_id: str,
    request: Optional[RejectProposalRequest] = Body(default=None),
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    notes = request.notes if request else None
    return service.reject_proposal(revision_id, chapter_id, notes)


# ─────────────────────────────────────────────────────────────────────────────
# Batches
# ─────────────────────────────────────────────────────────────────────────────


@router.post("/{revision_id}/generate-all", response_model=BatchResult)
def generate_all(
    revision_id: str,
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    """Generate every pending proposal, one chapter at a time."""

    def log_progress(current: int, total: int) -> None:
        logger.info("generate-all %s: %d/%d", revision_id, current, total)

    return service.generate_all(revision_id, on_progress=log_progress)


@router.post("/{revision_id}/approve-all", response_model=BatchResult)
def approve_all(
    revision_id: str,
    service: WordCountRevisionService = Depends(deps.get_revision_service),
):
    """Approve every ready proposal."""
    return service.approve_all(revision_id)
