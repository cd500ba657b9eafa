"""
Error types raised by the word count revision services.

Each error carries the HTTP status the API layer responds with and a short
machine-readable code, so callers can tell which guard rejected the request.
"""

from typing import Iterable, Optional


class RevisionError(Exception):
    """Base class for revision errors that are reported to callers."""

    status_code: int = 400
    code: str = "revision_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RevisionValidationError(RevisionError):
    """Bad input; nothing was changed."""

    status_code = 400
    code = "validation_error"


class RevisionNotFoundError(RevisionError):
    status_code = 404
    code = "revision_not_found"

    def __init__(self, revision_id: str):
        super().__init__(f"Revision not found: {revision_id}")
        self.revision_id = revision_id


class NoActiveRevisionError(RevisionError):
    status_code = 404
    code = "no_active_revision"

    def __init__(self, book_id: str):
        super().__init__(f"Book {book_id} has no active revision")
        self.book_id = book_id


class ProposalNotFoundError(RevisionError):
    status_code = 404
    code = "proposal_not_found"

    def __init__(self, revision_id: str, chapter_id: str):
        super().__init__(
            f"Proposal not found for chapter {chapter_id} in revision {revision_id}"
        )
        self.revision_id = revision_id
        self.chapter_id = chapter_id


class ActiveRevisionExistsError(RevisionError):
    status_code = 409
    code = "active_revision_exists"

    def __init__(self, book_id: str, revision_id: Optional[str] = None):
        detail = f"Book {book_id} already has an active revision"
        if revision_id:
            detail += f" ({revision_id})"
        super().__init__(detail)
        self.book_id = book_id
        self.revision_id = revision_id


class RevisionStateError(RevisionError):
    """The revision is no longer active (completed or abandoned)."""

    status_code = 409
    code = "revision_not_active"


class ProposalStateError(RevisionError):
    """A proposal state machine guard failed."""

    status_code = 409
    code = "invalid_proposal_state"

    def __init__(self, action: str, current: str, allowed: Iterable[str]):
        allowed = sorted(allowed)
        super().__init__(
            f"Cannot {action} proposal with status '{current}' "
            f"(requires {' or '.join(allowed)})"
        )
        self.action = action
        self.current = current
        self.allowed = allowed


class CondensationError(Exception):
    """The content condenser could not produce a usable result.

    Never reaches API callers: the proposal store records it as the
    proposal's error message.
    """


class LLMError(CondensationError):
    """A model provider call failed (timeout, API error, refusal)."""
