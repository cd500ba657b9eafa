"""
Database models for the Trimline API.
"""

from trimline.models.chapter import Chapter
from trimline.models.chapter_proposal import (
    ChapterReductionProposal,
    ProposalStatus,
    UserDecision,
)
from trimline.models.editorial_report import EditorialReport
from trimline.models.word_count_revision import (
    ACTIVE_REVISION_STATUSES,
    RevisionStatus,
    WordCountRevision,
)

__all__ = [
    "Chapter",
    "EditorialReport",
    "WordCountRevision",
    "RevisionStatus",
    "ACTIVE_REVISION_STATUSES",
    "ChapterReductionProposal",
    "ProposalStatus",
    "UserDecision",
]
