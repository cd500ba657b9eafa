"""
Chapter reduction proposal model.

One row per chapter of a revision. The row is never deleted; it moves through
``ProposalStatus`` as proposals are generated, approved and rejected.
"""

import enum

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from trimline.db.base import Base
from trimline.models.word_count_revision import prefixed_id


class ProposalStatus(enum.Enum):
    """Proposal status enumeration."""

    PENDING = "pending"
    GENERATING = "generating"  # Condenser call in flight
    READY = "ready"  # Condensed text awaiting review
    APPLIED = "applied"
    REJECTED = "rejected"
    ERROR = "error"


class UserDecision(enum.Enum):
    """Reviewer decision enumeration."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _enum_column(enum_cls, default):
    return Column(
        Enum(enum_cls, values_callable=lambda obj: [e.value for e in obj]),
        default=default,
        nullable=False,
    )


class ChapterReductionProposal(Base):
    """Condensation proposal for one chapter within a revision."""

    __tablename__ = "chapter_reduction_proposals"
    __table_args__ = (
        UniqueConstraint("revision_id", "chapter_id", name="uq_proposal_revision_chapter"),
    )

    id = Column(String(32), primary_key=True, default=lambda: prefixed_id("crp"))
    revision_id = Column(
        String(32), ForeignKey("word_count_revisions.id"), nullable=False, index=True
    )

    # Chapter snapshot taken when the revision started
    chapter_id = Column(String(36), nullable=False)
    chapter_number = Column(Integer, nullable=False)
    chapter_title = Column(String(500))
    original_content = Column(Text, nullable=False)

    # Targets
    original_word_count = Column(Integer, nullable=False)
    target_word_count = Column(Integer, nullable=False)
    reduction_percent = Column(Float, default=0.0)
    priority_score = Column(Integer, default=0)
    issues = Column(JSON)  # IssueContext, scoring and prompt input only

    status = _enum_column(ProposalStatus, ProposalStatus.PENDING)

    # Populated once the proposal is ready
    condensed_content = Column(Text)
    condensed_word_count = Column(Integer)
    actual_reduction = Column(Integer)
    cuts_explanation = Column(JSON)
    preserved_elements = Column(JSON)
    generated_at = Column(DateTime(timezone=True))
    input_tokens = Column(Integer, default=0)
    output_tokens = Column(Integer, default=0)

    # Review
    user_decision = _enum_column(UserDecision, UserDecision.PENDING)
    user_notes = Column(Text)
    decision_at = Column(DateTime(timezone=True))

    error_message = Column(Text)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    revision = relationship("WordCountRevision", back_populates="proposals")

    def clear_condensation(self) -> None:
        """Drop every field that only exists while a proposal is ready or applied."""
        self.condensed_content = None
        self.condensed_word_count = None
        self.actual_reduction = None
        self.cuts_explanation = None
        self.preserved_elements = None
        self.generated_at = None
