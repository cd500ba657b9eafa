"""
Pydantic schemas for word count revisions.

Covers the HTTP request/response bodies, the editorial issue context attached
to chapters, and the structured JSON the condensation model returns. Inputs
that arrive from other services or from the model accept camelCase keys; all
output is snake_case.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from trimline.models.chapter_proposal import ProposalStatus, UserDecision
from trimline.models.word_count_revision import RevisionStatus


def _alias(snake: str, camel: str) -> AliasChoices:
    return AliasChoices(snake, camel)


# ─────────────────────────────────────────────────────────────────────────────
# Editorial issue context
# ─────────────────────────────────────────────────────────────────────────────


class ScenePurpose(BaseModel):
    earned: bool = True
    reasoning: str = ""
    recommendation: Optional[str] = None


class ExpositionIssue(BaseModel):
    issue: str  # telling_not_showing, info_dump, unnecessary_backstory, on_the_nose_dialogue
    quote: str = ""
    suggestion: str = ""
    severity: str = "moderate"  # minor, moderate, major
    location: str = ""


class PacingIssue(BaseModel):
    issue: str  # too_slow, too_fast, no_plot_advancement, repetitive
    location: str = ""
    suggestion: str = ""
    severity: str = "moderate"


class IssueContext(BaseModel):
    """Known editorial problems in a chapter."""

    scene_purpose: Optional[ScenePurpose] = Field(
        default=None, validation_alias=_alias("scene_purpose", "scenePurpose")
    )
    exposition_issues: list[ExpositionIssue] = Field(
        default_factory=list,
        validation_alias=_alias("exposition_issues", "expositionIssues"),
    )
    pacing_issues: list[PacingIssue] = Field(
        default_factory=list, validation_alias=_alias("pacing_issues", "pacingIssues")
    )

    @property
    def is_empty(self) -> bool:
        return (
            self.scene_purpose is None
            and not self.exposition_issues
            and not self.pacing_issues
        )


# ─────────────────────────────────────────────────────────────────────────────
# Content condenser contract
# ─────────────────────────────────────────────────────────────────────────────


class CutExplanation(BaseModel):
    what_was_cut: str = Field(
        default="", validation_alias=_alias("what_was_cut", "whatWasCut")
    )
    why: str = ""
    words_removed: int = Field(
        default=0, validation_alias=_alias("words_removed", "wordsRemoved")
    )


class CondensationRequest(BaseModel):
    original_content: str
    original_word_count: int
    target_word_count: int
    issues: Optional[IssueContext] = None
    chapter_number: Optional[int] = None
    chapter_title: Optional[str] = None

    @property
    def reduction_percent(self) -> float:
        if self.original_word_count <= 0:
            return 0.0
        return (
            (self.original_word_count - self.target_word_count)
            / self.original_word_count
            * 100
        )


class CondensationOutput(BaseModel):
    """JSON object the condensation model is asked to return."""

    condensed_content: str = Field(
        validation_alias=_alias("condensed_content", "condensedContent")
    )
    cuts_explanation: list[CutExplanation] = Field(
        default_factory=list,
        validation_alias=_alias("cuts_explanation", "cutsExplanation"),
    )
    preserved_elements: list[str] = Field(
        default_factory=list,
        validation_alias=_alias("preserved_elements", "preservedElements"),
    )
    word_count: Optional[int] = Field(
        default=None, validation_alias=_alias("word_count", "wordCount")
    )


class CondensationResult(BaseModel):
    condensed_content: str
    condensed_word_count: int
    cuts_explanation: list[CutExplanation] = Field(default_factory=list)
    preserved_elements: list[str] = Field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0


# ─────────────────────────────────────────────────────────────────────────────
# Requests
# ─────────────────────────────────────────────────────────────────────────────


class StartRevisionRequest(BaseModel):
    target_word_count: int = Field(..., gt=0, description="Word count to aim for")
    tolerance_percent: Optional[float] = Field(
        default=None, ge=0, description="Acceptable deviation either side of target"
    )
    force_restart: bool = Field(
        default=False, description="Abandon the current active revision first"
    )


class RejectProposalRequest(BaseModel):
    notes: Optional[str] = None


# ─────────────────────────────────────────────────────────────────────────────
# Responses
# ─────────────────────────────────────────────────────────────────────────────


class RevisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    book_id: str
    editorial_report_id: Optional[str] = None
    status: RevisionStatus
    original_word_count: int
    current_word_count: int
    target_word_count: int
    tolerance_percent: float
    min_acceptable: int
    max_acceptable: int
    words_to_cut: int
    chapters_total: int
    chapters_reviewed: int
    words_cut_so_far: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ProposalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    revision_id: str
    chapter_id: str
    chapter_number: int
    chapter_title: Optional[str] = None
    original_word_count: int
    target_word_count: int
    reduction_percent: float
    priority_score: int
    issues: Optional[IssueContext] = None
    status: ProposalStatus
    condensed_content: Optional[str] = None
    condensed_word_count: Optional[int] = None
    actual_reduction: Optional[int] = None
    cuts_explanation: Optional[list[CutExplanation]] = None
    preserved_elements: Optional[list[str]] = None
    user_decision: UserDecision
    user_notes: Optional[str] = None
    decision_at: Optional[datetime] = None
    error_message: Optional[str] = None
    generated_at: Optional[datetime] = None
    input_tokens: int = 0
    output_tokens: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProposalListResponse(BaseModel):
    proposals: list[ProposalResponse]


class RevisionProgress(BaseModel):
    revision_id: str
    current_word_count: int
    target_word_count: int
    words_to_cut: int
    words_reduced: int
    words_remaining: int
    percent_complete: float
    chapters_reviewed: int
    chapters_total: int
    min_acceptable: int
    max_acceptable: int
    is_within_tolerance: bool
    is_complete: bool


class CompletionValidation(BaseModel):
    is_valid: bool
    current_word_count: int
    target_word_count: int
    min_acceptable: int
    max_acceptable: int
    words_remaining: int
    status: Literal["under_target", "within_tolerance", "over_target"]


class BatchItemResult(BaseModel):
    chapter_id: str
    status: str
    error_message: Optional[str] = None


class BatchResult(BaseModel):
    revision_id: str
    processed: int
    total: int
    succeeded: int
    failed: int
    items: list[BatchItemResult] = Field(default_factory=list)
