"""
Priority scoring for chapter cuts.

A chapter's score (0-100, higher means cut here first) comes from the
editorial issues found in it. The score only orders work and weights target
apportionment; it never blocks an operation.
"""

from typing import Optional

from trimline.schemas.word_count_revision import IssueContext

# Score for chapters the editorial pass said nothing about
BASELINE_SCORE = 20

SCENE_NOT_EARNED_WEIGHT = 30

EXPOSITION_SEVERITY_WEIGHTS = {"minor": 3, "moderate": 5, "major": 8}
EXPOSITION_CAP = 25

# Pacing problems that mean the text is not moving weigh more
PACING_ISSUE_WEIGHTS = {
    "no_plot_advancement": 10,
    "too_slow": 8,
    "repetitive": 7,
}
PACING_DEFAULT_WEIGHT = 5
PACING_SEVERITY_FACTORS = {"minor": 0.75, "moderate": 1.0, "major": 1.25}
PACING_CAP = 25


def _severity(value: str, table: dict) -> str:
    value = (value or "").lower()
    return value if value in table else "moderate"


def exposition_score(issues: IssueContext) -> int:
    total = sum(
        EXPOSITION_SEVERITY_WEIGHTS[_severity(i.severity, EXPOSITION_SEVERITY_WEIGHTS)]
        for i in issues.exposition_issues
    )
    return min(EXPOSITION_CAP, total)


def pacing_score(issues: IssueContext) -> int:
    total = 0.0
    for issue in issues.pacing_issues:
        weight = PACING_ISSUE_WEIGHTS.get(issue.issue, PACING_DEFAULT_WEIGHT)
        total += weight * PACING_SEVERITY_FACTORS[_severity(issue.severity, PACING_SEVERITY_FACTORS)]
    return min(PACING_CAP, round(total))


def calculate_priority_score(issues: Optional[IssueContext]) -> int:
    """
    Score how urgently a chapter should be cut.

    Args:
        issues: Editorial issue context for the chapter, if any

    Returns:
        Integer score in [0, 100]
    """
    if issues is None or issues.is_empty:
        return BASELINE_SCORE

    score = 0
    if issues.scene_purpose is not None and not issues.scene_purpose.earned:
        score += SCENE_NOT_EARNED_WEIGHT
    score += exposition_score(issues)
    score += pacing_score(issues)

    # Chapters with minor findings still rank at least with clean ones
    score = max(BASELINE_SCORE, score)
    return max(0, min(100, score))
