"""
Tolerance arithmetic for word count revisions.

Pure functions: the acceptable band around a target, whether a count sits in
it, and how far a revision has come toward its cut.
"""

import math
from dataclasses import dataclass


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (``round`` would go to even)."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class ToleranceBand:
    """Acceptable word count range around a target."""
    target_word_count: int
    tolerance_percent: float
    min_acceptable: int
    max_acceptable: int

    def contains(self, word_count: int) -> bool:
        return self.min_acceptable <= word_count <= self.max_acceptable

    def classify(self, word_count: int) -> str:
        if word_count < self.min_acceptable:
            return "under_target"
        if word_count > self.max_acceptable:
            return "over_target"
        return "within_tolerance"


def tolerance_band(target_word_count: int, tolerance_percent: float) -> ToleranceBand:
    """
    Compute the acceptable range for a target.

    Args:
        target_word_count: Word count the book should end up near
        tolerance_percent: Allowed deviation either side, in percent

    Returns:
        ToleranceBand with rounded bounds
    """
    return ToleranceBand(
        target_word_count=target_word_count,
        tolerance_percent=tolerance_percent,
        min_acceptable=round_half_up(target_word_count * (1 - tolerance_percent / 100)),
        max_acceptable=round_half_up(target_word_count * (1 + tolerance_percent / 100)),
    )


def is_within_tolerance(
    current_word_count: int, target_word_count: int, tolerance_percent: float
) -> bool:
    return tolerance_band(target_word_count, tolerance_percent).contains(current_word_count)


def words_to_cut(current_word_count: int, target_word_count: int) -> int:
    return max(0, current_word_count - target_word_count)


def percent_complete(words_reduced: int, words_to_cut_at_start: int) -> float:
    """
    Share of the starting cut achieved so far, clamped to [0, 100].

    ``words_to_cut_at_start`` is fixed when the revision starts. A book that
    needed no cut is complete.
    """
    if words_to_cut_at_start <= 0:
        return 100.0
    return min(100.0, max(0.0, words_reduced / words_to_cut_at_start * 100))
