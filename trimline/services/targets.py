"""
Per-chapter target apportionment.

Spreads a book's required cut across its chapters in proportion to chapter
length, weighted by priority score, without cutting any chapter past the
maximum cut share. Excess from capped chapters flows to the others.
"""

import math
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class ChapterWeight:
    """Input row: one chapter's size and priority."""
    chapter_id: str
    word_count: int
    priority_score: int


@dataclass(frozen=True)
class ChapterTarget:
    """Output row: how far one chapter should shrink."""
    chapter_id: str
    original_word_count: int
    target_word_count: int
    words_to_cut: int
    reduction_percent: float


def priority_multiplier(priority_score: int) -> float:
    """Scale a chapter's share of the cut: 0.75 at score 0, 1.25 at score 100."""
    return 1 + (priority_score - 50) / 200


def _largest_remainder(values: list[float], total: int, caps: list[int]) -> list[int]:
    """Round values down, then hand the shortfall to the largest fractions."""
    floors = [min(cap, math.floor(v)) for v, cap in zip(values, caps)]
    shortfall = total - sum(floors)
    order = sorted(range(len(values)), key=lambda i: values[i] - floors[i], reverse=True)
    for i in order:
        if shortfall <= 0:
            break
        if floors[i] < caps[i]:
            floors[i] += 1
            shortfall -= 1
    return floors


def apportion_cuts(
    chapters: Sequence[ChapterWeight],
    words_to_cut: int,
    max_cut_percent: float = 30.0,
) -> list[ChapterTarget]:
    """
    Split ``words_to_cut`` across chapters.

    Args:
        chapters: Chapters in book order
        words_to_cut: Total words the book must lose
        max_cut_percent: Largest share of any single chapter that may be cut

    Returns:
        One ChapterTarget per chapter, in the input order. Targets add up to
        the requested cut unless every chapter hits its cap first.
    """
    caps = [
        max(0, math.floor(ch.word_count * max_cut_percent / 100)) for ch in chapters
    ]
    weights = [
        max(0, ch.word_count) * priority_multiplier(ch.priority_score) for ch in chapters
    ]
    goal = max(0, min(words_to_cut, sum(caps)))

    cuts = [0.0] * len(chapters)
    remaining = float(goal)
    open_chapters = {i for i in range(len(chapters)) if caps[i] > 0 and weights[i] > 0}

    while remaining > 1e-9 and open_chapters:
        total_weight = sum(weights[i] for i in open_chapters)
        saturated = [
            i
            for i in open_chapters
            if cuts[i] + remaining * weights[i] / total_weight >= caps[i]
        ]
        if not saturated:
            for i in open_chapters:
                cuts[i] += remaining * weights[i] / total_weight
            remaining = 0.0
            break
        for i in saturated:
            remaining -= caps[i] - cuts[i]
            cuts[i] = float(caps[i])
            open_chapters.discard(i)

    whole_cuts = _largest_remainder(cuts, goal, caps)

    targets = []
    for chapter, cut in zip(chapters, whole_cuts):
        reduction = (cut / chapter.word_count * 100) if chapter.word_count > 0 else 0.0
        targets.append(
            ChapterTarget(
                chapter_id=chapter.chapter_id,
                original_word_count=chapter.word_count,
                target_word_count=chapter.word_count - cut,
                words_to_cut=cut,
                reduction_percent=reduction,
            )
        )
    return targets
