"""Apportioning a book's cut across chapters."""
from trimline.services.targets import ChapterWeight, apportion_cuts, priority_multiplier


def test_targets_sum_to_requested_cut():
    chapters = [
        ChapterWeight("a", 20000, 20),
        ChapterWeight("b", 30000, 50),
        ChapterWeight("c", 45000, 80),
    ]
    targets = apportion_cuts(chapters, 15000)
    assert sum(t.words_to_cut for t in targets) == 15000
    assert [t.chapter_id for t in targets] == ["a", "b", "c"]
    for target in targets:
        assert target.target_word_count == target.original_word_count - target.words_to_cut


def test_equal_priority_is_proportional():
    chapters = [ChapterWeight("a", 1000, 50), ChapterWeight("b", 3000, 50)]
    targets = apportion_cuts(chapters, 400)
    assert [t.words_to_cut for t in targets] == [100, 300]


def test_higher_priority_takes_larger_share():
    chapters = [ChapterWeight("low", 10000, 0), ChapterWeight("high", 10000, 100)]
    low, high = apportion_cuts(chapters, 1000)
    assert high.words_to_cut > low.words_to_cut


def test_no_chapter_cut_past_cap():
    chapters = [ChapterWeight("small", 1000, 100), ChapterWeight("big", 9000, 0)]
    targets = apportion_cuts(chapters, 2000, max_cut_percent=30)
    small, big = targets
    assert small.words_to_cut <= 300
    assert sum(t.words_to_cut for t in targets) == 2000
    assert big.reduction_percent <= 30


def test_infeasible_cut_stops_at_caps():
    chapters = [ChapterWeight("a", 1000, 50), ChapterWeight("b", 1000, 50)]
    targets = apportion_cuts(chapters, 5000, max_cut_percent=30)
    assert [t.words_to_cut for t in targets] == [300, 300]


def test_zero_cut_keeps_chapters_whole():
    chapters = [ChapterWeight("a", 1000, 90), ChapterWeight("b", 0, 20)]
    targets = apportion_cuts(chapters, 0)
    assert [t.target_word_count for t in targets] == [1000, 0]
    assert [t.reduction_percent for t in targets] == [0.0, 0.0]


def test_priority_multiplier_range():
    assert priority_multiplier(0) == 0.75
    assert priority_multiplier(50) == 1.0
    assert priority_multiplier(100) == 1.25
