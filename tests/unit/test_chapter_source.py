"""Reading chapters and editorial issues from the database."""
from trimline.models.chapter import Chapter
from trimline.services.chapter_source import DatabaseChapterSource, extract_chapter_issues


def test_issues_matched_by_chapter_id_first():
    results = [
        {"chapterNumber": 1, "scenePurpose": {"earned": True}},
        {"chapterId": "ch-x", "chapterNumber": 9, "scenePurpose": {"earned": False}},
    ]
    issues = extract_chapter_issues(results, "ch-x", 1)
    assert issues.scene_purpose.earned is False


def test_issues_fall_back_to_chapter_number():
    results = [{"chapterNumber": 2, "expositionIssues": [{"issue": "info_dump"}]}]
    issues = extract_chapter_issues(results, "unknown", 2)
    assert issues.exposition_issues[0].issue == "info_dump"


def test_missing_or_malformed_issues_give_none():
    assert extract_chapter_issues(None, "a", 1) is None
    assert extract_chapter_issues([{"chapterNumber": 5}], "a", 1) is None
    assert extract_chapter_issues([{"chapterNumber": 1, "expositionIssues": "bad"}], "a", 1) is None


def test_load_book_orders_chapters_and_skips_drafts(db, make_book):
    book_id, chapters = make_book(
        [300, 200],
        issues=[{"chapterNumber": 2, "scenePurpose": {"earned": False, "reasoning": "Filler"}}],
    )
    db.add(Chapter(book_id=book_id, chapter_number=3, content="draft", word_count=1, status="draft"))
    db.commit()

    book = DatabaseChapterSource(db).load_book(book_id)

    assert [c.chapter_number for c in book.chapters] == [1, 2]
    assert book.total_word_count == 500
    assert book.chapters[0].issues is None
    assert book.chapters[1].issues.scene_purpose.reasoning == "Filler"
    assert book.editorial_report_id is not None


def test_apply_condensed_updates_chapter(db, make_book):
    _, chapters = make_book([10])
    source = DatabaseChapterSource(db)
    source.apply_condensed(chapters[0].id, "short text", 2)
    db.commit()
    db.refresh(chapters[0])
    assert chapters[0].content == "short text"
    assert chapters[0].word_count == 2
