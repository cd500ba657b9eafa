import os

# Keep the app's own engine off the working directory during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import uuid
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import trimline.models  # noqa: F401
from trimline.api.deps import get_condenser, get_db
from trimline.core.errors import CondensationError
from trimline.db.base import Base
from trimline.main import app
from trimline.models.chapter import Chapter
from trimline.models.editorial_report import EditorialReport
from trimline.schemas.word_count_revision import (
    CondensationRequest,
    CondensationResult,
    CutExplanation,
)
from trimline.services.condenser import ContentCondenser, count_words
from trimline.services.word_count_revision import WordCountRevisionService

engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeCondenser(ContentCondenser):
    """
    Condenser that drops words from the end of a chapter.

    By default it removes exactly enough words to hit the target. Set
    ``reductions[chapter_number]`` to remove a specific number instead, or
    ``failures[chapter_number]`` to raise.
    """

    def __init__(self):
        self.reductions: dict[int, int] = {}
        self.failures: dict[int, Exception] = {}
        self.calls: list[CondensationRequest] = []

    def condense(self, request: CondensationRequest) -> CondensationResult:
        self.calls.append(request)
        if request.chapter_number in self.failures:
            raise self.failures[request.chapter_number]

        words = request.original_content.split()
        remove = self.reductions.get(
            request.chapter_number,
            request.original_word_count - request.target_word_count,
        )
        kept = words[: max(1, len(words) - remove)]
        condensed = " ".join(kept)
        return CondensationResult(
            condensed_content=condensed,
            condensed_word_count=count_words(condensed),
            cuts_explanation=[
                CutExplanation(
                    what_was_cut="Closing paragraphs",
                    why="Repeats the opening",
                    words_removed=len(words) - len(kept),
                )
            ],
            preserved_elements=["Opening scene"],
            input_tokens=1200,
            output_tokens=800,
        )

    def fail(self, chapter_number: int, message: str = "Request timed out") -> None:
        self.failures[chapter_number] = CondensationError(message)


@pytest.fixture(scope="function")
def db():
    """In-memory SQLite session with fresh tables for each test."""
    Base.metadata.create_all(bind=engine)
    db_session = TestingSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def condenser() -> FakeCondenser:
    return FakeCondenser()


@pytest.fixture
def service(db: Session, condenser: FakeCondenser) -> WordCountRevisionService:
    return WordCountRevisionService.for_session(db, condenser)


@pytest.fixture(scope="function")
def client(db: Session, condenser: FakeCondenser):
    """Create a test client with the test database and fake condenser."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_condenser] = lambda: condenser

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_book(db: Session):
    """
    Seed a book's completed chapters.

    Returns a function ``make_book(word_counts, book_id=None, issues=None)``
    where ``issues`` is an editorial report ``chapter_results`` list.
    """

    def _make_book(
        word_counts: list[int],
        book_id: Optional[str] = None,
        issues: Optional[list[dict]] = None,
    ) -> tuple[str, list[Chapter]]:
        book_id = book_id or f"book-{uuid.uuid4().hex[:8]}"
        chapters = []
        for number, word_count in enumerate(word_counts, start=1):
            chapter = Chapter(
                book_id=book_id,
                chapter_number=number,
                title=f"Chapter {number}",
                content=" ".join(f"w{number}" for _ in range(word_count)),
                word_count=word_count,
                status="completed",
            )
            db.add(chapter)
            chapters.append(chapter)

        if issues is not None:
            db.add(
                EditorialReport(
                    book_id=book_id,
                    status="completed",
                    chapter_results=issues,
                )
            )

        db.commit()
        for chapter in chapters:
            db.refresh(chapter)
        return book_id, chapters

    return _make_book
