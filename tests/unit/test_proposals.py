"""Proposal state machine: generate, approve, reject, regenerate."""
import pytest
from sqlalchemy.exc import SQLAlchemyError

from trimline.core.errors import (
    ProposalNotFoundError,
    ProposalStateError,
    RevisionStateError,
)
from trimline.models.chapter_proposal import ProposalStatus, UserDecision
from trimline.models.word_count_revision import RevisionStatus


@pytest.fixture
def example_book(make_book):
    """95,000 words in three chapters."""
    return make_book([20000, 30000, 45000])


@pytest.fixture
def revision(service, example_book):
    book_id, _ = example_book
    return service.start_revision(book_id, 80000, 5)


def _chapter_id(example_book, number):
    return example_book[1][number - 1].id


class _WorkerShutdown(BaseException):
    """Stands in for KeyboardInterrupt or a worker being stopped mid-call."""


class TestGenerate:
    def test_success_populates_proposal(self, service, revision, example_book, condenser):
        chapter_id = _chapter_id(example_book, 1)
        condenser.reductions[1] = 2000

        proposal = service.generate_proposal(revision.id, chapter_id)

        assert proposal.status == ProposalStatus.READY
        assert proposal.condensed_word_count == 18000
        assert proposal.actual_reduction == 2000
        assert proposal.condensed_content
        assert proposal.cuts_explanation[0]["what_was_cut"] == "Closing paragraphs"
        assert proposal.preserved_elements == ["Opening scene"]
        assert proposal.input_tokens == 1200
        assert proposal.output_tokens == 800
        assert proposal.generated_at is not None
        assert proposal.error_message is None

    def test_condenser_receives_snapshot_and_target(self, service, revision, example_book, condenser):
        chapter_id = _chapter_id(example_book, 2)
        proposal = service.get_proposal(revision.id, chapter_id)

        service.generate_proposal(revision.id, chapter_id)

        request = condenser.calls[-1]
        assert request.original_content == example_book[1][1].content
        assert request.original_word_count == 30000
        assert request.target_word_count == proposal.target_word_count
        assert request.chapter_title == "Chapter 2"

    def test_does_not_touch_revision(self, db, service, revision, example_book):
        service.generate_proposal(revision.id, _chapter_id(example_book, 1))

        db.refresh(revision)
        assert revision.current_word_count == 95000
        assert revision.words_cut_so_far == 0
        assert revision.chapters_reviewed == 0
        assert revision.status == RevisionStatus.READY

    def test_failure_becomes_error_state(self, service, revision, example_book, condenser):
        condenser.fail(1, "Request timed out")

        proposal = service.generate_proposal(revision.id, _chapter_id(example_book, 1))

        assert proposal.status == ProposalStatus.ERROR
        assert proposal.error_message == "Request timed out"
        assert proposal.condensed_content is None
        assert proposal.condensed_word_count is None
        assert proposal.actual_reduction is None

    def test_unexpected_exception_becomes_error_state(self, service, revision, example_book, condenser):
        condenser.failures[1] = RuntimeError("connection reset")

        proposal = service.generate_proposal(revision.id, _chapter_id(example_book, 1))

        assert proposal.status == ProposalStatus.ERROR
        assert "connection reset" in proposal.error_message

    def test_result_not_shorter_is_an_error(self, service, revision, example_book, condenser):
        condenser.reductions[1] = 0

        proposal = service.generate_proposal(revision.id, _chapter_id(example_book, 1))

        assert proposal.status == ProposalStatus.ERROR
        assert "not fewer than the original" in proposal.error_message
        assert proposal.condensed_content is None

    def test_retry_after_error(self, service, revision, example_book, condenser):
        chapter_id = _chapter_id(example_book, 1)
        condenser.fail(1)
        service.generate_proposal(revision.id, chapter_id)

        condenser.failures.clear()
        proposal = service.generate_proposal(revision.id, chapter_id)

        assert proposal.status == ProposalStatus.READY
        assert proposal.error_message is None

    def test_interrupted_generation_does_not_stay_generating(
        self, db, service, revision, example_book, condenser
    ):
        chapter_id = _chapter_id(example_book, 1)
        condenser.failures[1] = _WorkerShutdown()

        with pytest.raises(_WorkerShutdown):
            service.generate_proposal(revision.id, chapter_id)

        proposal = service.get_proposal(revision.id, chapter_id)
        db.refresh(proposal)
        assert proposal.status == ProposalStatus.ERROR
        assert proposal.error_message == "Generation was interrupted"

        condenser.failures.clear()
        assert service.generate_proposal(revision.id, chapter_id).status == ProposalStatus.READY

    def test_failed_commit_does_not_stay_generating(
        self, db, service, revision, example_book, monkeypatch
    ):
        chapter_id = _chapter_id(example_book, 1)

        def broken_mark_ready(proposal, result):
            raise SQLAlchemyError("database is locked")

        monkeypatch.setattr(service.proposals, "_mark_ready", broken_mark_ready)

        with pytest.raises(SQLAlchemyError):
            service.generate_proposal(revision.id, chapter_id)

        proposal = service.get_proposal(revision.id, chapter_id)
        db.refresh(proposal)
        assert proposal.status == ProposalStatus.ERROR

        monkeypatch.undo()
        assert service.generate_proposal(revision.id, chapter_id).status == ProposalStatus.READY

    @pytest.mark.parametrize("status", [ProposalStatus.READY, ProposalStatus.APPLIED, ProposalStatus.GENERATING])
    def test_guard_rejects_other_states(self, db, service, revision, example_book, condenser, status):
        chapter_id = _chapter_id(example_book, 1)
        proposal = service.get_proposal(revision.id, chapter_id)
        proposal.status = status
        db.commit()

        with pytest.raises(ProposalStateError) as exc_info:
            service.generate_proposal(revision.id, chapter_id)

        assert exc_info.value.current == status.value
        assert condenser.calls == []
        db.refresh(proposal)
        assert proposal.status == status

    def test_requires_active_revision(self, service, revision, example_book):
        service.abandon_revision(revision.id)

        with pytest.raises(RevisionStateError):
            service.generate_proposal(revision.id, _chapter_id(example_book, 1))

    def test_unknown_chapter(self, service, revision):
        with pytest.raises(ProposalNotFoundError):
            service.generate_proposal(revision.id, "no-such-chapter")


class TestApprove:
    def test_approve_adds_reduction(self, db, service, revision, example_book, condenser):
        chapter_id = _chapter_id(example_book, 2)
        condenser.reductions[2] = 3000
        service.generate_proposal(revision.id, chapter_id)

        updated = service.approve_proposal(revision.id, chapter_id)

        assert updated.words_cut_so_far == 3000
        assert updated.current_word_count == 92000
        assert updated.chapters_reviewed == 1
        assert updated.status == RevisionStatus.IN_PROGRESS

        proposal = service.get_proposal(revision.id, chapter_id)
        assert proposal.status == ProposalStatus.APPLIED
        assert proposal.user_decision == UserDecision.APPROVED
        assert proposal.decision_at is not None
        assert proposal.condensed_content is not None

    def test_approve_writes_back_chapter(self, db, service, revision, example_book, condenser):
        chapter = example_book[1][0]
        condenser.reductions[1] = 2000
        service.generate_proposal(revision.id, chapter.id)

        service.approve_proposal(revision.id, chapter.id)

        db.refresh(chapter)
        assert chapter.word_count == 18000
        assert len(chapter.content.split()) == 18000

    def test_second_approve_fails_without_double_counting(self, service, revision, example_book, condenser):
        chapter_id = _chapter_id(example_book, 1)
        condenser.reductions[1] = 2000
        service.generate_proposal(revision.id, chapter_id)
        service.approve_proposal(revision.id, chapter_id)

        with pytest.raises(ProposalStateError):
            service.approve_proposal(revision.id, chapter_id)

        assert service.get_revision(revision.id).words_cut_so_far == 2000

    def test_approve_requires_ready(self, service, revision, example_book):
        with pytest.raises(ProposalStateError, match="requires ready"):
            service.approve_proposal(revision.id, _chapter_id(example_book, 1))

    def test_example_book_reaches_target(self, service, revision, example_book, condenser):
        condenser.reductions.update({1: 2000, 2: 3000, 3: 10000})
        percents = [service.get_progress(revision.id).percent_complete]

        for number in (1, 2, 3):
            chapter_id = _chapter_id(example_book, number)
            service.generate_proposal(revision.id, chapter_id)
            service.approve_proposal(revision.id, chapter_id)
            percents.append(service.get_progress(revision.id).percent_complete)

        assert percents == sorted(percents)
        progress = service.get_progress(revision.id)
        assert progress.words_reduced == 15000
        assert progress.current_word_count == 80000
        assert progress.percent_complete == 100.0
        assert progress.is_within_tolerance is True
        assert progress.is_complete is True

        final = service.get_revision(revision.id)
        assert final.status == RevisionStatus.COMPLETED
        assert final.completed_at is not None
        assert final.active_book_id is None
        assert service.validate_completion(revision.id).status == "within_tolerance"


class TestReject:
    def test_reject_keeps_word_counts(self, service, revision, example_book):
        chapter_id = _chapter_id(example_book, 1)
        service.generate_proposal(revision.id, chapter_id)

        proposal = service.reject_proposal(revision.id, chapter_id, "Loses the argument scene")

        assert proposal.status == ProposalStatus.REJECTED
        assert proposal.user_decision == UserDecision.REJECTED
        assert proposal.user_notes == "Loses the argument scene"
        assert proposal.condensed_content is None

        current = service.get_revision(revision.id)
        assert current.words_cut_so_far == 0
        assert current.current_word_count == 95000
        assert current.chapters_reviewed == 1

    def test_approve_after_reject_fails(self, service, revision, example_book):
        chapter_id = _chapter_id(example_book, 1)
        service.generate_proposal(revision.id, chapter_id)
        service.reject_proposal(revision.id, chapter_id)

        with pytest.raises(ProposalStateError):
            service.approve_proposal(revision.id, chapter_id)

        assert service.get_revision(revision.id).words_cut_so_far == 0

    def test_reject_requires_ready(self, service, revision, example_book):
        with pytest.raises(ProposalStateError):
            service.reject_proposal(revision.id, _chapter_id(example_book, 1))


class TestRegenerate:
    def test_regenerate_rejected_proposal(self, service, revision, example_book):
        chapter_id = _chapter_id(example_book, 1)
        service.generate_proposal(revision.id, chapter_id)
        service.reject_proposal(revision.id, chapter_id, "Too aggressive")

        proposal = service.regenerate_proposal(revision.id, chapter_id)

        assert proposal.status == ProposalStatus.READY
        assert proposal.user_decision == UserDecision.PENDING
        assert proposal.user_notes is None
        assert service.get_revision(revision.id).chapters_reviewed == 0

    def test_regenerate_error_proposal(self, service, revision, example_book, condenser):
        chapter_id = _chapter_id(example_book, 1)
        condenser.fail(1)
        service.generate_proposal(revision.id, chapter_id)
        condenser.failures.clear()

        proposal = service.regenerate_proposal(revision.id, chapter_id)

        assert proposal.status == ProposalStatus.READY

    def test_rejection_over_target_keeps_revision_open(
        self, service, revision, example_book, condenser
    ):
        book_id, _ = example_book
        condenser.reductions.update({1: 2000, 2: 3000, 3: 10000})
        for number in (1, 2):
            chapter_id = _chapter_id(example_book, number)
            service.generate_proposal(revision.id, chapter_id)
            service.approve_proposal(revision.id, chapter_id)
        last = _chapter_id(example_book, 3)
        service.generate_proposal(revision.id, last)

        service.reject_proposal(revision.id, last, "Cuts the climax")

        current = service.get_revision(revision.id)
        assert current.chapters_reviewed == 3
        assert current.current_word_count == 90000
        assert current.status == RevisionStatus.IN_PROGRESS
        assert current.active_book_id == book_id
        assert service.get_active_revision(book_id).id == revision.id
        assert service.validate_completion(revision.id).status == "over_target"

        proposal = service.regenerate_proposal(revision.id, last)
        assert proposal.status == ProposalStatus.READY

        final = service.approve_proposal(revision.id, last)
        assert final.current_word_count == 80000
        assert final.status == RevisionStatus.COMPLETED
        assert final.active_book_id is None

    def test_cannot_regenerate_applied(self, service, revision, example_book):
        chapter_id = _chapter_id(example_book, 1)
        service.generate_proposal(revision.id, chapter_id)
        service.approve_proposal(revision.id, chapter_id)

        with pytest.raises(ProposalStateError):
            service.regenerate_proposal(revision.id, chapter_id)

    def test_cannot_regenerate_pending(self, service, revision, example_book):
        with pytest.raises(ProposalStateError):
            service.regenerate_proposal(revision.id, _chapter_id(example_book, 1))
