from datetime import timedelta

import pytest

from conftest import FlakyCollaborationStore, in_review_state

from complianceiq.domain.models import Actor, CollaborationStatus
from complianceiq.domain.workflow import (
    allowed_targets,
    apply_transition,
    find_overdue_reviews,
    is_signed_off,
    transition_section,
)
from complianceiq.infrastructure.exceptions import ConflictError, ForbiddenTransitionError

DRAFT = CollaborationStatus.DRAFT
IN_REVIEW = CollaborationStatus.IN_REVIEW
APPROVED = CollaborationStatus.APPROVED
REJECTED = CollaborationStatus.REJECTED
COMPLETED = CollaborationStatus.COMPLETED


def move(store, to_state, actor, comment=None, now=None):
    return transition_section(store, "a-1", "governance", to_state, actor, comment=comment, now=now)


class TestHappyPath:
    def test_full_review_cycle(self, memory_store, contributor, reviewer, now):
        state = move(memory_store, DRAFT, contributor, now=now)
        assert state.current_state == DRAFT
        assert state.assigned_to == "alice"
        assert state.version == 1
        assert state.last_updated == now

        state = move(memory_store, IN_REVIEW, contributor)
        assert state.version == 2

        state = move(memory_store, APPROVED, reviewer, comment="Evidence checked")
        assert state.current_state == APPROVED
        assert state.reviewed_by == "bob"
        assert state.approved_by == "bob"
        assert [c.text for c in state.comments] == ["Evidence checked"]
        assert is_signed_off(state)

        state = move(memory_store, COMPLETED, contributor)
        assert state.current_state == COMPLETED
        assert state.version == 4
        assert is_signed_off(state)

    def test_rejection_returns_to_draft(self, memory_store, contributor, reviewer):
        move(memory_store, DRAFT, contributor)
        move(memory_store, IN_REVIEW, contributor)
        state = move(memory_store, REJECTED, reviewer, comment="Missing RACI")

        assert state.reviewed_by == "bob"
        assert state.approved_by is None
        assert not is_signed_off(state)

        state = move(memory_store, DRAFT, contributor)
        assert state.current_state == DRAFT
        assert len(state.comments) == 1

    def test_admin_may_complete_someone_elses_section(
        self, memory_store, contributor, reviewer, admin
    ):
        move(memory_store, DRAFT, contributor)
        move(memory_store, IN_REVIEW, contributor)
        move(memory_store, APPROVED, reviewer)

        assert move(memory_store, COMPLETED, admin).current_state == COMPLETED


class TestGuards:
    def test_only_assignee_submits_for_review(self, memory_store, contributor):
        move(memory_store, DRAFT, contributor)
        with pytest.raises(ForbiddenTransitionError):
            move(memory_store, IN_REVIEW, Actor("mallory"))

    def test_assignee_cannot_review_own_section(self, memory_store):
        author = Actor("carol", can_review=True)
        move(memory_store, DRAFT, author)
        move(memory_store, IN_REVIEW, author)

        with pytest.raises(ForbiddenTransitionError) as exc_info:
            move(memory_store, APPROVED, author)
        assert exc_info.value.actor_role == "assignee"

    def test_reviewer_rights_required(self, memory_store, contributor):
        move(memory_store, DRAFT, contributor)
        move(memory_store, IN_REVIEW, contributor)

        with pytest.raises(ForbiddenTransitionError):
            move(memory_store, APPROVED, Actor("dave"))

    def test_undefined_edges_are_refused(self, memory_store, contributor, reviewer):
        with pytest.raises(ForbiddenTransitionError):
            move(memory_store, APPROVED, reviewer)

        move(memory_store, DRAFT, contributor)
        with pytest.raises(ForbiddenTransitionError):
            move(memory_store, COMPLETED, contributor)
        with pytest.raises(ForbiddenTransitionError):
            move(memory_store, DRAFT, contributor)

    def test_inactive_actor_is_refused(self, memory_store):
        with pytest.raises(ForbiddenTransitionError):
            move(memory_store, DRAFT, Actor("eve", is_active=False))

    def test_refused_transition_leaves_state_untouched(self, memory_store, contributor):
        move(memory_store, DRAFT, contributor)
        with pytest.raises(ForbiddenTransitionError):
            move(memory_store, IN_REVIEW, Actor("mallory"))

        state = memory_store.get_state("a-1", "governance")
        assert state.current_state == DRAFT
        assert state.version == 1

    def test_allowed_targets(self):
        assert allowed_targets(None) == [DRAFT]
        assert set(allowed_targets(IN_REVIEW)) == {APPROVED, REJECTED}
        assert allowed_targets(COMPLETED) == []


def test_apply_transition_does_not_mutate_previous(contributor, now):
    created = apply_transition("a-1", "governance", None, DRAFT, contributor, "start", now=now)
    submitted = apply_transition("a-1", "governance", created, IN_REVIEW, contributor, "go")

    assert created.current_state == DRAFT
    assert len(created.comments) == 1
    assert len(submitted.comments) == 2
    assert submitted.version == created.version + 1


class TestConcurrency:
    def test_conflict_surfaces_without_retries(self, contributor):
        store = FlakyCollaborationStore(failures=1)
        with pytest.raises(ConflictError):
            move(store, DRAFT, contributor)
        assert store.get_state("a-1", "governance") is None

    def test_retry_re_reads_and_succeeds(self, contributor):
        store = FlakyCollaborationStore(failures=2)
        state = transition_section(store, "a-1", "governance", DRAFT, contributor, retries=2)

        assert state.current_state == DRAFT
        assert store.attempts == 3

    def test_retry_re_evaluates_guard(self, memory_store, contributor, reviewer):
        move(memory_store, DRAFT, contributor)
        move(memory_store, IN_REVIEW, contributor)
        move(memory_store, APPROVED, reviewer)

        # a second reviewer acting on a stale view gets the guard verdict for the new state
        with pytest.raises(ForbiddenTransitionError):
            transition_section(
                memory_store, "a-1", "governance", REJECTED, Actor("zoe", can_review=True), retries=3
            )


class TestOverdueReviews:
    def test_reviews_past_the_window_oldest_first(self, now):
        states = [
            in_review_state("governance", now - timedelta(hours=30)),
            in_review_state("data-quality", now - timedelta(hours=2)),
            in_review_state("oncology-controls", now - timedelta(hours=50)),
        ]
        overdue = find_overdue_reviews(states, now, timedelta(hours=24))

        assert [s.section_id for s in overdue] == ["oncology-controls", "governance"]

    def test_only_in_review_sections_count(self, now):
        state = in_review_state("governance", now - timedelta(days=3))
        state.current_state = APPROVED

        assert find_overdue_reviews([state], now, timedelta(hours=24)) == []
