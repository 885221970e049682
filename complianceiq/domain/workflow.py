"""
Section review workflow.

Each (assessment, section) pair moves through::

    (none) -> draft -> in_review -> approved -> completed
                          |
                          +-> rejected -> draft

Every edge has a guard on the acting participant. A refused transition raises
``ForbiddenTransitionError``; it is never a silent no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, timedelta

from ..infrastructure.exceptions import ConflictError, ForbiddenTransitionError
from .models import (
    Actor,
    CollaborationComment,
    CollaborationStatus,
    SectionCollaborationState,
    utc_now,
)
from .ports import CollaborationStore

logger = logging.getLogger(__name__)

# Guard: (current state or None, actor) -> refusal reason, or None when allowed
Guard = Callable[[SectionCollaborationState | None, Actor], str | None]


def _any_participant(state: SectionCollaborationState | None, actor: Actor) -> str | None:
    return None


def _assignee_only(state: SectionCollaborationState | None, actor: Actor) -> str | None:
    if state is None or state.assigned_to != actor.actor_id:
        return "only the assigned contributor may do this"
    return None


def _independent_reviewer(state: SectionCollaborationState | None, actor: Actor) -> str | None:
    if not (actor.can_review or actor.is_admin):
        return "reviewer or administrator rights are required"
    if state is not None and state.assigned_to == actor.actor_id:
        return "the assigned contributor cannot review their own section"
    return None


def _assignee_or_admin(state: SectionCollaborationState | None, actor: Actor) -> str | None:
    if actor.is_admin:
        return None
    return _assignee_only(state, actor)


TRANSITIONS: dict[tuple[CollaborationStatus | None, CollaborationStatus], Guard] = {
    (None, CollaborationStatus.DRAFT): _any_participant,
    (CollaborationStatus.DRAFT, CollaborationStatus.IN_REVIEW): _assignee_only,
    (CollaborationStatus.IN_REVIEW, CollaborationStatus.APPROVED): _independent_reviewer,
    (CollaborationStatus.IN_REVIEW, CollaborationStatus.REJECTED): _independent_reviewer,
    (CollaborationStatus.APPROVED, CollaborationStatus.COMPLETED): _assignee_or_admin,
    (CollaborationStatus.REJECTED, CollaborationStatus.DRAFT): _assignee_only,
}


def allowed_targets(current: CollaborationStatus | None) -> list[CollaborationStatus]:
    return [to for (frm, to) in TRANSITIONS if frm == current]


def actor_role(state: SectionCollaborationState | None, actor: Actor) -> str:
    if not actor.is_active:
        return "inactive participant"
    if actor.is_admin:
        return "admin"
    if state is not None and state.assigned_to == actor.actor_id:
        return "assignee"
    if actor.can_review:
        return "reviewer"
    return "participant"


def check_transition(
    state: SectionCollaborationState | None, to_state: CollaborationStatus, actor: Actor
) -> None:
    """Raise ``ForbiddenTransitionError`` unless ``actor`` may move ``state`` to ``to_state``."""
    from_state = state.current_state if state is not None else None
    role = actor_role(state, actor)

    guard = TRANSITIONS.get((from_state, to_state))
    if guard is None:
        raise ForbiddenTransitionError(from_state, to_state, role, "no such transition")
    if not actor.is_active:
        raise ForbiddenTransitionError(from_state, to_state, role, "participant is not active")

    reason = guard(state, actor)
    if reason is not None:
        raise ForbiddenTransitionError(from_state, to_state, role, reason)


def apply_transition(
    assessment_id: str,
    section_id: str,
    previous: SectionCollaborationState | None,
    to_state: CollaborationStatus,
    actor: Actor,
    comment: str | None = None,
    now: datetime | None = None,
) -> SectionCollaborationState:
    """
    Return the state that results from a permitted transition.

    ``previous`` is left untouched. The version is bumped on every transition
    so stores can detect concurrent writers.
    """
    check_transition(previous, to_state, actor)
    now = now or utc_now()

    if previous is None:
        state = SectionCollaborationState(
            assessment_id=assessment_id,
            section_id=section_id,
            current_state=to_state,
            assigned_to=actor.actor_id,
            version=0,
        )
    else:
        state = replace(previous, comments=list(previous.comments))

    state.current_state = to_state
    state.last_updated = now
    state.version = (previous.version + 1) if previous is not None else 1

    if to_state in (CollaborationStatus.APPROVED, CollaborationStatus.REJECTED):
        state.reviewed_by = actor.actor_id
    if to_state == CollaborationStatus.APPROVED:
        state.approved_by = actor.actor_id

    if comment:
        state.comments.append(
            CollaborationComment(author=actor.actor_id, state=to_state.value, text=comment, at=now)
        )
    return state


def transition_section(
    store: CollaborationStore,
    assessment_id: str,
    section_id: str,
    to_state: CollaborationStatus,
    actor: Actor,
    comment: str | None = None,
    now: datetime | None = None,
    retries: int = 0,
) -> SectionCollaborationState:
    """
    Move a section to ``to_state`` through ``store``.

    The current state is re-read and the guard re-evaluated on each attempt.
    ``ConflictError`` is raised once ``retries`` extra attempts are exhausted.
    """
    attempt = 0
    while True:
        current = store.get_state(assessment_id, section_id)
        check_transition(current, to_state, actor)
        from_state = current.current_state if current is not None else None
        try:
            return store.transition(
                assessment_id, section_id, from_state, to_state, actor, comment=comment, now=now
            )
        except ConflictError:
            if attempt >= retries:
                raise
            attempt += 1
            logger.info(
                "Retrying transition of section %s after concurrent update (attempt %d)",
                section_id,
                attempt,
            )


def is_signed_off(state: SectionCollaborationState | None) -> bool:
    return state is not None and state.current_state in (
        CollaborationStatus.APPROVED,
        CollaborationStatus.COMPLETED,
    )


def find_overdue_reviews(
    states: Iterable[SectionCollaborationState], now: datetime, max_age: timedelta
) -> list[SectionCollaborationState]:
    """Sections waiting in review for longer than ``max_age``, oldest first."""
    overdue = [
        s
        for s in states
        if s.current_state == CollaborationStatus.IN_REVIEW
        and s.last_updated is not None
        and now - s.last_updated > max_age
    ]
    return sorted(overdue, key=lambda s: s.last_updated)
