from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError as SQLIntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.models import (
    Actor,
    CollaborationComment,
    CollaborationStatus,
    SectionCollaborationState,
)
from ..domain.workflow import apply_transition
from .exceptions import ConflictError, handle_database_error
from .logging import get_logger, log_database_operation as log_op
from .models import SectionCollaborationStateORM
from .repositories_base import BaseRepository as GenericBaseRepository

logger = get_logger(__name__)


def _dump_comments(comments: list[CollaborationComment]) -> str | None:
    if not comments:
        return None
    return json.dumps(
        [
            {"author": c.author, "state": c.state, "text": c.text, "at": c.at.isoformat()}
            for c in comments
        ]
    )


def _load_comments(raw: str | None) -> list[CollaborationComment]:
    if not raw:
        return []
    return [
        CollaborationComment(
            author=item["author"],
            state=item["state"],
            text=item["text"],
            at=datetime.fromisoformat(item["at"]),
        )
        for item in json.loads(raw)
    ]


def state_from_row(row: SectionCollaborationStateORM) -> SectionCollaborationState:
    return SectionCollaborationState(
        id=row.id,
        assessment_id=row.assessment_id,
        section_id=row.section_id,
        current_state=CollaborationStatus(row.current_state),
        assigned_to=row.assigned_to,
        reviewed_by=row.reviewed_by,
        approved_by=row.approved_by,
        comments=_load_comments(row.comments),
        last_updated=row.last_updated,
        version=row.version,
    )


class CollaborationRepo(GenericBaseRepository[SectionCollaborationStateORM]):
    """
    Collaboration store with compare-and-swap transitions.

    Existing rows are updated with ``WHERE current_state = ? AND version = ?``;
    no affected row means another writer got there first. The first
    transition inserts the row and relies on the (assessment, section) unique
    constraint for the same guarantee.
    """

    model = SectionCollaborationStateORM
    entity_name = "section_collaboration_state"

    def __init__(self, session: Session):
        super().__init__(session)

    @log_op("collaboration.get_state")
    def get_state(self, assessment_id: str, section_id: str) -> SectionCollaborationState | None:
        row = self._find(assessment_id, section_id)
        return state_from_row(row) if row is not None else None

    @log_op("collaboration.list_states")
    def list_states(self, assessment_id: str) -> list[SectionCollaborationState]:
        rows = (
            self.s.query(SectionCollaborationStateORM)
            .filter(SectionCollaborationStateORM.assessment_id == assessment_id)
            .order_by(SectionCollaborationStateORM.id)
            .populate_existing()
            .all()
        )
        return [state_from_row(r) for r in rows]

    @log_op("collaboration.list_in_review")
    def list_in_review(self) -> list[SectionCollaborationState]:
        rows = (
            self.s.query(SectionCollaborationStateORM)
            .filter(SectionCollaborationStateORM.current_state == CollaborationStatus.IN_REVIEW.value)
            .order_by(SectionCollaborationStateORM.last_updated)
            .all()
        )
        return [state_from_row(r) for r in rows]

    @log_op("collaboration.transition")
    def transition(
        self,
        assessment_id: str,
        section_id: str,
        from_state: CollaborationStatus | None,
        to_state: CollaborationStatus,
        actor: Actor,
        comment: str | None = None,
        now: datetime | None = None,
    ) -> SectionCollaborationState:
        row = self._find(assessment_id, section_id)
        current = state_from_row(row) if row is not None else None
        current_value = current.current_state if current is not None else None
        if current_value != from_state:
            raise ConflictError(assessment_id, section_id, from_state)

        new_state = apply_transition(
            assessment_id, section_id, current, to_state, actor, comment=comment, now=now
        )

        if row is None:
            return self._insert(new_state)
        return self._compare_and_swap(row.id, current, new_state)

    def _insert(self, state: SectionCollaborationState) -> SectionCollaborationState:
        row = SectionCollaborationStateORM(
            assessment_id=state.assessment_id,
            section_id=state.section_id,
            current_state=state.current_state.value,
            assigned_to=state.assigned_to,
            reviewed_by=state.reviewed_by,
            approved_by=state.approved_by,
            comments=_dump_comments(state.comments),
            version=state.version,
            last_updated=state.last_updated,
        )
        try:
            self.s.add(row)
            self.s.flush()
        except SQLIntegrityError as e:
            self.s.rollback()
            logger.info(
                f"Concurrent creation of collaboration state for section {state.section_id}"
            )
            raise ConflictError(state.assessment_id, state.section_id, None) from e
        except SQLAlchemyError as e:
            raise handle_database_error(e, "insert_collaboration_state") from e
        state.id = row.id
        return state

    def _compare_and_swap(
        self,
        row_id: int,
        previous: SectionCollaborationState,
        state: SectionCollaborationState,
    ) -> SectionCollaborationState:
        stmt = (
            update(SectionCollaborationStateORM)
            .where(
                SectionCollaborationStateORM.id == row_id,
                SectionCollaborationStateORM.current_state == previous.current_state.value,
                SectionCollaborationStateORM.version == previous.version,
            )
            .values(
                current_state=state.current_state.value,
                assigned_to=state.assigned_to,
                reviewed_by=state.reviewed_by,
                approved_by=state.approved_by,
                comments=_dump_comments(state.comments),
                version=state.version,
                last_updated=state.last_updated,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.s.execute(stmt)
        except SQLAlchemyError as e:
            raise handle_database_error(e, "update_collaboration_state") from e

        if result.rowcount == 0:
            raise ConflictError(
                previous.assessment_id, previous.section_id, previous.current_state.value
            )
        logger.info(
            f"Section {state.section_id}: {previous.current_state.value} -> "
            f"{state.current_state.value} (v{state.version})"
        )
        return state

    def _find(self, assessment_id: str, section_id: str) -> SectionCollaborationStateORM | None:
        return (
            self.s.query(SectionCollaborationStateORM)
            .filter(
                SectionCollaborationStateORM.assessment_id == assessment_id,
                SectionCollaborationStateORM.section_id == section_id,
            )
            .populate_existing()
            .one_or_none()
        )
