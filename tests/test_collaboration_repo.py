from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from conftest import build_catalog

from complianceiq.domain.models import Actor, CollaborationStatus
from complianceiq.domain.workflow import apply_transition
from complianceiq.infrastructure.exceptions import ConflictError
from complianceiq.infrastructure.models import Base
from complianceiq.infrastructure.repositories import AssessmentRepo, CollaborationRepo
from complianceiq.infrastructure.uow import UnitOfWork
from complianceiq.utils.seed import load_catalog

ALICE = Actor("alice")
BOB = Actor("bob", can_review=True)
ZOE = Actor("zoe", can_review=True)
SECTION = "governance"


@pytest.fixture
def file_db(tmp_path: Path) -> tuple[sessionmaker[Session], str]:
    """File-backed SQLite so two sessions really use two connections."""
    engine = create_engine(f"sqlite:///{tmp_path / 'collab.db'}", future=True)
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, future=True, expire_on_commit=False)
    uow = UnitOfWork(SessionLocal)
    with uow.begin() as s:
        load_catalog(s, build_catalog())
    with uow.begin() as s:
        row = AssessmentRepo(s).create_assessment(
            name="Concurrency", persona_id="data-science", assessment_id="a-1"
        )
        assessment_id = row.id
    yield SessionLocal, assessment_id
    engine.dispose()


def test_first_transition_creates_row(file_db):
    SessionLocal, assessment_id = file_db
    with UnitOfWork(SessionLocal).begin() as s:
        state = CollaborationRepo(s).transition(
            assessment_id, SECTION, None, CollaborationStatus.DRAFT, ALICE, comment="Starting"
        )
        assert state.id is not None

    with SessionLocal() as s:
        stored = CollaborationRepo(s).get_state(assessment_id, SECTION)
        assert stored.current_state == CollaborationStatus.DRAFT
        assert stored.version == 1
        assert stored.assigned_to == "alice"
        assert [c.text for c in stored.comments] == ["Starting"]
        assert len(CollaborationRepo(s).list_states(assessment_id)) == 1


def test_stale_expected_state_is_a_conflict(file_db):
    SessionLocal, assessment_id = file_db
    with UnitOfWork(SessionLocal).begin() as s:
        repo = CollaborationRepo(s)
        repo.transition(assessment_id, SECTION, None, CollaborationStatus.DRAFT, ALICE)
        repo.transition(
            assessment_id, SECTION, CollaborationStatus.DRAFT, CollaborationStatus.IN_REVIEW, ALICE
        )

    with SessionLocal() as s, pytest.raises(ConflictError):
        CollaborationRepo(s).transition(
            assessment_id, SECTION, CollaborationStatus.DRAFT, CollaborationStatus.IN_REVIEW, ALICE
        )


def test_compare_and_swap_between_two_sessions(file_db):
    SessionLocal, assessment_id = file_db
    with UnitOfWork(SessionLocal).begin() as s:
        repo = CollaborationRepo(s)
        repo.transition(assessment_id, SECTION, None, CollaborationStatus.DRAFT, ALICE)
        repo.transition(
            assessment_id, SECTION, CollaborationStatus.DRAFT, CollaborationStatus.IN_REVIEW, ALICE
        )

    first = SessionLocal()
    second = SessionLocal()
    try:
        stale = CollaborationRepo(second).get_state(assessment_id, SECTION)

        CollaborationRepo(first).transition(
            assessment_id,
            SECTION,
            CollaborationStatus.IN_REVIEW,
            CollaborationStatus.APPROVED,
            BOB,
        )
        first.commit()

        rejected = apply_transition(assessment_id, SECTION, stale, CollaborationStatus.REJECTED, ZOE)
        with pytest.raises(ConflictError):
            CollaborationRepo(second)._compare_and_swap(stale.id, stale, rejected)
        second.rollback()
    finally:
        first.close()
        second.close()

    with SessionLocal() as s:
        final = CollaborationRepo(s).get_state(assessment_id, SECTION)
        assert final.current_state == CollaborationStatus.APPROVED
        assert final.approved_by == "bob"
        assert final.version == 3


def test_concurrent_first_insert_is_a_conflict(file_db):
    SessionLocal, assessment_id = file_db
    with UnitOfWork(SessionLocal).begin() as s:
        CollaborationRepo(s).transition(
            assessment_id, SECTION, None, CollaborationStatus.DRAFT, ALICE
        )

    with SessionLocal() as s:
        duplicate = apply_transition(assessment_id, SECTION, None, CollaborationStatus.DRAFT, BOB)
        with pytest.raises(ConflictError):
            CollaborationRepo(s)._insert(duplicate)


def test_list_in_review_is_ordered_by_age(file_db):
    SessionLocal, assessment_id = file_db
    with UnitOfWork(SessionLocal).begin() as s:
        repo = CollaborationRepo(s)
        for section_id, hour in (("data-quality", 9), (SECTION, 7)):
            repo.transition(assessment_id, section_id, None, CollaborationStatus.DRAFT, ALICE)
            repo.transition(
                assessment_id,
                section_id,
                CollaborationStatus.DRAFT,
                CollaborationStatus.IN_REVIEW,
                ALICE,
                now=datetime(2026, 3, 1, hour),
            )

    with SessionLocal() as s:
        in_review = CollaborationRepo(s).list_in_review()
        assert [st.section_id for st in in_review] == [SECTION, "data-quality"]
