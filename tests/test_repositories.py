from __future__ import annotations

import pytest

from complianceiq.domain.models import CompletionStatus
from complianceiq.infrastructure.exceptions import NotFoundError
from complianceiq.infrastructure.repositories import (
    AssessmentRepo,
    ResponseRepo,
    SqlCatalogStore,
)


@pytest.fixture
def assessment_id(db_session) -> str:
    row = AssessmentRepo(db_session).create_assessment(
        name="Triage assistant",
        persona_id="data-science",
        therapeutic_area_ids=["oncology", "oncology"],
        assessment_id="a-42",
    )
    db_session.commit()
    return row.id


def test_sections_come_back_in_section_order(db_session):
    sections = SqlCatalogStore(db_session).get_sections()

    assert [s.id for s in sections] == [
        "governance",
        "data-quality",
        "oncology-controls",
        "ops-only",
    ]


def test_assessment_round_trip(db_session, assessment_id):
    assessment = AssessmentRepo(db_session).get_assessment(assessment_id)

    assert assessment.name == "Triage assistant"
    assert assessment.persona_id == "data-science"
    assert assessment.therapeutic_area_ids == ["oncology"]


def test_missing_assessment_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        AssessmentRepo(db_session).get_by_id_required("missing")


def test_response_upsert_updates_in_place(db_session, assessment_id):
    repo = ResponseRepo(db_session)
    repo.upsert_response(assessment_id, "gov-2", 2, completion_status=CompletionStatus.IN_PROGRESS)
    repo.upsert_response(assessment_id, "gov-2", 4, evidence_documents=["sop.pdf"])
    db_session.commit()

    responses = repo.get_responses(assessment_id)

    assert list(responses) == ["gov-2"]
    assert responses["gov-2"].value == 4
    assert responses["gov-2"].evidence_documents == ["sop.pdf"]
    assert responses["gov-2"].completion_status is CompletionStatus.COMPLETE
