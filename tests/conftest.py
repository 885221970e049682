from __future__ import annotations

import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from complianceiq.domain.catalog import Catalog
from complianceiq.domain.models import (
    Actor,
    AIModelType,
    AIModelTypeCondition,
    CollaborationStatus,
    DeploymentScenario,
    Persona,
    PersonaCondition,
    Question,
    QuestionType,
    ResolutionContext,
    Section,
    SectionCollaborationState,
    SubPersona,
    SubPersonaCondition,
    TherapeuticArea,
    TherapeuticAreaCondition,
)
from complianceiq.domain.workflow import apply_transition
from complianceiq.infrastructure.exceptions import ConflictError
from complianceiq.infrastructure.models import Base
from complianceiq.utils.seed import load_catalog

os.environ.setdefault("APP_ENVIRONMENT", "testing")


def build_catalog() -> Catalog:
    """
    Small catalog used across the suite.

    For a senior data scientist working on an oncology LLM the resolved
    assessment is governance (critical), data-quality and oncology-controls
    (critical): 6 questions worth 33 points, 3 of them production blockers.
    """
    return Catalog.build(
        personas=[
            Persona("data-science", "Data Science"),
            Persona("clinical-ops", "Clinical Operations"),
            Persona("admin", "Administrator", is_admin=True),
            Persona("retired", "Retired persona", is_active=False),
        ],
        sub_personas=[
            SubPersona("ds-senior", "data-science", "Senior Data Scientist", "Senior"),
            SubPersona("ds-junior", "data-science", "Junior Data Scientist", "Junior"),
            SubPersona("ops-lead", "clinical-ops", "Operations Lead", "Principal"),
        ],
        therapeutic_areas=[
            TherapeuticArea("oncology", "Oncology", complexity_weight=3),
            TherapeuticArea("cardiology", "Cardiology", complexity_weight=2),
        ],
        ai_model_types=[
            AIModelType("llm", "Large Language Model", complexity_weight=4),
            AIModelType("classical-ml", "Classical ML", complexity_weight=1),
        ],
        deployment_scenarios=[
            DeploymentScenario("cds", "Clinical Decision Support", complexity_weight=5),
            DeploymentScenario("research", "Research Only"),
        ],
        sections=[
            Section("ops-only", "Operational Readiness", 4),
            Section("oncology-controls", "Oncology Controls", 3, is_critical_blocker=True),
            Section("governance", "Governance", 1, base_points=15, is_critical_blocker=True),
            Section("data-quality", "Data Quality", 2),
        ],
        questions=[
            Question(
                "gov-2",
                "governance",
                "How mature is model change control?",
                QuestionType.SCALE_1_5,
                points=5,
                is_blocker=True,
                category="Change control",
                order_index=2,
            ),
            Question(
                "gov-1",
                "governance",
                "Is there a named accountable owner?",
                QuestionType.BOOLEAN,
                points=10,
                is_blocker=True,
                category="Accountability",
                evidence_required=("RACI",),
                responsible_roles=("Product owner",),
                order_index=1,
            ),
            Question(
                "dq-1",
                "data-quality",
                "Describe the training data lineage.",
                QuestionType.TEXT,
                points=4,
                order_index=1,
                conditions=(PersonaCondition("dq-1", "data-science"),),
            ),
            Question(
                "dq-2",
                "data-quality",
                "Rate label quality controls.",
                QuestionType.SCALE_1_5,
                points=5,
                order_index=2,
                conditions=(SubPersonaCondition("dq-2", "ds-senior"),),
            ),
            Question(
                "onc-1",
                "oncology-controls",
                "Is tumour-board sign-off documented?",
                QuestionType.BOOLEAN,
                points=6,
                is_blocker=True,
                order_index=1,
                conditions=(TherapeuticAreaCondition("onc-1", "oncology"),),
            ),
            Question(
                "onc-2",
                "oncology-controls",
                "Upload the hallucination evaluation report.",
                QuestionType.FILE_UPLOAD,
                points=3,
                order_index=2,
                conditions=(
                    TherapeuticAreaCondition("onc-2", "oncology"),
                    AIModelTypeCondition("onc-2", "llm"),
                ),
            ),
            Question(
                "ops-1",
                "ops-only",
                "Which on-call rota covers the service?",
                QuestionType.MULTIPLE_CHOICE,
                points=2,
                order_index=1,
                conditions=(PersonaCondition("ops-1", "clinical-ops"),),
            ),
        ],
    )


def senior_oncology_context() -> ResolutionContext:
    return ResolutionContext(
        persona_id="data-science",
        sub_persona_id="ds-senior",
        therapeutic_area_ids=frozenset({"oncology"}),
        ai_model_type_ids=frozenset({"llm"}),
    )


class InMemoryCollaborationStore:
    """Dict-backed collaboration store with the same compare-and-swap contract."""

    def __init__(self):
        self.states: dict[tuple[str, str], SectionCollaborationState] = {}

    def get_state(self, assessment_id, section_id):
        return self.states.get((assessment_id, section_id))

    def list_states(self, assessment_id):
        return [s for (a, _), s in self.states.items() if a == assessment_id]

    def transition(
        self, assessment_id, section_id, from_state, to_state, actor, comment=None, now=None
    ):
        current = self.states.get((assessment_id, section_id))
        current_value = current.current_state if current is not None else None
        if current_value != from_state:
            raise ConflictError(assessment_id, section_id, from_state)
        new_state = apply_transition(
            assessment_id, section_id, current, to_state, actor, comment=comment, now=now
        )
        self.states[(assessment_id, section_id)] = new_state
        return new_state


class FlakyCollaborationStore(InMemoryCollaborationStore):
    """Raises ``ConflictError`` for the first ``failures`` writes."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def transition(self, *args, **kwargs):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise ConflictError(args[0], args[1], args[2])
        return super().transition(*args, **kwargs)


@pytest.fixture
def catalog() -> Catalog:
    return build_catalog()


@pytest.fixture
def context() -> ResolutionContext:
    return senior_oncology_context()


@pytest.fixture
def contributor() -> Actor:
    return Actor("alice")


@pytest.fixture
def reviewer() -> Actor:
    return Actor("bob", can_review=True)


@pytest.fixture
def admin() -> Actor:
    return Actor("root", is_admin=True)


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture
def memory_store() -> InMemoryCollaborationStore:
    return InMemoryCollaborationStore()


@pytest.fixture
def session_factory() -> sessionmaker[Session]:
    """In-memory SQLite with the catalog loaded; shared across threads for TestClient."""
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, future=True, expire_on_commit=False)
    with SessionLocal() as s:
        load_catalog(s, build_catalog())
    yield SessionLocal
    engine.dispose()


@pytest.fixture
def db_session(session_factory) -> Session:
    session = session_factory()
    yield session
    session.close()


def in_review_state(section_id: str, last_updated: datetime) -> SectionCollaborationState:
    return SectionCollaborationState(
        assessment_id="a-1",
        section_id=section_id,
        current_state=CollaborationStatus.IN_REVIEW,
        assigned_to="alice",
        last_updated=last_updated,
        version=2,
    )
