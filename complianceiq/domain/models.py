from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


def utc_now() -> datetime:
    """Naive UTC timestamp, matching how the database stores datetimes."""
    return datetime.now(UTC).replace(tzinfo=None)


class QuestionType(StrEnum):
    BOOLEAN = "boolean"
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT = "text"
    FILE_UPLOAD = "file_upload"
    SCALE_1_5 = "scale_1_5"


class CompletionStatus(StrEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class CollaborationStatus(StrEnum):
    DRAFT = "draft"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class ProductionStatus(StrEnum):
    PRODUCTION_READY = "production_ready"
    NOT_READY = "not_production_ready"


class ReadinessTier(StrEnum):
    PRODUCTION_READY = "production_ready"
    PRODUCTION_CONDITIONAL = "production_conditional"
    PRE_PRODUCTION = "pre_production"
    DEVELOPMENT_COMPLETE = "development_complete"
    NOT_READY = "not_ready"


class ConditionDimension(StrEnum):
    PERSONA = "persona"
    SUB_PERSONA = "sub_persona"
    THERAPEUTIC_AREA = "therapeutic_area"
    AI_MODEL_TYPE = "ai_model_type"
    DEPLOYMENT_SCENARIO = "deployment_scenario"


# ---------------------------------------------------------------------------
# Reference catalog
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Persona:
    id: str
    name: str
    description: str | None = None
    is_admin: bool = False
    is_active: bool = True


@dataclass(slots=True, frozen=True)
class SubPersona:
    id: str
    persona_id: str
    name: str
    expertise_level: str | None = None  # e.g. "Junior", "Senior", "Principal"


@dataclass(slots=True, frozen=True)
class TherapeuticArea:
    id: str
    name: str
    complexity_weight: int = 0
    description: str | None = None


@dataclass(slots=True, frozen=True)
class AIModelType:
    id: str
    name: str
    complexity_weight: int = 0
    description: str | None = None


@dataclass(slots=True, frozen=True)
class DeploymentScenario:
    id: str
    name: str
    complexity_weight: int = 0
    description: str | None = None


@dataclass(slots=True, frozen=True)
class Section:
    id: str
    title: str
    section_number: int
    base_points: int = 0  # display default only
    is_critical_blocker: bool = False
    section_type: str = "standard"
    description: str | None = None


# ---------------------------------------------------------------------------
# Applicability conditions: one variant per dimension
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class PersonaCondition:
    question_id: str
    persona_id: str
    dimension = ConditionDimension.PERSONA


@dataclass(slots=True, frozen=True)
class SubPersonaCondition:
    question_id: str
    sub_persona_id: str | None = None  # None means any sub-persona
    dimension = ConditionDimension.SUB_PERSONA


@dataclass(slots=True, frozen=True)
class TherapeuticAreaCondition:
    question_id: str
    therapeutic_area_id: str
    dimension = ConditionDimension.THERAPEUTIC_AREA


@dataclass(slots=True, frozen=True)
class AIModelTypeCondition:
    question_id: str
    ai_model_type_id: str
    dimension = ConditionDimension.AI_MODEL_TYPE


@dataclass(slots=True, frozen=True)
class DeploymentScenarioCondition:
    question_id: str
    deployment_scenario_id: str
    dimension = ConditionDimension.DEPLOYMENT_SCENARIO


ApplicabilityCondition = (
    PersonaCondition
    | SubPersonaCondition
    | TherapeuticAreaCondition
    | AIModelTypeCondition
    | DeploymentScenarioCondition
)


@dataclass(slots=True, frozen=True)
class Question:
    id: str
    section_id: str
    text: str
    question_type: QuestionType
    points: int
    is_blocker: bool = False
    category: str | None = None
    evidence_required: tuple[str, ...] = ()
    responsible_roles: tuple[str, ...] = ()
    order_index: int = 0
    conditions: tuple[ApplicabilityCondition, ...] = ()


# ---------------------------------------------------------------------------
# Assessment state
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ResolutionContext:
    persona_id: str | None
    sub_persona_id: str | None = None
    therapeutic_area_ids: frozenset[str] = frozenset()
    ai_model_type_ids: frozenset[str] = frozenset()
    deployment_scenario_ids: frozenset[str] = frozenset()
    company_id: str | None = None


@dataclass(slots=True)
class Assessment:
    id: str
    name: str
    persona_id: str | None
    sub_persona_id: str | None
    company_id: str | None
    therapeutic_area_ids: list[str]
    ai_model_type_ids: list[str]
    deployment_scenario_ids: list[str]
    created_at: datetime

    def to_context(self) -> ResolutionContext:
        return ResolutionContext(
            persona_id=self.persona_id,
            sub_persona_id=self.sub_persona_id,
            therapeutic_area_ids=frozenset(self.therapeutic_area_ids),
            ai_model_type_ids=frozenset(self.ai_model_type_ids),
            deployment_scenario_ids=frozenset(self.deployment_scenario_ids),
            company_id=self.company_id,
        )


@dataclass(slots=True)
class Response:
    assessment_id: str
    question_id: str
    value: Any
    evidence_documents: list[str] = field(default_factory=list)
    completion_status: CompletionStatus = CompletionStatus.NOT_STARTED
    updated_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class CollaborationComment:
    author: str
    state: str
    text: str
    at: datetime


@dataclass(slots=True)
class SectionCollaborationState:
    assessment_id: str
    section_id: str
    current_state: CollaborationStatus
    assigned_to: str | None = None
    reviewed_by: str | None = None
    approved_by: str | None = None
    comments: list[CollaborationComment] = field(default_factory=list)
    last_updated: datetime | None = None
    version: int = 0
    id: int | None = None


@dataclass(slots=True, frozen=True)
class Actor:
    """The participant requesting a workflow transition."""

    actor_id: str
    can_review: bool = False
    is_admin: bool = False
    is_active: bool = True
