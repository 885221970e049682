from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialises with camelCase keys and accepts either spelling on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PersonaItem(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    is_admin: bool = False


class SubPersonaItem(CamelModel):
    id: str
    name: str
    expertise_level: Optional[str] = None


class ResolveRequest(CamelModel):
    persona_id: Optional[str] = None
    sub_persona_id: Optional[str] = None
    therapeutic_area_ids: list[str] = Field(default_factory=list)
    ai_model_type_ids: list[str] = Field(default_factory=list)
    deployment_scenario_ids: list[str] = Field(default_factory=list)
    company_id: Optional[str] = None
    is_admin: bool = False


class AssessmentCreateRequest(CamelModel):
    name: str
    persona_id: str
    sub_persona_id: Optional[str] = None
    therapeutic_area_ids: list[str] = Field(default_factory=list)
    ai_model_type_ids: list[str] = Field(default_factory=list)
    deployment_scenario_ids: list[str] = Field(default_factory=list)
    company_id: Optional[str] = None


class AssessmentDetail(CamelModel):
    id: str
    name: str
    persona_id: Optional[str] = None
    sub_persona_id: Optional[str] = None
    company_id: Optional[str] = None
    therapeutic_area_ids: list[str] = Field(default_factory=list)
    ai_model_type_ids: list[str] = Field(default_factory=list)
    deployment_scenario_ids: list[str] = Field(default_factory=list)
    created_at: datetime


class QuestionItem(CamelModel):
    id: str
    text: str
    question_type: str
    points: int
    is_blocker: bool
    category: Optional[str] = None
    evidence_required: list[str] = Field(default_factory=list)
    responsible_roles: list[str] = Field(default_factory=list)


class SectionItem(CamelModel):
    id: str
    title: str
    section_number: int
    base_points: int
    is_critical_blocker: bool
    total_questions: int
    questions: list[QuestionItem] = Field(default_factory=list)


class ComplexityItem(CamelModel):
    therapy_overlay: int
    model_complexity: int
    deployment_complexity: int
    total: int


class ResolvedAssessmentResponse(CamelModel):
    total_sections: int
    total_questions: int
    total_points: int
    critical_sections: int
    non_critical_sections: int
    production_blockers: int
    estimated_time: str
    is_admin_view: bool
    complexity: ComplexityItem
    sections: list[SectionItem]


class SectionScoreItem(CamelModel):
    section_id: str
    title: str
    is_critical_blocker: bool
    total_questions: int
    completed_questions: int
    earned_points: float
    max_points: int
    completion_rate: int
    critical_blockers: int
    collaboration_state: Optional[str] = None


class ScaleAnalyticsItem(CamelModel):
    total_responses: int
    average_score: float
    distribution: dict[int, int]
    improvement_areas: int
    overall_rating: str


class ScoreResponse(CamelModel):
    current_score: float
    max_possible_score: int
    completion_percentage: int
    critical_blockers: int
    production_status: Literal["production_ready", "not_production_ready"]
    readiness_tier: str
    answered_questions: int
    total_questions: int
    sections_signed_off: int
    complexity_score: int
    sections: list[SectionScoreItem]
    scale_analytics: ScaleAnalyticsItem
    recommendations: list[str] = Field(default_factory=list)
    critical_gaps: list[str] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)


class ResponseUpdate(CamelModel):
    value: Any = None
    evidence_documents: list[str] = Field(default_factory=list)
    completion_status: Literal["not_started", "in_progress", "complete"] = "complete"


class ResponseItem(CamelModel):
    assessment_id: str
    question_id: str
    value: Any = None
    evidence_documents: list[str] = Field(default_factory=list)
    completion_status: str
    updated_at: Optional[datetime] = None


class CommentItem(CamelModel):
    author: str
    state: str
    text: str
    at: datetime


class CollaborationStateItem(CamelModel):
    section_id: str
    current_state: str
    assigned_to: Optional[str] = None
    reviewed_by: Optional[str] = None
    approved_by: Optional[str] = None
    last_updated: Optional[datetime] = None
    version: int
    comments: list[CommentItem] = Field(default_factory=list)


class TransitionRequest(CamelModel):
    target_state: Literal["draft", "in_review", "approved", "rejected", "completed"]
    actor_id: str
    can_review: bool = False
    is_admin: bool = False
    comment: Optional[str] = None
