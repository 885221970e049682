"""Storage contracts the engine depends on."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from .models import (
    Actor,
    AIModelType,
    ApplicabilityCondition,
    CollaborationStatus,
    CompletionStatus,
    DeploymentScenario,
    Persona,
    Question,
    Response,
    Section,
    SectionCollaborationState,
    SubPersona,
    TherapeuticArea,
)


@dataclass(slots=True, frozen=True)
class SectionFilter:
    section_ids: frozenset[str] | None = None
    critical_only: bool = False

    def accepts(self, section: Section) -> bool:
        if self.section_ids is not None and section.id not in self.section_ids:
            return False
        return not self.critical_only or section.is_critical_blocker


class CatalogStore(Protocol):
    def get_persona(self, persona_id: str) -> Persona | None: ...

    def get_sub_persona(self, sub_persona_id: str) -> SubPersona | None: ...

    def get_therapeutic_area(self, area_id: str) -> TherapeuticArea | None: ...

    def get_ai_model_type(self, model_type_id: str) -> AIModelType | None: ...

    def get_deployment_scenario(self, scenario_id: str) -> DeploymentScenario | None: ...

    def get_sections(self, section_filter: SectionFilter | None = None) -> list[Section]: ...

    def get_questions(self, section_ids: Iterable[str]) -> list[Question]: ...

    def get_conditions(self, question_ids: Iterable[str]) -> list[ApplicabilityCondition]: ...


class ResponseStore(Protocol):
    def get_responses(self, assessment_id: str) -> dict[str, Response]: ...

    def upsert_response(
        self,
        assessment_id: str,
        question_id: str,
        value: Any,
        evidence_documents: list[str] | None = None,
        completion_status: CompletionStatus = CompletionStatus.COMPLETE,
    ) -> Response: ...


class CollaborationStore(Protocol):
    def get_state(self, assessment_id: str, section_id: str) -> SectionCollaborationState | None: ...

    def list_states(self, assessment_id: str) -> list[SectionCollaborationState]: ...

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
        """Apply a transition atomically; raise ConflictError if ``from_state`` is stale."""
        ...
