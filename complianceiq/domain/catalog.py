"""In-memory reference catalog snapshot."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import (
    AIModelType,
    ApplicabilityCondition,
    DeploymentScenario,
    Persona,
    Question,
    Section,
    SubPersona,
    TherapeuticArea,
)
from .ports import SectionFilter


def _index(items: Iterable) -> dict:
    return {item.id: item for item in items}


@dataclass(slots=True, frozen=True)
class Catalog:
    """
    Immutable catalog snapshot satisfying the ``CatalogStore`` contract.

    Questions carry their own applicability conditions. ``get_conditions``
    flattens them so the snapshot can stand in for a database-backed store.
    """

    personas: dict[str, Persona] = field(default_factory=dict)
    sub_personas: dict[str, SubPersona] = field(default_factory=dict)
    therapeutic_areas: dict[str, TherapeuticArea] = field(default_factory=dict)
    ai_model_types: dict[str, AIModelType] = field(default_factory=dict)
    deployment_scenarios: dict[str, DeploymentScenario] = field(default_factory=dict)
    sections: dict[str, Section] = field(default_factory=dict)
    questions: dict[str, Question] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        *,
        personas: Iterable[Persona] = (),
        sub_personas: Iterable[SubPersona] = (),
        therapeutic_areas: Iterable[TherapeuticArea] = (),
        ai_model_types: Iterable[AIModelType] = (),
        deployment_scenarios: Iterable[DeploymentScenario] = (),
        sections: Iterable[Section] = (),
        questions: Iterable[Question] = (),
    ) -> Catalog:
        return cls(
            personas=_index(personas),
            sub_personas=_index(sub_personas),
            therapeutic_areas=_index(therapeutic_areas),
            ai_model_types=_index(ai_model_types),
            deployment_scenarios=_index(deployment_scenarios),
            sections=_index(sections),
            questions=_index(questions),
        )

    def get_persona(self, persona_id: str) -> Persona | None:
        return self.personas.get(persona_id)

    def get_sub_persona(self, sub_persona_id: str) -> SubPersona | None:
        return self.sub_personas.get(sub_persona_id)

    def get_therapeutic_area(self, area_id: str) -> TherapeuticArea | None:
        return self.therapeutic_areas.get(area_id)

    def get_ai_model_type(self, model_type_id: str) -> AIModelType | None:
        return self.ai_model_types.get(model_type_id)

    def get_deployment_scenario(self, scenario_id: str) -> DeploymentScenario | None:
        return self.deployment_scenarios.get(scenario_id)

    def get_sections(self, section_filter: SectionFilter | None = None) -> list[Section]:
        sections = sorted(self.sections.values(), key=lambda s: s.section_number)
        if section_filter is None:
            return sections
        return [s for s in sections if section_filter.accepts(s)]

    def get_questions(self, section_ids: Iterable[str]) -> list[Question]:
        wanted = set(section_ids)
        return [q for q in self.questions.values() if q.section_id in wanted]

    def get_conditions(self, question_ids: Iterable[str]) -> list[ApplicabilityCondition]:
        conditions: list[ApplicabilityCondition] = []
        for question_id in question_ids:
            question = self.questions.get(question_id)
            if question is not None:
                conditions.extend(question.conditions)
        return conditions
