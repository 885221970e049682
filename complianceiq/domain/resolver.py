"""
Assessment resolution: from a catalog and a resolution context to the exact
ordered set of sections and questions a participant has to answer.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, replace

from ..infrastructure.exceptions import NotFoundError, ValidationError
from .conditions import PERSONA_DIMENSIONS, include_question
from .models import (
    ApplicabilityCondition,
    ConditionDimension,
    Question,
    ResolutionContext,
    Section,
)
from .ports import CatalogStore

DEFAULT_MINUTES_PER_QUESTION = 2


def format_estimated_time(minutes: int) -> str:
    """Render minutes as ``"1h 4m"`` or ``"12m"``."""
    hours, mins = divmod(max(minutes, 0), 60)
    if hours:
        return f"{hours}h {mins}m"
    return f"{mins}m"


@dataclass(slots=True, frozen=True)
class ComplexityProfile:
    therapy_overlay: int = 0
    model_complexity: int = 0
    deployment_complexity: int = 0

    @property
    def total(self) -> int:
        return self.therapy_overlay + self.model_complexity + self.deployment_complexity


@dataclass(slots=True, frozen=True)
class ResolvedSection:
    section: Section
    questions: tuple[Question, ...]

    @property
    def id(self) -> str:
        return self.section.id

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def base_points(self) -> int:
        return sum(q.points for q in self.questions)

    @property
    def is_critical_blocker(self) -> bool:
        return self.section.is_critical_blocker

    @property
    def blocker_questions(self) -> int:
        return sum(1 for q in self.questions if q.is_blocker)


@dataclass(slots=True, frozen=True)
class ResolvedAssessment:
    context: ResolutionContext
    sections: tuple[ResolvedSection, ...]
    complexity: ComplexityProfile = ComplexityProfile()
    is_admin_view: bool = False
    minutes_per_question: int = DEFAULT_MINUTES_PER_QUESTION

    @property
    def total_sections(self) -> int:
        return len(self.sections)

    @property
    def total_questions(self) -> int:
        return sum(s.total_questions for s in self.sections)

    @property
    def total_points(self) -> int:
        return sum(s.base_points for s in self.sections)

    @property
    def critical_sections(self) -> int:
        return sum(1 for s in self.sections if s.is_critical_blocker)

    @property
    def non_critical_sections(self) -> int:
        return self.total_sections - self.critical_sections

    @property
    def production_blockers(self) -> int:
        """Blocker questions inside critical sections."""
        return sum(s.blocker_questions for s in self.sections if s.is_critical_blocker)

    @property
    def estimated_minutes(self) -> int:
        return self.total_questions * self.minutes_per_question

    @property
    def estimated_time(self) -> str:
        return format_estimated_time(self.estimated_minutes)

    def questions(self) -> list[Question]:
        return [q for s in self.sections for q in s.questions]

    def question_ids(self) -> frozenset[str]:
        return frozenset(q.id for s in self.sections for q in s.questions)

    def find_section(self, section_id: str) -> ResolvedSection | None:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None


class AssessmentResolver:
    """
    Resolves the applicable subset of a catalog for one context.

    Pure with respect to the catalog: identical catalog contents and context
    give equal ``ResolvedAssessment`` values.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        minutes_per_question: int = DEFAULT_MINUTES_PER_QUESTION,
        logger: logging.Logger | None = None,
    ):
        self.catalog = catalog
        self.minutes_per_question = minutes_per_question
        self.logger = logger or logging.getLogger(__name__)

    def resolve(
        self, context: ResolutionContext, persona_is_admin: bool = False
    ) -> ResolvedAssessment:
        is_admin = self._validate_context(context, persona_is_admin)
        ignore = self._ignored_dimensions(context, is_admin)

        sections = self.catalog.get_sections()
        section_ids = [s.id for s in sections]
        questions = self._with_conditions(self.catalog.get_questions(section_ids))

        by_section: dict[str, list[Question]] = defaultdict(list)
        for question in sorted(questions, key=lambda q: (q.order_index, q.id)):
            if include_question(question, context, ignore):
                by_section[question.section_id].append(question)

        resolved = tuple(
            ResolvedSection(section=section, questions=tuple(by_section[section.id]))
            for section in sorted(sections, key=lambda s: s.section_number)
            if by_section.get(section.id)
        )

        result = ResolvedAssessment(
            context=context,
            sections=resolved,
            complexity=self._complexity(context),
            is_admin_view=is_admin,
            minutes_per_question=self.minutes_per_question,
        )
        self.logger.debug(
            "Resolved %d sections / %d questions for persona %s",
            result.total_sections,
            result.total_questions,
            context.persona_id,
        )
        return result

    def _validate_context(self, context: ResolutionContext, persona_is_admin: bool) -> bool:
        persona = None
        if context.persona_id:
            persona = self.catalog.get_persona(context.persona_id)
            if persona is None:
                raise NotFoundError("persona", context.persona_id)
            if not persona.is_active:
                raise ValidationError("persona_id", "persona is not active", context.persona_id)

        is_admin = persona_is_admin or (persona is not None and persona.is_admin)
        if not is_admin and not context.persona_id:
            raise ValidationError("persona_id", "a persona is required", context.persona_id)

        if context.sub_persona_id:
            sub_persona = self.catalog.get_sub_persona(context.sub_persona_id)
            if sub_persona is None:
                raise NotFoundError("sub_persona", context.sub_persona_id)
            if context.persona_id and sub_persona.persona_id != context.persona_id:
                raise ValidationError(
                    "sub_persona_id",
                    f"does not belong to persona {context.persona_id}",
                    context.sub_persona_id,
                )

        for area_id in sorted(context.therapeutic_area_ids):
            if self.catalog.get_therapeutic_area(area_id) is None:
                raise NotFoundError("therapeutic_area", area_id)
        for model_type_id in sorted(context.ai_model_type_ids):
            if self.catalog.get_ai_model_type(model_type_id) is None:
                raise NotFoundError("ai_model_type", model_type_id)
        for scenario_id in sorted(context.deployment_scenario_ids):
            if self.catalog.get_deployment_scenario(scenario_id) is None:
                raise NotFoundError("deployment_scenario", scenario_id)

        return is_admin

    @staticmethod
    def _ignored_dimensions(
        context: ResolutionContext, is_admin: bool
    ) -> frozenset[ConditionDimension]:
        if not is_admin:
            return frozenset()
        ignore = set(PERSONA_DIMENSIONS)
        if not context.therapeutic_area_ids:
            ignore.add(ConditionDimension.THERAPEUTIC_AREA)
        if not context.ai_model_type_ids:
            ignore.add(ConditionDimension.AI_MODEL_TYPE)
        if not context.deployment_scenario_ids:
            ignore.add(ConditionDimension.DEPLOYMENT_SCENARIO)
        return frozenset(ignore)

    def _with_conditions(self, questions: list[Question]) -> list[Question]:
        conditions = self.catalog.get_conditions([q.id for q in questions])
        by_question: dict[str, list[ApplicabilityCondition]] = defaultdict(list)
        for condition in conditions:
            by_question[condition.question_id].append(condition)
        return [replace(q, conditions=tuple(by_question.get(q.id, ()))) for q in questions]

    def _complexity(self, context: ResolutionContext) -> ComplexityProfile:
        therapy = sum(
            self.catalog.get_therapeutic_area(i).complexity_weight
            for i in context.therapeutic_area_ids
        )
        model = sum(
            self.catalog.get_ai_model_type(i).complexity_weight for i in context.ai_model_type_ids
        )
        deployment = sum(
            self.catalog.get_deployment_scenario(i).complexity_weight
            for i in context.deployment_scenario_ids
        )
        return ComplexityProfile(
            therapy_overlay=therapy, model_complexity=model, deployment_complexity=deployment
        )


def resolve(
    catalog: CatalogStore,
    context: ResolutionContext,
    persona_is_admin: bool = False,
    minutes_per_question: int = DEFAULT_MINUTES_PER_QUESTION,
) -> ResolvedAssessment:
    return AssessmentResolver(catalog, minutes_per_question).resolve(context, persona_is_admin)
