"""
Applicability rules for catalog questions.

A question with no conditions applies to every context. Otherwise conditions
are grouped by dimension: a dimension is satisfied when any of its
conditions matches (OR), and the question applies when every dimension that
carries conditions is satisfied (AND).
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import (
    AIModelTypeCondition,
    ApplicabilityCondition,
    ConditionDimension,
    DeploymentScenarioCondition,
    PersonaCondition,
    Question,
    ResolutionContext,
    SubPersonaCondition,
    TherapeuticAreaCondition,
)

# Dimensions an administrator preview does not filter on
PERSONA_DIMENSIONS = frozenset({ConditionDimension.PERSONA, ConditionDimension.SUB_PERSONA})


def matches(condition: ApplicabilityCondition, context: ResolutionContext) -> bool:
    """Return True when a single condition holds for ``context``."""
    if isinstance(condition, PersonaCondition):
        return condition.persona_id == context.persona_id
    if isinstance(condition, SubPersonaCondition):
        if condition.sub_persona_id is None:
            return True
        return condition.sub_persona_id == context.sub_persona_id
    if isinstance(condition, TherapeuticAreaCondition):
        return condition.therapeutic_area_id in context.therapeutic_area_ids
    if isinstance(condition, AIModelTypeCondition):
        return condition.ai_model_type_id in context.ai_model_type_ids
    if isinstance(condition, DeploymentScenarioCondition):
        return condition.deployment_scenario_id in context.deployment_scenario_ids
    raise TypeError(f"Unsupported applicability condition: {type(condition).__name__}")


def group_by_dimension(
    conditions: Iterable[ApplicabilityCondition],
) -> dict[ConditionDimension, list[ApplicabilityCondition]]:
    grouped: dict[ConditionDimension, list[ApplicabilityCondition]] = {}
    for condition in conditions:
        grouped.setdefault(condition.dimension, []).append(condition)
    return grouped


def include_question(
    question: Question,
    context: ResolutionContext,
    ignore: frozenset[ConditionDimension] = frozenset(),
) -> bool:
    """
    Decide whether ``question`` applies to ``context``.

    Dimensions listed in ``ignore`` are treated as satisfied.
    """
    if not question.conditions:
        return True

    for dimension, conditions in group_by_dimension(question.conditions).items():
        if dimension in ignore:
            continue
        if not any(matches(c, context) for c in conditions):
            return False
    return True
