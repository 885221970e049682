import pytest

from complianceiq.domain.conditions import PERSONA_DIMENSIONS, include_question, matches
from complianceiq.domain.models import (
    AIModelTypeCondition,
    DeploymentScenarioCondition,
    PersonaCondition,
    Question,
    QuestionType,
    ResolutionContext,
    SubPersonaCondition,
    TherapeuticAreaCondition,
)


def question(*conditions):
    return Question("q-1", "s-1", "Question", QuestionType.BOOLEAN, points=1, conditions=conditions)


def ctx(**kwargs):
    kwargs.setdefault("persona_id", "data-science")
    for key in ("therapeutic_area_ids", "ai_model_type_ids", "deployment_scenario_ids"):
        kwargs[key] = frozenset(kwargs.get(key, ()))
    return ResolutionContext(**kwargs)


def test_unconditioned_question_always_applies():
    assert include_question(question(), ctx())
    assert include_question(question(), ctx(persona_id="clinical-ops", therapeutic_area_ids=["x"]))


def test_persona_condition():
    q = question(PersonaCondition("q-1", "data-science"))
    assert include_question(q, ctx())
    assert not include_question(q, ctx(persona_id="clinical-ops"))


def test_conditions_within_a_dimension_are_alternatives():
    q = question(
        TherapeuticAreaCondition("q-1", "oncology"),
        TherapeuticAreaCondition("q-1", "cardiology"),
    )
    assert include_question(q, ctx(therapeutic_area_ids=["cardiology"]))
    assert include_question(q, ctx(therapeutic_area_ids=["oncology", "neurology"]))
    assert not include_question(q, ctx(therapeutic_area_ids=["neurology"]))
    assert not include_question(q, ctx())


def test_all_constrained_dimensions_must_hold():
    q = question(
        TherapeuticAreaCondition("q-1", "oncology"),
        AIModelTypeCondition("q-1", "llm"),
    )
    assert include_question(q, ctx(therapeutic_area_ids=["oncology"], ai_model_type_ids=["llm"]))
    assert not include_question(q, ctx(therapeutic_area_ids=["oncology"]))
    assert not include_question(q, ctx(ai_model_type_ids=["llm"]))


def test_deployment_scenario_condition():
    q = question(DeploymentScenarioCondition("q-1", "cds"))
    assert include_question(q, ctx(deployment_scenario_ids=["cds"]))
    assert not include_question(q, ctx(deployment_scenario_ids=["research"]))


class TestSubPersonaConditions:
    def test_specific_sub_persona(self):
        q = question(SubPersonaCondition("q-1", "ds-senior"))
        assert include_question(q, ctx(sub_persona_id="ds-senior"))
        assert not include_question(q, ctx(sub_persona_id="ds-junior"))

    def test_missing_sub_persona_fails(self):
        q = question(SubPersonaCondition("q-1", "ds-senior"))
        assert not include_question(q, ctx())

    def test_any_sub_persona_accepts_missing_sub_persona(self):
        condition = SubPersonaCondition("q-1", None)
        assert matches(condition, ctx(sub_persona_id="ds-junior"))
        assert matches(condition, ctx())


def test_ignored_dimensions_count_as_satisfied():
    q = question(
        PersonaCondition("q-1", "clinical-ops"),
        TherapeuticAreaCondition("q-1", "oncology"),
    )
    context = ctx(therapeutic_area_ids=["oncology"])
    assert not include_question(q, context)
    assert include_question(q, context, ignore=PERSONA_DIMENSIONS)
    assert not include_question(q, ctx(), ignore=PERSONA_DIMENSIONS)


def test_unknown_condition_type_is_rejected():
    with pytest.raises(TypeError):
        matches(object(), ctx())  # type: ignore[arg-type]
