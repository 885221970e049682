"""
Application API layer with error handling and validation.

This module exposes the engine's operations (resolution, scoring, response
capture and the section review workflow) over a SQLAlchemy session, with
structured logging and user-friendly errors.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from ..domain.models import (
    Actor,
    Assessment,
    CollaborationStatus,
    CompletionStatus,
    Persona,
    ResolutionContext,
    Response,
    SectionCollaborationState,
    SubPersona,
    utc_now,
)
from ..domain.resolver import AssessmentResolver, ResolvedAssessment
from ..domain.schemas import (
    AssessmentCreationInput,
    ResolutionContextInput,
    ResponseInput,
    TransitionInput,
    validate_input,
)
from ..domain.services import AssessmentScore, ScoringPolicy, ScoringService
from ..domain.workflow import find_overdue_reviews, transition_section as run_transition
from ..infrastructure.config import get_settings
from ..infrastructure.exceptions import (
    ComplianceAssessmentError,
    ComputationError,
    NotFoundError,
    ValidationError,
    create_user_friendly_error_message,
    log_error_details,
)
from ..infrastructure.logging import get_logger, log_operation, set_context
from ..infrastructure.models import QuestionORM, SectionORM
from ..infrastructure.repositories import (
    AssessmentRepo,
    CollaborationRepo,
    ResponseRepo,
    SqlCatalogStore,
)

logger = get_logger(__name__)


@dataclass(slots=True)
class AssessmentSummary:
    assessment: Assessment
    resolved: ResolvedAssessment
    score: AssessmentScore
    collaboration_states: list[SectionCollaborationState]
    responses: dict[str, Response]


def _validated(schema: type, data: dict[str, Any], label: str) -> dict[str, Any]:
    result = validate_input(schema, data)
    if not result.success:
        error_msg = "; ".join(f"{e.field}: {e.message}" for e in result.errors)
        logger.warning(f"{label} validation failed: {error_msg}")
        raise ValidationError(label, error_msg)
    if result.data is None:
        raise RuntimeError("Validation succeeded but returned no data")
    return result.data


def _wrap(e: Exception, message: str, context: dict[str, Any]) -> ComplianceAssessmentError:
    error_details = log_error_details(e, context)
    logger.error(message, extra=error_details)
    return ComplianceAssessmentError(
        f"{message}: {str(e)}",
        details=error_details,
        user_message=create_user_friendly_error_message(e),
    )


def _resolver(session: Session) -> AssessmentResolver:
    return AssessmentResolver(
        SqlCatalogStore(session),
        minutes_per_question=get_settings().scoring.minutes_per_question,
        logger=get_logger("resolver"),
    )


def context_from_input(data: Mapping[str, Any]) -> ResolutionContext:
    return ResolutionContext(
        persona_id=data.get("persona_id"),
        sub_persona_id=data.get("sub_persona_id"),
        therapeutic_area_ids=frozenset(data.get("therapeutic_area_ids") or ()),
        ai_model_type_ids=frozenset(data.get("ai_model_type_ids") or ()),
        deployment_scenario_ids=frozenset(data.get("deployment_scenario_ids") or ()),
        company_id=data.get("company_id"),
    )


@log_operation("list_personas")
def list_personas(session: Session) -> list[Persona]:
    """Active personas, for the persona picker."""
    try:
        return SqlCatalogStore(session).list_personas()
    except ComplianceAssessmentError:
        raise
    except Exception as e:
        raise _wrap(e, "Failed to list personas", {}) from e


@log_operation("list_sub_personas")
def list_sub_personas(session: Session, persona_id: str) -> list[SubPersona]:
    """Sub-personas of an active persona, for the expertise picker."""
    store = SqlCatalogStore(session)
    persona = store.get_persona(persona_id)
    if persona is None or not persona.is_active:
        raise NotFoundError("persona", persona_id)
    return store.list_sub_personas(persona_id)


@log_operation("create_assessment")
def create_assessment(
    session: Session,
    name: str,
    persona_id: str,
    sub_persona_id: str | None = None,
    company_id: str | None = None,
    therapeutic_area_ids: Iterable[str] = (),
    ai_model_type_ids: Iterable[str] = (),
    deployment_scenario_ids: Iterable[str] = (),
) -> Assessment:
    """
    Create an assessment after checking its context resolves.

    Raises:
        ValidationError: If input data is invalid
        NotFoundError: If a referenced persona or context item does not exist

    Example:
        >>> a = create_assessment(session, "Sepsis model go-live", "data-science",
        ...                       therapeutic_area_ids=["oncology"])
        >>> a.id
        '3f2c...'
    """
    data = _validated(
        AssessmentCreationInput,
        {
            "name": name,
            "persona_id": persona_id,
            "sub_persona_id": sub_persona_id,
            "company_id": company_id,
            "therapeutic_area_ids": list(therapeutic_area_ids),
            "ai_model_type_ids": list(ai_model_type_ids),
            "deployment_scenario_ids": list(deployment_scenario_ids),
        },
        "assessment_data",
    )

    try:
        set_context(operation="create_assessment", persona_id=data["persona_id"])
        context = context_from_input(data)
        _resolver(session).resolve(context)

        row = AssessmentRepo(session).create_assessment(
            name=data["name"],
            persona_id=data["persona_id"],
            sub_persona_id=data["sub_persona_id"],
            company_id=data["company_id"],
            therapeutic_area_ids=data["therapeutic_area_ids"],
            ai_model_type_ids=data["ai_model_type_ids"],
            deployment_scenario_ids=data["deployment_scenario_ids"],
        )
        assessment = AssessmentRepo(session).get_assessment(row.id)
        logger.info(f"Created assessment '{data['name']}' with ID {assessment.id}")
        return assessment

    except ComplianceAssessmentError:
        raise
    except Exception as e:
        raise _wrap(e, f"Failed to create assessment '{name}'", {"name": name}) from e


@log_operation("get_assessment")
def get_assessment(session: Session, assessment_id: str) -> Assessment:
    set_context(assessment_id=assessment_id)
    return AssessmentRepo(session).get_assessment(assessment_id)


@log_operation("resolve_assessment")
def resolve_assessment(
    session: Session,
    context: ResolutionContext | Mapping[str, Any],
    persona_is_admin: bool = False,
) -> ResolvedAssessment:
    """
    Resolve the sections and questions that apply to ``context``.

    Raises:
        ValidationError: If the context is malformed or lacks a persona
        NotFoundError: If a referenced context item does not exist
    """
    if not isinstance(context, ResolutionContext):
        data = _validated(ResolutionContextInput, dict(context), "resolution_context")
        context = context_from_input(data)

    try:
        set_context(persona_id=context.persona_id)
        resolved = _resolver(session).resolve(context, persona_is_admin=persona_is_admin)
        logger.info(
            f"Resolved {resolved.total_questions} questions in {resolved.total_sections} "
            f"sections for persona {context.persona_id}"
        )
        return resolved
    except ComplianceAssessmentError:
        raise
    except Exception as e:
        raise _wrap(e, "Failed to resolve assessment", {"persona_id": context.persona_id}) from e


@log_operation("resolve_assessment_for")
def resolve_assessment_for(session: Session, assessment_id: str) -> ResolvedAssessment:
    """Resolve using the context stored on an assessment."""
    set_context(assessment_id=assessment_id)
    assessment = AssessmentRepo(session).get_assessment(assessment_id)
    return resolve_assessment(session, assessment.to_context())


def score_assessment(
    resolved: ResolvedAssessment,
    responses: Mapping[str, Response],
    collaboration_states: Iterable[SectionCollaborationState] | None = None,
    policy: ScoringPolicy | None = None,
) -> AssessmentScore:
    """Score responses against a resolved assessment using the configured policy."""
    service = ScoringService(
        policy or get_settings().scoring.to_policy(), logger=get_logger("scoring")
    )
    return service.score(resolved, responses, collaboration_states)


@log_operation("score_assessment_for")
def score_assessment_for(session: Session, assessment_id: str) -> AssessmentScore:
    return get_assessment_summary(session, assessment_id).score


@log_operation("get_assessment_summary")
def get_assessment_summary(session: Session, assessment_id: str) -> AssessmentSummary:
    """
    Resolve, load responses and review states, and score one assessment.

    Raises:
        NotFoundError: If the assessment does not exist
    """
    try:
        set_context(assessment_id=assessment_id)
        assessment = AssessmentRepo(session).get_assessment(assessment_id)
        resolved = resolve_assessment(session, assessment.to_context())
        responses = ResponseRepo(session).get_responses(assessment_id)
        states = CollaborationRepo(session).list_states(assessment_id)
        score = score_assessment(resolved, responses, states)
        logger.info(
            f"Assessment {assessment_id}: {score.current_score}/{score.max_possible_score} "
            f"({score.completion_percentage}%), status {score.production_status.value}"
        )
        return AssessmentSummary(assessment, resolved, score, states, responses)
    except ComplianceAssessmentError:
        raise
    except Exception as e:
        raise _wrap(e, "Failed to score assessment", {"assessment_id": assessment_id}) from e


@log_operation("record_response")
def record_response(
    session: Session,
    assessment_id: str,
    question_id: str,
    value: Any,
    evidence_documents: list[str] | None = None,
    completion_status: str = CompletionStatus.COMPLETE.value,
) -> Response:
    """
    Store the answer to one question.

    Only questions that currently resolve for the assessment's context accept
    new responses.

    Raises:
        ValidationError: If the question does not apply or the answer cannot be
            scored for its question type
        NotFoundError: If the assessment or question does not exist
    """
    data = _validated(
        ResponseInput,
        {
            "assessment_id": assessment_id,
            "question_id": question_id,
            "value": value,
            "evidence_documents": evidence_documents or [],
            "completion_status": completion_status,
        },
        "response_data",
    )

    try:
        set_context(assessment_id=assessment_id, question_id=question_id)
        resolved = resolve_assessment_for(session, assessment_id)
        if question_id not in resolved.question_ids():
            if session.get(QuestionORM, question_id) is None:
                raise NotFoundError("question", question_id)
            raise ValidationError(
                "question_id", "question does not apply to this assessment", question_id
            )

        question = next(q for q in resolved.questions() if q.id == question_id)
        try:
            ScoringService().check_answer(question, data["value"])
        except ComputationError as e:
            raise ValidationError(
                "value",
                f"answer does not fit a {question.question_type} question",
                repr(data["value"]),
            ) from e

        response = ResponseRepo(session).upsert_response(
            assessment_id,
            question_id,
            data["value"],
            evidence_documents=data["evidence_documents"],
            completion_status=CompletionStatus(data["completion_status"]),
        )
        logger.info(f"Recorded response for question {question_id} in {assessment_id}")
        return response

    except ComplianceAssessmentError:
        raise
    except Exception as e:
        raise _wrap(
            e,
            "Failed to record response",
            {"assessment_id": assessment_id, "question_id": question_id},
        ) from e


@log_operation("transition_section")
def transition_section(
    session: Session,
    assessment_id: str,
    section_id: str,
    target_state: str,
    actor: Actor,
    comment: str | None = None,
    now: datetime | None = None,
    retries: int = 0,
) -> SectionCollaborationState:
    """
    Move a section of an assessment through the review workflow.

    Raises:
        ValidationError: If the request is malformed or the section does not apply
        NotFoundError: If the assessment or section does not exist
        ForbiddenTransitionError: If the actor may not make this transition
        ConflictError: If another participant changed the section first
    """
    data = _validated(
        TransitionInput,
        {
            "target_state": target_state,
            "actor_id": actor.actor_id,
            "can_review": actor.can_review,
            "is_admin": actor.is_admin,
            "comment": comment,
        },
        "transition_data",
    )

    try:
        set_context(assessment_id=assessment_id, section_id=section_id, actor_id=actor.actor_id)
        resolved = resolve_assessment_for(session, assessment_id)
        if resolved.find_section(section_id) is None:
            if session.get(SectionORM, section_id) is None:
                raise NotFoundError("section", section_id)
            raise ValidationError(
                "section_id", "section does not apply to this assessment", section_id
            )

        state = run_transition(
            CollaborationRepo(session),
            assessment_id,
            section_id,
            CollaborationStatus(data["target_state"]),
            actor,
            comment=data["comment"],
            now=now,
            retries=retries,
        )
        logger.info(
            f"Section {section_id} of {assessment_id} moved to {state.current_state.value} "
            f"by {actor.actor_id}"
        )
        return state

    except ComplianceAssessmentError:
        raise
    except Exception as e:
        raise _wrap(
            e,
            "Failed to transition section",
            {"assessment_id": assessment_id, "section_id": section_id},
        ) from e


@log_operation("list_collaboration_states")
def list_collaboration_states(
    session: Session, assessment_id: str
) -> list[SectionCollaborationState]:
    set_context(assessment_id=assessment_id)
    AssessmentRepo(session).get_by_id_required(assessment_id)
    return CollaborationRepo(session).list_states(assessment_id)


@log_operation("list_overdue_reviews")
def list_overdue_reviews(
    session: Session,
    now: datetime | None = None,
    max_age: timedelta | None = None,
    assessment_id: str | None = None,
) -> list[SectionCollaborationState]:
    """
    Sections stuck in review beyond the escalation window.

    ``max_age`` defaults to the configured ``review_escalation_hours``.
    """
    repo = CollaborationRepo(session)
    if assessment_id is not None:
        AssessmentRepo(session).get_by_id_required(assessment_id)
        states = repo.list_states(assessment_id)
    else:
        states = repo.list_in_review()

    overdue = find_overdue_reviews(
        states,
        now or utc_now(),
        max_age if max_age is not None else get_settings().scoring.review_escalation_window,
    )
    if overdue:
        logger.warning(f"{len(overdue)} section review(s) overdue for escalation")
    return overdue
