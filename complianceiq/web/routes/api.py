from __future__ import annotations

import io
import json
import logging
from datetime import timedelta
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session

from complianceiq.application import api as app_api
from complianceiq.domain.models import Actor, Assessment, Response, SectionCollaborationState
from complianceiq.domain.resolver import ResolvedAssessment
from complianceiq.domain.services import AssessmentScore
from complianceiq.infrastructure.config import get_settings
from complianceiq.infrastructure.exceptions import (
    ComplianceAssessmentError,
    ConflictError,
    ForbiddenTransitionError,
    NotFoundError,
)
from complianceiq.utils.exports import make_json_export_payload, make_xlsx_export_bytes
from complianceiq.web.dependencies import get_db_session
from complianceiq.web.schemas import (
    AssessmentCreateRequest,
    AssessmentDetail,
    CollaborationStateItem,
    CommentItem,
    ComplexityItem,
    PersonaItem,
    QuestionItem,
    ResolvedAssessmentResponse,
    ResolveRequest,
    ResponseItem,
    ResponseUpdate,
    ScaleAnalyticsItem,
    ScoreResponse,
    SectionItem,
    SectionScoreItem,
    SubPersonaItem,
    TransitionRequest,
)

router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _raise_http(exc: ComplianceAssessmentError) -> NoReturn:
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ForbiddenTransitionError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, ConflictError):
        code = status.HTTP_409_CONFLICT
    else:
        # validation and other domain errors
        code = status.HTTP_400_BAD_REQUEST
    raise HTTPException(status_code=code, detail=exc.user_message) from exc


def _assessment_detail(assessment: Assessment) -> AssessmentDetail:
    return AssessmentDetail(
        id=assessment.id,
        name=assessment.name,
        persona_id=assessment.persona_id,
        sub_persona_id=assessment.sub_persona_id,
        company_id=assessment.company_id,
        therapeutic_area_ids=assessment.therapeutic_area_ids,
        ai_model_type_ids=assessment.ai_model_type_ids,
        deployment_scenario_ids=assessment.deployment_scenario_ids,
        created_at=assessment.created_at,
    )


def _resolved_response(resolved: ResolvedAssessment) -> ResolvedAssessmentResponse:
    return ResolvedAssessmentResponse(
        total_sections=resolved.total_sections,
        total_questions=resolved.total_questions,
        total_points=resolved.total_points,
        critical_sections=resolved.critical_sections,
        non_critical_sections=resolved.non_critical_sections,
        production_blockers=resolved.production_blockers,
        estimated_time=resolved.estimated_time,
        is_admin_view=resolved.is_admin_view,
        complexity=ComplexityItem(
            therapy_overlay=resolved.complexity.therapy_overlay,
            model_complexity=resolved.complexity.model_complexity,
            deployment_complexity=resolved.complexity.deployment_complexity,
            total=resolved.complexity.total,
        ),
        sections=[
            SectionItem(
                id=rs.id,
                title=rs.section.title,
                section_number=rs.section.section_number,
                base_points=rs.base_points,
                is_critical_blocker=rs.is_critical_blocker,
                total_questions=rs.total_questions,
                questions=[
                    QuestionItem(
                        id=q.id,
                        text=q.text,
                        question_type=q.question_type.value,
                        points=q.points,
                        is_blocker=q.is_blocker,
                        category=q.category,
                        evidence_required=list(q.evidence_required),
                        responsible_roles=list(q.responsible_roles),
                    )
                    for q in rs.questions
                ],
            )
            for rs in resolved.sections
        ],
    )


def _score_response(score: AssessmentScore) -> ScoreResponse:
    analytics = score.scale_analytics
    return ScoreResponse(
        current_score=score.current_score,
        max_possible_score=score.max_possible_score,
        completion_percentage=score.completion_percentage,
        critical_blockers=score.critical_blockers,
        production_status=score.production_status.value,
        readiness_tier=score.readiness_tier.value,
        answered_questions=score.answered_questions,
        total_questions=score.total_questions,
        sections_signed_off=score.sections_signed_off,
        complexity_score=score.complexity_score,
        sections=[
            SectionScoreItem(
                section_id=s.section_id,
                title=s.title,
                is_critical_blocker=s.is_critical_blocker,
                total_questions=s.total_questions,
                completed_questions=s.completed_questions,
                earned_points=s.earned_points,
                max_points=s.max_points,
                completion_rate=s.completion_rate,
                critical_blockers=s.critical_blockers,
                collaboration_state=s.collaboration_state.value if s.collaboration_state else None,
            )
            for s in score.sections
        ],
        scale_analytics=ScaleAnalyticsItem(
            total_responses=analytics.total_responses,
            average_score=analytics.average_score,
            distribution=analytics.distribution,
            improvement_areas=analytics.improvement_areas,
            overall_rating=analytics.overall_rating,
        ),
        recommendations=score.recommendations,
        critical_gaps=[q.id for q in score.critical_gaps],
        issues=[issue.message for issue in score.issues],
    )


def _response_item(response: Response) -> ResponseItem:
    return ResponseItem(
        assessment_id=response.assessment_id,
        question_id=response.question_id,
        value=response.value,
        evidence_documents=response.evidence_documents,
        completion_status=response.completion_status.value,
        updated_at=response.updated_at,
    )


def _state_item(state: SectionCollaborationState) -> CollaborationStateItem:
    return CollaborationStateItem(
        section_id=state.section_id,
        current_state=state.current_state.value,
        assigned_to=state.assigned_to,
        reviewed_by=state.reviewed_by,
        approved_by=state.approved_by,
        last_updated=state.last_updated,
        version=state.version,
        comments=[
            CommentItem(author=c.author, state=c.state, text=c.text, at=c.at)
            for c in state.comments
        ],
    )


def _require_exports_enabled() -> None:
    if not get_settings().app.enable_data_export:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Data export is disabled")


@router.get("/health")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/personas", response_model=list[PersonaItem])
def list_personas(db: Session = Depends(get_db_session)) -> list[PersonaItem]:
    try:
        personas = app_api.list_personas(db)
    except ComplianceAssessmentError as exc:
        _raise_http(exc)
    return [
        PersonaItem(id=p.id, name=p.name, description=p.description, is_admin=p.is_admin)
        for p in personas
    ]


@router.get("/personas/{persona_id}/sub-personas", response_model=list[SubPersonaItem])
def list_sub_personas(
    persona_id: str,
    db: Session = Depends(get_db_session),
) -> list[SubPersonaItem]:
    try:
        sub_personas = app_api.list_sub_personas(db, persona_id)
    except ComplianceAssessmentError as exc:
        _raise_http(exc)
    return [
        SubPersonaItem(id=sp.id, name=sp.name, expertise_level=sp.expertise_level)
        for sp in sub_personas
    ]


@router.post("/resolve", response_model=ResolvedAssessmentResponse)
def resolve_preview(
    payload: ResolveRequest,
    db: Session = Depends(get_db_session),
) -> ResolvedAssessmentResponse:
    context = payload.model_dump(exclude={"is_admin"})
    try:
        resolved = app_api.resolve_assessment(db, context, persona_is_admin=payload.is_admin)
    except ComplianceAssessmentError as exc:
        _raise_http(exc)
    return _resolved_response(resolved)


@router.post("/assessments", response_model=AssessmentDetail, status_code=status.HTTP_201_CREATED)
def create_assessment(
    payload: AssessmentCreateRequest,
    db: Session = Depends(get_db_session),
) -> AssessmentDetail:
    try:
        assessment = app_api.create_assessment(
            db,
            name=payload.name,
            persona_id=payload.persona_id,
            sub_persona_id=payload.sub_persona_id,
            company_id=payload.company_id,
            therapeutic_area_ids=payload.therapeutic_area_ids,
            ai_model_type_ids=payload.ai_model_type_ids,
            deployment_scenario_ids=payload.deployment_scenario_ids,
        )
        db.commit()
    except ComplianceAssessmentError as exc:
        db.rollback()
        _raise_http(exc)
    except Exception:
        db.rollback()
        raise

    return _assessment_detail(assessment)


@router.get("/assessments/{assessment_id}", response_model=AssessmentDetail)
def get_assessment(assessment_id: str, db: Session = Depends(get_db_session)) -> AssessmentDetail:
    try:
        assessment = app_api.get_assessment(db, assessment_id)
    except ComplianceAssessmentError as exc:
        _raise_http(exc)
    return _assessment_detail(assessment)


@router.get("/assessments/{assessment_id}/sections", response_model=ResolvedAssessmentResponse)
def get_resolved_sections(
    assessment_id: str,
    db: Session = Depends(get_db_session),
) -> ResolvedAssessmentResponse:
    try:
        resolved = app_api.resolve_assessment_for(db, assessment_id)
    except ComplianceAssessmentError as exc:
        _raise_http(exc)
    return _resolved_response(resolved)


@router.get("/assessments/{assessment_id}/score", response_model=ScoreResponse)
def get_score(assessment_id: str, db: Session = Depends(get_db_session)) -> ScoreResponse:
    try:
        score = app_api.score_assessment_for(db, assessment_id)
    except ComplianceAssessmentError as exc:
        _raise_http(exc)
    return _score_response(score)


@router.put("/assessments/{assessment_id}/responses/{question_id}", response_model=ResponseItem)
def put_response(
    assessment_id: str,
    question_id: str,
    payload: ResponseUpdate,
    db: Session = Depends(get_db_session),
) -> ResponseItem:
    try:
        response = app_api.record_response(
            db,
            assessment_id,
            question_id,
            payload.value,
            evidence_documents=payload.evidence_documents,
            completion_status=payload.completion_status,
        )
        db.commit()
    except ComplianceAssessmentError as exc:
        db.rollback()
        _raise_http(exc)
    except Exception:
        db.rollback()
        raise

    return _response_item(response)


@router.get(
    "/assessments/{assessment_id}/collaboration",
    response_model=list[CollaborationStateItem],
)
def list_collaboration(
    assessment_id: str,
    db: Session = Depends(get_db_session),
) -> list[CollaborationStateItem]:
    try:
        states = app_api.list_collaboration_states(db, assessment_id)
    except ComplianceAssessmentError as exc:
        _raise_http(exc)
    return [_state_item(s) for s in states]


@router.post(
    "/assessments/{assessment_id}/sections/{section_id}/transitions",
    response_model=CollaborationStateItem,
)
def transition_section(
    assessment_id: str,
    section_id: str,
    payload: TransitionRequest,
    db: Session = Depends(get_db_session),
) -> CollaborationStateItem:
    actor = Actor(actor_id=payload.actor_id, can_review=payload.can_review, is_admin=payload.is_admin)
    try:
        state = app_api.transition_section(
            db,
            assessment_id,
            section_id,
            payload.target_state,
            actor,
            comment=payload.comment,
        )
        db.commit()
    except ComplianceAssessmentError as exc:
        db.rollback()
        _raise_http(exc)
    except Exception:
        db.rollback()
        raise

    return _state_item(state)


@router.get(
    "/assessments/{assessment_id}/collaboration/overdue",
    response_model=list[CollaborationStateItem],
)
def list_overdue(
    assessment_id: str,
    max_age_hours: int | None = None,
    db: Session = Depends(get_db_session),
) -> list[CollaborationStateItem]:
    max_age = timedelta(hours=max_age_hours) if max_age_hours is not None else None
    try:
        states = app_api.list_overdue_reviews(db, max_age=max_age, assessment_id=assessment_id)
    except ComplianceAssessmentError as exc:
        _raise_http(exc)
    return [_state_item(s) for s in states]


@router.get("/assessments/{assessment_id}/exports/json")
def export_assessment_json(
    assessment_id: str,
    db: Session = Depends(get_db_session),
) -> JSONResponse:
    _require_exports_enabled()
    try:
        summary = app_api.get_assessment_summary(db, assessment_id)
        payload = json.loads(make_json_export_payload(summary))
    except ComplianceAssessmentError as exc:
        _raise_http(exc)
    return JSONResponse(content=payload)


@router.get("/assessments/{assessment_id}/exports/xlsx")
def export_assessment_xlsx(
    assessment_id: str,
    db: Session = Depends(get_db_session),
) -> StreamingResponse:
    _require_exports_enabled()
    try:
        summary = app_api.get_assessment_summary(db, assessment_id)
        xlsx_bytes = make_xlsx_export_bytes(summary)
    except ComplianceAssessmentError as exc:
        _raise_http(exc)
    filename = f"assessment_{assessment_id}.xlsx"
    stream = io.BytesIO(xlsx_bytes)
    stream.seek(0)
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    logger.info(f"Exported scorecard for assessment {assessment_id} ({len(xlsx_bytes)} bytes)")
    return StreamingResponse(stream, media_type=XLSX_MEDIA_TYPE, headers=headers)
