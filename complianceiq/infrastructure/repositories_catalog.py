from __future__ import annotations

import json
from collections.abc import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.catalog import Catalog
from ..domain.models import (
    AIModelType,
    AIModelTypeCondition,
    ApplicabilityCondition,
    ConditionDimension,
    DeploymentScenario,
    DeploymentScenarioCondition,
    Persona,
    PersonaCondition,
    Question,
    QuestionType,
    Section,
    SubPersona,
    SubPersonaCondition,
    TherapeuticArea,
    TherapeuticAreaCondition,
)
from ..domain.ports import SectionFilter
from .exceptions import handle_database_error
from .logging import get_logger, log_database_operation as log_op
from .models import (
    AIModelTypeORM,
    ApplicabilityConditionORM,
    DeploymentScenarioORM,
    PersonaORM,
    QuestionORM,
    SectionORM,
    SubPersonaORM,
    TherapeuticAreaORM,
)
from .repositories_base import BaseRepository as GenericBaseRepository

logger = get_logger(__name__)


def _load_list(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(json.loads(raw))


def _dump_list(values: Iterable[str]) -> str | None:
    values = list(values)
    return json.dumps(values) if values else None


def condition_from_row(row: ApplicabilityConditionORM) -> ApplicabilityCondition:
    dimension = ConditionDimension(row.dimension)
    if dimension is ConditionDimension.PERSONA:
        return PersonaCondition(row.question_id, row.target_id)
    if dimension is ConditionDimension.SUB_PERSONA:
        return SubPersonaCondition(row.question_id, row.target_id)
    if dimension is ConditionDimension.THERAPEUTIC_AREA:
        return TherapeuticAreaCondition(row.question_id, row.target_id)
    if dimension is ConditionDimension.AI_MODEL_TYPE:
        return AIModelTypeCondition(row.question_id, row.target_id)
    return DeploymentScenarioCondition(row.question_id, row.target_id)


def condition_target(condition: ApplicabilityCondition) -> str | None:
    if isinstance(condition, PersonaCondition):
        return condition.persona_id
    if isinstance(condition, SubPersonaCondition):
        return condition.sub_persona_id
    if isinstance(condition, TherapeuticAreaCondition):
        return condition.therapeutic_area_id
    if isinstance(condition, AIModelTypeCondition):
        return condition.ai_model_type_id
    if isinstance(condition, DeploymentScenarioCondition):
        return condition.deployment_scenario_id
    raise TypeError(f"Unsupported applicability condition: {type(condition).__name__}")


def persona_from_row(row: PersonaORM) -> Persona:
    return Persona(
        id=row.id,
        name=row.name,
        description=row.description,
        is_admin=row.is_admin,
        is_active=row.is_active,
    )


def section_from_row(row: SectionORM) -> Section:
    return Section(
        id=row.id,
        title=row.title,
        section_number=row.section_number,
        base_points=row.base_points,
        is_critical_blocker=row.is_critical_blocker,
        section_type=row.section_type,
        description=row.description,
    )


def question_from_row(row: QuestionORM) -> Question:
    return Question(
        id=row.id,
        section_id=row.section_id,
        text=row.text,
        question_type=QuestionType(row.question_type),
        points=row.points,
        is_blocker=row.is_blocker,
        category=row.category,
        evidence_required=_load_list(row.evidence_required),
        responsible_roles=_load_list(row.responsible_roles),
        order_index=row.order_index,
    )


class SqlCatalogStore(GenericBaseRepository[SectionORM]):
    """Catalog store backed by the reference tables."""

    model = SectionORM
    entity_name = "section"

    def __init__(self, session: Session):
        super().__init__(session)

    @log_op("catalog.get_persona")
    def get_persona(self, persona_id: str) -> Persona | None:
        row = self.s.get(PersonaORM, persona_id)
        return persona_from_row(row) if row is not None else None

    @log_op("catalog.get_sub_persona")
    def get_sub_persona(self, sub_persona_id: str) -> SubPersona | None:
        row = self.s.get(SubPersonaORM, sub_persona_id)
        if row is None:
            return None
        return SubPersona(
            id=row.id, persona_id=row.persona_id, name=row.name, expertise_level=row.expertise_level
        )

    @log_op("catalog.get_therapeutic_area")
    def get_therapeutic_area(self, area_id: str) -> TherapeuticArea | None:
        row = self.s.get(TherapeuticAreaORM, area_id)
        if row is None:
            return None
        return TherapeuticArea(row.id, row.name, row.complexity_weight, row.description)

    @log_op("catalog.get_ai_model_type")
    def get_ai_model_type(self, model_type_id: str) -> AIModelType | None:
        row = self.s.get(AIModelTypeORM, model_type_id)
        if row is None:
            return None
        return AIModelType(row.id, row.name, row.complexity_weight, row.description)

    @log_op("catalog.get_deployment_scenario")
    def get_deployment_scenario(self, scenario_id: str) -> DeploymentScenario | None:
        row = self.s.get(DeploymentScenarioORM, scenario_id)
        if row is None:
            return None
        return DeploymentScenario(row.id, row.name, row.complexity_weight, row.description)

    @log_op("catalog.get_sections")
    def get_sections(self, section_filter: SectionFilter | None = None) -> list[Section]:
        rows = self.list(order_by=[SectionORM.section_number, SectionORM.id])
        sections = [section_from_row(r) for r in rows]
        if section_filter is None:
            return sections
        return [s for s in sections if section_filter.accepts(s)]

    @log_op("catalog.get_questions")
    def get_questions(self, section_ids: Iterable[str]) -> list[Question]:
        ids = list(section_ids)
        if not ids:
            return []
        rows = (
            self.s.query(QuestionORM)
            .filter(QuestionORM.section_id.in_(ids))
            .order_by(QuestionORM.order_index, QuestionORM.id)
            .all()
        )
        return [question_from_row(r) for r in rows]

    @log_op("catalog.get_conditions")
    def get_conditions(self, question_ids: Iterable[str]) -> list[ApplicabilityCondition]:
        ids = list(question_ids)
        if not ids:
            return []
        rows = (
            self.s.query(ApplicabilityConditionORM)
            .filter(ApplicabilityConditionORM.question_id.in_(ids))
            .order_by(ApplicabilityConditionORM.id)
            .all()
        )
        return [condition_from_row(r) for r in rows]

    @log_op("catalog.list_personas")
    def list_personas(self, include_inactive: bool = False) -> list[Persona]:
        q = self.s.query(PersonaORM)
        if not include_inactive:
            q = q.filter(PersonaORM.is_active.is_(True))
        return [persona_from_row(r) for r in q.order_by(PersonaORM.name).all()]

    @log_op("catalog.list_sub_personas")
    def list_sub_personas(self, persona_id: str) -> list[SubPersona]:
        rows = (
            self.s.query(SubPersonaORM)
            .filter(SubPersonaORM.persona_id == persona_id)
            .order_by(SubPersonaORM.name)
            .all()
        )
        return [SubPersona(r.id, r.persona_id, r.name, r.expertise_level) for r in rows]

    @log_op("catalog.import")
    def import_catalog(self, catalog: Catalog) -> None:
        """Insert or replace every entity of an in-memory catalog snapshot."""
        try:
            for p in catalog.personas.values():
                self.s.merge(
                    PersonaORM(
                        id=p.id,
                        name=p.name,
                        description=p.description,
                        is_admin=p.is_admin,
                        is_active=p.is_active,
                    )
                )
            self.s.flush()
            for sp in catalog.sub_personas.values():
                self.s.merge(
                    SubPersonaORM(
                        id=sp.id,
                        persona_id=sp.persona_id,
                        name=sp.name,
                        expertise_level=sp.expertise_level,
                    )
                )
            for orm_cls, items in (
                (TherapeuticAreaORM, catalog.therapeutic_areas.values()),
                (AIModelTypeORM, catalog.ai_model_types.values()),
                (DeploymentScenarioORM, catalog.deployment_scenarios.values()),
            ):
                for item in items:
                    self.s.merge(
                        orm_cls(
                            id=item.id,
                            name=item.name,
                            complexity_weight=item.complexity_weight,
                            description=item.description,
                        )
                    )
            for sec in catalog.sections.values():
                self.s.merge(
                    SectionORM(
                        id=sec.id,
                        title=sec.title,
                        section_number=sec.section_number,
                        base_points=sec.base_points,
                        is_critical_blocker=sec.is_critical_blocker,
                        section_type=sec.section_type,
                        description=sec.description,
                    )
                )
            self.s.flush()
            for q in catalog.questions.values():
                self.s.merge(
                    QuestionORM(
                        id=q.id,
                        section_id=q.section_id,
                        text=q.text,
                        question_type=q.question_type.value,
                        points=q.points,
                        is_blocker=q.is_blocker,
                        category=q.category,
                        evidence_required=_dump_list(q.evidence_required),
                        responsible_roles=_dump_list(q.responsible_roles),
                        order_index=q.order_index,
                    )
                )
                self.s.query(ApplicabilityConditionORM).filter(
                    ApplicabilityConditionORM.question_id == q.id
                ).delete(synchronize_session=False)
            self.s.flush()
            for q in catalog.questions.values():
                for condition in q.conditions:
                    self.s.add(
                        ApplicabilityConditionORM(
                            question_id=q.id,
                            dimension=condition.dimension.value,
                            target_id=condition_target(condition),
                        )
                    )
            self.s.flush()
            logger.info(
                f"Imported catalog with {len(catalog.sections)} sections and "
                f"{len(catalog.questions)} questions"
            )
        except SQLAlchemyError as e:
            raise handle_database_error(e, "import_catalog") from e
