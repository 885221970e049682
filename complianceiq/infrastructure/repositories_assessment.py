from __future__ import annotations

import builtins
import uuid
from collections.abc import Iterable
from typing import Any

from sqlalchemy.orm import Session, selectinload

from ..domain.models import Assessment
from .logging import log_database_operation as log_op
from .models import (
    AIModelTypeORM,
    AssessmentORM,
    DeploymentScenarioORM,
    TherapeuticAreaORM,
)
from .repositories_base import BaseRepository as GenericBaseRepository


def assessment_from_row(row: AssessmentORM) -> Assessment:
    return Assessment(
        id=row.id,
        name=row.name,
        persona_id=row.persona_id,
        sub_persona_id=row.sub_persona_id,
        company_id=row.company_id,
        therapeutic_area_ids=sorted(t.id for t in row.therapeutic_areas),
        ai_model_type_ids=sorted(m.id for m in row.ai_model_types),
        deployment_scenario_ids=sorted(d.id for d in row.deployment_scenarios),
        created_at=row.created_at,
    )


class AssessmentRepo(GenericBaseRepository[AssessmentORM]):
    model = AssessmentORM
    entity_name = "assessment"

    def __init__(self, session: Session):
        super().__init__(session)

    # -------- Read --------

    @log_op("assessment.get")
    def get(self, id_: Any) -> AssessmentORM | None:
        return (
            self.s.query(AssessmentORM)
            .options(
                selectinload(AssessmentORM.therapeutic_areas),
                selectinload(AssessmentORM.ai_model_types),
                selectinload(AssessmentORM.deployment_scenarios),
            )
            .filter(AssessmentORM.id == id_)
            .one_or_none()
        )

    @log_op("assessment.get_required")
    def get_by_id_required(self, id_: Any) -> AssessmentORM:
        return super().get_by_id_required(id_)

    @log_op("assessment.get_domain")
    def get_assessment(self, id_: str) -> Assessment:
        return assessment_from_row(self.get_by_id_required(id_))

    # -------- Write --------

    @log_op("assessment.create")
    def create_assessment(
        self,
        name: str,
        persona_id: str | None,
        sub_persona_id: str | None = None,
        company_id: str | None = None,
        therapeutic_area_ids: Iterable[str] = (),
        ai_model_type_ids: Iterable[str] = (),
        deployment_scenario_ids: Iterable[str] = (),
        assessment_id: str | None = None,
    ) -> AssessmentORM:
        row = AssessmentORM(
            id=assessment_id or uuid.uuid4().hex,
            name=name,
            persona_id=persona_id,
            sub_persona_id=sub_persona_id,
            company_id=company_id,
        )
        row.therapeutic_areas = self._load(TherapeuticAreaORM, therapeutic_area_ids)
        row.ai_model_types = self._load(AIModelTypeORM, ai_model_type_ids)
        row.deployment_scenarios = self._load(DeploymentScenarioORM, deployment_scenario_ids)
        self.s.add(row)
        self.s.flush()
        return row

    def _load(self, orm_cls: type, ids: Iterable[str]) -> builtins.list[Any]:
        ids = builtins.list(dict.fromkeys(ids))
        if not ids:
            return []
        return self.s.query(orm_cls).filter(orm_cls.id.in_(ids)).all()
