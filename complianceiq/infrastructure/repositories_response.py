from __future__ import annotations

import json
from typing import Any

from sqlalchemy.exc import IntegrityError as SQLIntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.models import CompletionStatus, Response, utc_now
from .exceptions import ValidationError, handle_database_error
from .logging import get_logger, log_database_operation as log_op
from .models import ResponseORM
from .repositories_base import BaseRepository as GenericBaseRepository

logger = get_logger(__name__)


def response_from_row(row: ResponseORM) -> Response:
    return Response(
        assessment_id=row.assessment_id,
        question_id=row.question_id,
        value=json.loads(row.value) if row.value is not None else None,
        evidence_documents=json.loads(row.evidence_documents) if row.evidence_documents else [],
        completion_status=CompletionStatus(row.completion_status),
        updated_at=row.updated_at,
    )


class ResponseRepo(GenericBaseRepository[ResponseORM]):
    """
    Response store backed by the ``responses`` table.

    One row per (assessment, question). Values are stored JSON encoded so any
    answer shape (bool, number, text, list of choices) round-trips unchanged.
    """

    model = ResponseORM
    entity_name = "response"

    def __init__(self, session: Session):
        super().__init__(session)

    @log_op("response.get_all")
    def get_responses(self, assessment_id: str) -> dict[str, Response]:
        rows = self.s.query(ResponseORM).filter(ResponseORM.assessment_id == assessment_id).all()
        return {row.question_id: response_from_row(row) for row in rows}

    @log_op("response.upsert")
    def upsert_response(
        self,
        assessment_id: str,
        question_id: str,
        value: Any,
        evidence_documents: list[str] | None = None,
        completion_status: CompletionStatus = CompletionStatus.COMPLETE,
    ) -> Response:
        try:
            encoded = json.dumps(value) if value is not None else None
        except (TypeError, ValueError) as e:
            raise ValidationError("value", "answer is not JSON serialisable", repr(value)) from e

        evidence = json.dumps(list(evidence_documents)) if evidence_documents else None
        status = CompletionStatus(completion_status).value

        try:
            row = self._find(assessment_id, question_id)
            if row is None:
                row = ResponseORM(
                    assessment_id=assessment_id,
                    question_id=question_id,
                    value=encoded,
                    evidence_documents=evidence,
                    completion_status=status,
                )
                self.s.add(row)
            else:
                row.value = encoded
                row.evidence_documents = evidence
                row.completion_status = status
                row.updated_at = utc_now()
            self.s.flush()
        except SQLIntegrityError as e:
            raise handle_database_error(e, "upsert_response") from e
        except SQLAlchemyError as e:
            raise handle_database_error(e, "upsert_response") from e

        logger.debug(f"Stored response for question {question_id} ({status})")
        return response_from_row(row)

    def _find(self, assessment_id: str, question_id: str) -> ResponseORM | None:
        return (
            self.s.query(ResponseORM)
            .filter(
                ResponseORM.assessment_id == assessment_id,
                ResponseORM.question_id == question_id,
            )
            .one_or_none()
        )
