from __future__ import annotations

import io
import json
from typing import TYPE_CHECKING

import pandas as pd

from ..infrastructure.exceptions import ExportError

if TYPE_CHECKING:
    from ..application.api import AssessmentSummary

SECTION_COLUMNS = [
    "SectionNumber",
    "SectionID",
    "Section",
    "CriticalBlocker",
    "Questions",
    "Completed",
    "EarnedPoints",
    "MaxPoints",
    "CompletionRate",
    "CriticalBlockers",
    "ReviewState",
]

QUESTION_COLUMNS = [
    "SectionID",
    "QuestionID",
    "Question",
    "Type",
    "Points",
    "Blocker",
    "Answer",
    "Status",
    "UpdatedAt",
]


def _to_iso(val):
    if hasattr(val, "isoformat"):
        return val.isoformat()
    return val


def scorecard_frames(summary: AssessmentSummary) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Per-section rollups and per-question answers as DataFrames."""
    numbers = {s.id: s.section.section_number for s in summary.resolved.sections}
    section_rows = [
        {
            "SectionNumber": numbers.get(s.section_id),
            "SectionID": s.section_id,
            "Section": s.title,
            "CriticalBlocker": s.is_critical_blocker,
            "Questions": s.total_questions,
            "Completed": s.completed_questions,
            "EarnedPoints": s.earned_points,
            "MaxPoints": s.max_points,
            "CompletionRate": s.completion_rate,
            "CriticalBlockers": s.critical_blockers,
            "ReviewState": s.collaboration_state.value if s.collaboration_state else None,
        }
        for s in summary.score.sections
    ]
    sections_df = pd.DataFrame(section_rows, columns=SECTION_COLUMNS)

    question_rows = []
    responses = summary.responses
    for question in summary.resolved.questions():
        response = responses.get(question.id)
        question_rows.append(
            {
                "SectionID": question.section_id,
                "QuestionID": question.id,
                "Question": question.text,
                "Type": question.question_type.value,
                "Points": question.points,
                "Blocker": question.is_blocker,
                "Answer": json.dumps(response.value) if response is not None else None,
                "Status": response.completion_status.value if response is not None else None,
                "UpdatedAt": _to_iso(response.updated_at) if response is not None else None,
            }
        )
    questions_df = pd.DataFrame(question_rows, columns=QUESTION_COLUMNS)
    return sections_df, questions_df


def make_json_export_payload(summary: AssessmentSummary) -> str:
    sections_df, questions_df = scorecard_frames(summary)
    score = summary.score
    payload = {
        "assessment_id": summary.assessment.id,
        "name": summary.assessment.name,
        "currentScore": score.current_score,
        "maxPossibleScore": score.max_possible_score,
        "completionPercentage": score.completion_percentage,
        "criticalBlockers": score.critical_blockers,
        "productionStatus": score.production_status.value,
        "readinessTier": score.readiness_tier.value,
        "recommendations": score.recommendations,
        "sections": json.loads(sections_df.to_json(orient="records")),
        "questions": json.loads(questions_df.to_json(orient="records")),
    }
    return json.dumps(payload, indent=2, default=str)


def make_xlsx_export_bytes(summary: AssessmentSummary) -> bytes:
    """Workbook with an overview sheet, a section sheet and a question sheet."""
    sections_df, questions_df = scorecard_frames(summary)
    score = summary.score
    overview_df = pd.DataFrame(
        [
            ("Assessment", summary.assessment.name),
            ("Current score", score.current_score),
            ("Max possible score", score.max_possible_score),
            ("Completion %", score.completion_percentage),
            ("Critical blockers", score.critical_blockers),
            ("Production status", score.production_status.value),
            ("Readiness tier", score.readiness_tier.value),
            ("Estimated time", summary.resolved.estimated_time),
        ],
        columns=["Metric", "Value"],
    )

    try:
        bio = io.BytesIO()
        with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
            overview_df.to_excel(writer, index=False, sheet_name="Overview")
            sections_df.to_excel(writer, index=False, sheet_name="Sections")
            questions_df.to_excel(writer, index=False, sheet_name="Questions")
        return bio.getvalue()
    except Exception as e:
        raise ExportError(f"Failed to build workbook: {e}", export_format="xlsx") from e
