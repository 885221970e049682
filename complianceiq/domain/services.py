from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from ..infrastructure.exceptions import ComputationError
from .models import (
    CollaborationStatus,
    CompletionStatus,
    ProductionStatus,
    Question,
    QuestionType,
    ReadinessTier,
    Response,
    SectionCollaborationState,
)

if TYPE_CHECKING:
    from .resolver import ComplexityProfile, ResolvedAssessment, ResolvedSection

DEFAULT_PRODUCTION_READY_THRESHOLD = 80
DEFAULT_BLOCKER_SCALE_CUTOFF = 4
DEFAULT_SCORE_PRECISION = 2

SCALE_MIN = 1
SCALE_MAX = 5
IMPROVEMENT_AREA_CUTOFF = 2  # scale answers at or below this need attention

# (minimum completion %, tier), checked top-down
READINESS_TIERS = (
    (90, ReadinessTier.PRODUCTION_READY),
    (80, ReadinessTier.PRODUCTION_CONDITIONAL),
    (70, ReadinessTier.PRE_PRODUCTION),
    (60, ReadinessTier.DEVELOPMENT_COMPLETE),
)

SIGNED_OFF_STATES = frozenset({CollaborationStatus.APPROVED, CollaborationStatus.COMPLETED})

_YES_VALUES = frozenset({"yes", "true", "y", "1"})
_NO_VALUES = frozenset({"no", "false", "n", "0", ""})


def clamp_scale_value(value: int | None) -> int | None:
    if value is None:
        return None
    if not (SCALE_MIN <= value <= SCALE_MAX):
        raise ValueError("Scale value must be between 1 and 5 inclusive.")
    return int(value)


def round_half_up(value: float, precision: int = 0) -> float:
    quantum = Decimal(1).scaleb(-precision)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def readiness_tier(percentage: int) -> ReadinessTier:
    for minimum, tier in READINESS_TIERS:
        if percentage >= minimum:
            return tier
    return ReadinessTier.NOT_READY


def overall_rating(average: float) -> str:
    if average >= 4.5:
        return "Excellent"
    if average >= 3.5:
        return "Good"
    if average >= 2.5:
        return "Fair"
    if average >= 1.5:
        return "Poor"
    return "Critical"


@dataclass(slots=True, frozen=True)
class ScoringPolicy:
    production_ready_threshold: int = DEFAULT_PRODUCTION_READY_THRESHOLD
    blocker_scale_cutoff: int = DEFAULT_BLOCKER_SCALE_CUTOFF
    precision: int = DEFAULT_SCORE_PRECISION


@dataclass(slots=True, frozen=True)
class QuestionScore:
    question_id: str
    earned: float
    answered: bool
    resolved: bool  # False means the question still blocks when it is a blocker
    scale_value: int | None = None


@dataclass(slots=True)
class SectionScore:
    section_id: str
    title: str
    is_critical_blocker: bool
    total_questions: int
    completed_questions: int
    earned_points: float
    max_points: int
    critical_blockers: int
    unresolved_blockers: int
    collaboration_state: CollaborationStatus | None = None

    @property
    def completion_rate(self) -> int:
        if not self.max_points:
            return 0
        return min(100, int(round_half_up(self.earned_points / self.max_points * 100)))

    @property
    def signed_off(self) -> bool:
        return self.collaboration_state in SIGNED_OFF_STATES


@dataclass(slots=True, frozen=True)
class ScaleAnalytics:
    total_responses: int
    average_score: float
    distribution: dict[int, int]
    improvement_areas: int

    @property
    def overall_rating(self) -> str:
        if not self.total_responses:
            return "No data"
        return overall_rating(self.average_score)


@dataclass(slots=True)
class AssessmentScore:
    current_score: float
    max_possible_score: int
    completion_percentage: int
    critical_blockers: int
    production_status: ProductionStatus
    readiness_tier: ReadinessTier
    sections: list[SectionScore]
    scale_analytics: ScaleAnalytics
    answered_questions: int
    total_questions: int
    complexity_score: int = 0
    critical_gaps: list[Question] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    issues: list[ComputationError] = field(default_factory=list)

    @property
    def sections_signed_off(self) -> int:
        return sum(1 for s in self.sections if s.signed_off)


class ScoringService:
    """
    Aggregates responses against a resolved assessment.

    Section rollups are computed once and the assessment totals are summed
    from them. Responses that cannot be scored are recorded as
    ``ComputationError`` issues and skipped; scoring never raises for bad data.
    """

    def __init__(self, policy: ScoringPolicy | None = None, logger: logging.Logger | None = None):
        self.policy = policy or ScoringPolicy()
        self.logger = logger or logging.getLogger(__name__)

    def score(
        self,
        resolved: ResolvedAssessment,
        responses: Mapping[str, Response],
        collaboration_states: Iterable[SectionCollaborationState] | None = None,
    ) -> AssessmentScore:
        issues: list[ComputationError] = []
        states = {s.section_id: s.current_state for s in collaboration_states or ()}

        resolvable = resolved.question_ids()
        for question_id in sorted(set(responses) - resolvable):
            issues.append(
                ComputationError(
                    f"Response for question {question_id} is not part of the resolved assessment",
                    question_id=question_id,
                )
            )

        section_scores: list[SectionScore] = []
        critical_gaps: list[Question] = []
        scale_values: list[int] = []

        for resolved_section in resolved.sections:
            section_score, gaps = self._score_section(
                resolved_section, responses, states, issues, scale_values
            )
            section_scores.append(section_score)
            critical_gaps.extend(gaps)

        current = round_half_up(sum(s.earned_points for s in section_scores), self.policy.precision)
        maximum = sum(s.max_points for s in section_scores)
        percentage = self.completion_percentage(current, maximum)
        blockers = sum(s.critical_blockers for s in section_scores)

        if blockers == 0 and percentage >= self.policy.production_ready_threshold:
            status = ProductionStatus.PRODUCTION_READY
        else:
            status = ProductionStatus.NOT_READY

        for issue in issues:
            self.logger.warning("Skipped response while scoring: %s", issue.message)

        result = AssessmentScore(
            current_score=current,
            max_possible_score=maximum,
            completion_percentage=percentage,
            critical_blockers=blockers,
            production_status=status,
            readiness_tier=readiness_tier(percentage),
            sections=section_scores,
            scale_analytics=self.scale_analytics(scale_values),
            answered_questions=sum(s.completed_questions for s in section_scores),
            total_questions=resolved.total_questions,
            complexity_score=resolved.complexity.total,
            critical_gaps=critical_gaps,
            issues=issues,
        )
        result.recommendations = self.recommendations(result, resolved.complexity)
        self.logger.debug(
            "Scored %s/%s points (%s%%), %d critical blockers",
            current,
            maximum,
            percentage,
            blockers,
        )
        return result

    def completion_percentage(self, current: float, maximum: int) -> int:
        if maximum <= 0:
            return 0
        percentage = int(round_half_up(current / maximum * 100))
        return max(0, min(100, percentage))

    def _score_section(
        self,
        resolved_section: ResolvedSection,
        responses: Mapping[str, Response],
        states: Mapping[str, CollaborationStatus],
        issues: list[ComputationError],
        scale_values: list[int],
    ) -> tuple[SectionScore, list[Question]]:
        earned = 0.0
        completed = 0
        unresolved_blockers = 0
        gaps: list[Question] = []

        for question in resolved_section.questions:
            response = responses.get(question.id)
            try:
                result = self.score_question(question, response)
            except ComputationError as e:
                issues.append(e)
                result = QuestionScore(question.id, 0.0, answered=False, resolved=False)
            if result.scale_value is not None:
                scale_values.append(result.scale_value)

            earned += result.earned
            completed += int(result.answered)
            if question.is_blocker and not result.resolved:
                unresolved_blockers += 1
                if resolved_section.is_critical_blocker:
                    gaps.append(question)

        section = resolved_section.section
        return (
            SectionScore(
                section_id=section.id,
                title=section.title,
                is_critical_blocker=section.is_critical_blocker,
                total_questions=resolved_section.total_questions,
                completed_questions=completed,
                earned_points=round_half_up(earned, self.policy.precision),
                max_points=resolved_section.base_points,
                critical_blockers=len(gaps),
                unresolved_blockers=unresolved_blockers,
                collaboration_state=states.get(section.id),
            ),
            gaps,
        )

    def score_question(self, question: Question, response: Response | None) -> QuestionScore:
        """
        Score one question.

        Raises:
            ComputationError: If the stored value cannot be interpreted
        """
        if response is None:
            return QuestionScore(question.id, 0.0, answered=False, resolved=False)

        value = response.value
        if question.question_type is QuestionType.BOOLEAN:
            if value is None:
                return QuestionScore(question.id, 0.0, answered=False, resolved=False)
            yes = self._parse_boolean(question.id, value)
            return QuestionScore(
                question.id, float(question.points) if yes else 0.0, answered=True, resolved=yes
            )

        if question.question_type is QuestionType.SCALE_1_5:
            if value is None:
                return QuestionScore(question.id, 0.0, answered=False, resolved=False)
            scale = self._parse_scale(question.id, value)
            earned = round_half_up(question.points * scale / SCALE_MAX, self.policy.precision)
            return QuestionScore(
                question.id,
                earned,
                answered=True,
                resolved=scale >= self.policy.blocker_scale_cutoff,
                scale_value=scale,
            )

        complete = response.completion_status == CompletionStatus.COMPLETE
        return QuestionScore(
            question.id,
            float(question.points) if complete else 0.0,
            answered=complete,
            resolved=complete,
        )

    def check_answer(self, question: Question, value: Any) -> None:
        """Raise ComputationError if ``value`` cannot be scored for ``question``."""
        if value is None:
            return
        if question.question_type is QuestionType.BOOLEAN:
            self._parse_boolean(question.id, value)
        elif question.question_type is QuestionType.SCALE_1_5:
            self._parse_scale(question.id, value)

    @staticmethod
    def _parse_boolean(question_id: str, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in _YES_VALUES:
                return True
            if normalized in _NO_VALUES:
                return False
        if isinstance(value, int | float) and math.isfinite(value):
            return value != 0
        raise ComputationError(
            f"Unrecognised boolean answer {value!r} for question {question_id}",
            question_id=question_id,
            details={"question_id": question_id, "value": repr(value)},
        )

    @staticmethod
    def _parse_scale(question_id: str, value: Any) -> int:
        number: Any = value
        if isinstance(value, str):
            try:
                number = float(value.strip())
            except ValueError:
                number = None
        if isinstance(number, bool) or not isinstance(number, int | float):
            number = None
        elif not math.isfinite(number) or number != int(number):
            number = None
        try:
            scale = clamp_scale_value(int(number)) if number is not None else None
        except ValueError:
            scale = None
        if scale is None:
            raise ComputationError(
                f"Scale answer {value!r} for question {question_id} is not an integer 1-5",
                question_id=question_id,
                details={"question_id": question_id, "value": repr(value)},
            )
        return scale

    def scale_analytics(self, values: list[int]) -> ScaleAnalytics:
        distribution = {level: 0 for level in range(SCALE_MIN, SCALE_MAX + 1)}
        for value in values:
            distribution[value] += 1
        average = round_half_up(sum(values) / len(values), 2) if values else 0.0
        return ScaleAnalytics(
            total_responses=len(values),
            average_score=average,
            distribution=distribution,
            improvement_areas=sum(1 for v in values if v <= IMPROVEMENT_AREA_CUTOFF),
        )

    def recommendations(self, score: AssessmentScore, complexity: ComplexityProfile) -> list[str]:
        notes: list[str] = []
        if score.critical_gaps:
            notes.append(
                f"Address {len(score.critical_gaps)} critical production blockers before deployment"
            )
            for gap in score.critical_gaps:
                notes.append(f"{gap.category or gap.section_id}: {gap.text}")

        if score.scale_analytics.improvement_areas:
            notes.append(
                f"{score.scale_analytics.improvement_areas} area(s) need immediate attention "
                f"(scores <= {IMPROVEMENT_AREA_CUTOFF})"
            )

        if complexity.total and score.completion_percentage < self.policy.production_ready_threshold:
            notes.append(
                f"Context complexity {complexity.total} adds regulatory overhead; "
                "prioritise therapy and model-specific controls"
            )

        if score.completion_percentage < 70:
            notes.append(
                "Overall: Significant infrastructure and compliance gaps require immediate attention"
            )
        elif score.completion_percentage < 90:
            notes.append(
                "Overall: Minor configuration gaps need resolution before production deployment"
            )
        else:
            notes.append("Overall: System ready for production deployment with continuous monitoring")
        return notes
