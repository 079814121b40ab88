"""
Auto-grading for exam answers

Grades multiple choice, multiple select, true/false, short answer and
numerical questions automatically. Essay and code questions are flagged
for manual grading and score 0 until a faculty member grades them.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

NUMERICAL_TOLERANCE = 0.01


@dataclass
class GradeResult:
    """Auto grade for a single answer"""
    auto_score: float
    needs_manual_grading: bool = False


@dataclass
class SessionScore:
    """Score for a whole session"""
    total_score: float
    max_score: float
    percentage: float
    pass_status: bool
    needs_manual_grading: bool
    question_scores: Dict[str, GradeResult] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "total_score": self.total_score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "pass_status": self.pass_status,
            "needs_manual_grading": self.needs_manual_grading
        }


def grade_answer(question_type: str, content: Dict[str, Any], response: Any, points: float) -> GradeResult:
    """
    Auto-grade one response.

    Args:
        question_type: Canonical question type
        content: Question content holding correct_answer and options
        response: The student's response (any JSON value, may be None)
        points: Points awarded for a correct answer

    Returns:
        GradeResult with the awarded score and the manual-grading flag
    """
    content = content or {}
    correct = content.get("correct_answer")

    if question_type == "multiple_choice":
        return _grade_exact(response, correct, points)
    if question_type == "multiple_select":
        return _grade_multiple_select(response, correct, points)
    if question_type == "true_false":
        return _grade_true_false(response, correct, points)
    if question_type == "short_answer":
        return _grade_short_answer(
            response, correct, points, content.get("case_insensitive", True)
        )
    if question_type == "numerical":
        return _grade_numerical(response, correct, points)
    if question_type in ("essay", "code"):
        return GradeResult(0.0, needs_manual_grading=True)

    logger.warning(f"Unknown question type '{question_type}', scoring 0")
    return GradeResult(0.0)


def _grade_exact(response, correct, points) -> GradeResult:
    if response is None or correct is None:
        return GradeResult(0.0)
    return GradeResult(float(points) if response == correct else 0.0)


def _grade_multiple_select(response, correct, points) -> GradeResult:
    if not isinstance(response, list) or not isinstance(correct, list):
        return GradeResult(0.0)

    try:
        student_set = set(response)
        correct_set = set(correct)
    except TypeError:
        # unhashable entries (nested objects) never match
        return GradeResult(0.0)

    if student_set != correct_set:
        return GradeResult(0.0)
    return GradeResult(float(points))


def _grade_true_false(response, correct, points) -> GradeResult:
    if response is None or correct is None:
        return GradeResult(0.0)
    is_correct = str(response).strip().lower() == str(correct).strip().lower()
    return GradeResult(float(points) if is_correct else 0.0)


def _grade_short_answer(response, correct, points, case_insensitive=True) -> GradeResult:
    if not isinstance(response, str) or not isinstance(correct, str):
        return GradeResult(0.0)

    student = response.strip()
    expected = correct.strip()
    if not student or not expected:
        return GradeResult(0.0)

    if case_insensitive:
        student = student.lower()
        expected = expected.lower()

    return GradeResult(float(points) if student == expected else 0.0)


def _grade_numerical(response, correct, points) -> GradeResult:
    if isinstance(response, bool) or isinstance(correct, bool):
        return GradeResult(0.0)
    try:
        student = float(response)
        expected = float(correct)
    except (TypeError, ValueError):
        return GradeResult(0.0)

    is_correct = abs(student - expected) < NUMERICAL_TOLERANCE
    return GradeResult(float(points) if is_correct else 0.0)


def percentage_of(total: float, maximum: float) -> float:
    """Percentage rounded to 2 decimals, 0 when there is nothing to score"""
    if maximum <= 0:
        return 0.0
    return round(total / maximum * 100, 2)


def score_session(questions: List, responses: Dict[str, Any], pass_threshold: float,
                  manual_scores: Optional[Dict[str, float]] = None) -> SessionScore:
    """
    Score every exam question against the given responses.

    Missing responses are graded as None. A manual score, when present,
    replaces the auto score of that question.

    Args:
        questions: Question objects with id, type, content, points
        responses: question_id -> response
        pass_threshold: Minimum percentage to pass
        manual_scores: question_id -> manual score already given

    Returns:
        SessionScore
    """
    manual_scores = manual_scores or {}
    total = 0.0
    maximum = 0.0
    needs_manual = False
    question_scores = {}

    for question in questions:
        maximum += question.points
        grade = grade_answer(question.type, question.content, responses.get(question.id), question.points)
        question_scores[question.id] = grade

        manual = manual_scores.get(question.id)
        if manual is not None:
            total += manual
        else:
            total += grade.auto_score
            if grade.needs_manual_grading:
                needs_manual = True

    percentage = percentage_of(total, maximum)
    return SessionScore(
        total_score=round(total, 2),
        max_score=maximum,
        percentage=percentage,
        pass_status=percentage >= pass_threshold,
        needs_manual_grading=needs_manual,
        question_scores=question_scores
    )
