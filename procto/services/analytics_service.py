"""
Exam Analytics - class-level statistics for one exam

Single pass over the submitted sessions of an exam:
- score summary (average, highest, lowest, pass/fail counts, pass rate)
- score distribution in 10 buckets of 10 percentage points
- per-question average score and correct rate
- per-student result rows
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DISTRIBUTION_BUCKETS = 10


@dataclass
class QuestionInfo:
    question_id: str
    type: str
    points: float


@dataclass
class SubmissionRecord:
    """One submitted session with its result and answer scores"""
    student_id: str
    student_name: str
    email: str
    total_score: float
    percentage: float
    pass_status: bool
    # question_id -> (auto_score, manual_score)
    answer_scores: Dict[str, tuple] = field(default_factory=dict)


def effective_score(auto_score: Optional[float], manual_score: Optional[float]) -> float:
    """Manual score wins over auto score; an ungraded answer counts 0"""
    if manual_score is not None:
        return manual_score
    if auto_score is not None:
        return auto_score
    return 0.0


def bucket_index(percentage: float) -> int:
    """Map a percentage to its distribution bucket (100% lands in the last one)"""
    index = math.floor(percentage / 10) if percentage > 0 else 0
    return min(int(index), DISTRIBUTION_BUCKETS - 1)


def compute_exam_analytics(questions: List[QuestionInfo], submissions: List[SubmissionRecord]) -> Dict[str, Any]:
    """
    Aggregate analytics for an exam.

    Args:
        questions: Exam questions in exam order
        submissions: Submitted sessions that have a result

    Returns:
        Dict with analytics, question_stats and results
    """
    total = len(submissions)
    distribution = [0] * DISTRIBUTION_BUCKETS

    score_sum = 0.0
    highest = None
    lowest = None
    pass_count = 0
    results = []

    # question_id -> [score sum, correct count, attempts]
    per_question = {q.question_id: [0.0, 0, 0] for q in questions}
    points_by_question = {q.question_id: q.points for q in questions}

    for sub in submissions:
        pct = sub.percentage
        score_sum += pct
        highest = pct if highest is None else max(highest, pct)
        lowest = pct if lowest is None else min(lowest, pct)
        if sub.pass_status:
            pass_count += 1
        distribution[bucket_index(pct)] += 1

        for question_id, (auto_score, manual_score) in sub.answer_scores.items():
            stats = per_question.get(question_id)
            if stats is None:
                continue
            score = effective_score(auto_score, manual_score)
            stats[0] += score
            stats[2] += 1
            if score >= points_by_question[question_id]:
                stats[1] += 1

        results.append({
            "student_id": sub.student_id,
            "student_name": sub.student_name,
            "email": sub.email,
            "total_score": sub.total_score,
            "percentage": pct,
            "pass_status": sub.pass_status
        })

    question_stats = []
    for q in questions:
        score_total, correct, attempts = per_question[q.question_id]
        question_stats.append({
            "question_id": q.question_id,
            "type": q.type,
            "points": q.points,
            "avg_score": round(score_total / attempts, 2) if attempts else 0,
            "correct_rate": round(correct / attempts * 100) if attempts else 0,
            "total_attempts": attempts
        })

    analytics = {
        "total_submissions": total,
        "avg_score": round(score_sum / total, 2) if total else 0,
        "highest_score": highest if total else 0,
        "lowest_score": lowest if total else 0,
        "pass_rate": round(pass_count / total * 100, 2) if total else 0,
        "pass_count": pass_count,
        "fail_count": total - pass_count,
        "distribution": distribution
    }

    logger.debug(f"Computed analytics over {total} submissions and {len(questions)} questions")

    return {
        "analytics": analytics,
        "question_stats": question_stats,
        "results": results
    }


def build_exam_analytics(exam) -> Dict[str, Any]:
    """Collect an exam's submitted sessions from the database models and aggregate them"""
    from procto.models.session import SESSION_SUBMITTED, SESSION_TERMINATED

    questions = [
        QuestionInfo(question_id=eq.question_id, type=eq.question.type, points=eq.question.points)
        for eq in exam.exam_questions
    ]

    submissions = []
    for session in exam.sessions:
        if session.status not in (SESSION_SUBMITTED, SESSION_TERMINATED) or not session.result:
            continue
        student = session.student
        submissions.append(SubmissionRecord(
            student_id=student.id,
            student_name=student.full_name,
            email=student.email,
            total_score=session.result.total_score,
            percentage=session.result.percentage,
            pass_status=session.result.pass_status,
            answer_scores={a.question_id: (a.auto_score, a.manual_score) for a in session.answers}
        ))

    return compute_exam_analytics(questions, submissions)
