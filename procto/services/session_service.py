"""
Exam Session Service - lifecycle of a student's exam attempt

Implements:
- Starting a session or resuming the active one
- Saving answers while the session runs
- Submission with auto-grading and result upsert
- Proctoring event intake with termination after too many violations
- Manual grading and result recomputation
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from procto import db
from procto.models.session import (
    ExamSession, Answer, SuspiciousEvent, Result,
    SESSION_ACTIVE, SESSION_SUBMITTED, SESSION_TERMINATED, FINISHED_STATUSES, SEVERITIES
)
from procto.services.grading_service import score_session, percentage_of

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """Request cannot be applied to the session"""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# ============================================================================
# Start / resume
# ============================================================================

def _active_session(exam_id: str, student_id: str) -> Optional[ExamSession]:
    return ExamSession.query.filter_by(
        exam_id=exam_id, student_id=student_id, status=SESSION_ACTIVE
    ).first()


def start_session(exam, student, ip_address: Optional[str] = None,
                  now: Optional[datetime] = None) -> Tuple[ExamSession, bool]:
    """
    Start a new attempt or resume the student's active one.

    Returns:
        (session, resumed)

    Raises:
        SessionError: exam window closed or attempts exhausted
    """
    now = now or datetime.utcnow()

    active = _active_session(exam.id, student.id)
    if active:
        logger.info(f"Resuming session {active.id} for student {student.id}")
        return active, True

    status = exam.status_at(now)
    if status == "scheduled":
        raise SessionError("Exam has not started yet", 403)
    if status == "closed":
        raise SessionError("Exam has ended", 403)

    completed = ExamSession.query.filter(
        ExamSession.exam_id == exam.id,
        ExamSession.student_id == student.id,
        ExamSession.status.in_(FINISHED_STATUSES)
    ).count()
    if completed >= (exam.max_attempts or 1):
        raise SessionError("Maximum attempts reached", 403)

    session = ExamSession(
        exam_id=exam.id,
        student_id=student.id,
        status=SESSION_ACTIVE,
        started_at=now,
        ip_address=ip_address
    )
    db.session.add(session)
    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent request created the active session first
        db.session.rollback()
        active = _active_session(exam.id, student.id)
        if active is None:
            raise
        logger.info(f"Resuming session {active.id} created concurrently for student {student.id}")
        return active, True

    logger.info(f"Session {session.id} started: exam={exam.id} student={student.id}")
    return session, False


# ============================================================================
# Answers
# ============================================================================

def _parse_answers(answers: Any) -> Dict[str, Any]:
    """[{question_id, response}] -> {question_id: response}"""
    if not isinstance(answers, list):
        raise SessionError("answers array is required", 400)

    parsed = {}
    for item in answers:
        if not isinstance(item, dict) or not item.get("question_id"):
            raise SessionError("Each answer needs a question_id", 400)
        parsed[item["question_id"]] = item.get("response")
    return parsed


def _upsert_answers(session: ExamSession, responses: Dict[str, Any]) -> Dict[str, Answer]:
    """Write responses for the exam's questions, ignoring unknown question ids"""
    existing = session.answers_by_question()
    question_ids = {eq.question_id for eq in session.exam.exam_questions}

    for question_id, response in responses.items():
        if question_id not in question_ids:
            logger.debug(f"Ignoring answer for foreign question {question_id}")
            continue
        answer = existing.get(question_id)
        if answer is None:
            answer = Answer(session_id=session.id, question_id=question_id)
            session.answers.append(answer)
            existing[question_id] = answer
        answer.response = response

    return existing


def save_answers(session: ExamSession, answers: Any) -> List[Answer]:
    """Persist in-progress answers without grading them"""
    if session.status != SESSION_ACTIVE:
        raise SessionError("Session is no longer active", 409)

    responses = _parse_answers(answers)
    _upsert_answers(session, responses)
    db.session.commit()
    return session.answers


# ============================================================================
# Grading / finishing
# ============================================================================

def _grade_and_store(session: ExamSession, responses: Dict[str, Any], now: datetime) -> Result:
    """Grade every exam question, store auto scores and upsert the result"""
    exam = session.exam
    answers = _upsert_answers(session, responses)
    all_responses = {qid: a.response for qid, a in answers.items()}

    score = score_session(exam.questions, all_responses, exam.pass_threshold)

    for question in exam.questions:
        answer = answers.get(question.id)
        if answer is None:
            answer = Answer(session_id=session.id, question_id=question.id, response=None)
            session.answers.append(answer)
        answer.auto_score = score.question_scores[question.id].auto_score

    result = session.result
    if result is None:
        result = Result(session_id=session.id)
        session.result = result

    result.total_score = score.total_score
    result.max_score = score.max_score
    result.percentage = score.percentage
    result.pass_status = score.pass_status
    result.needs_manual_grading = score.needs_manual_grading
    result.finalized_at = None if score.needs_manual_grading else now

    return result


def submit_session(session: ExamSession, answers: Any, now: Optional[datetime] = None) -> Result:
    """
    Grade and close a session.

    Raises:
        SessionError: session already finished or malformed answers
    """
    now = now or datetime.utcnow()

    if session.is_finished:
        raise SessionError("Session already submitted", 409)

    responses = _parse_answers(answers)

    result = _grade_and_store(session, responses, now)
    session.status = SESSION_SUBMITTED
    session.submitted_at = now
    session.is_late = now > session.expires_at

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to submit session {session.id}: {e}")
        raise

    logger.info(
        f"Session {session.id} submitted: {result.total_score}/{result.max_score} "
        f"({result.percentage}%) late={session.is_late}"
    )
    return result


def terminate_session(session: ExamSession, now: Optional[datetime] = None) -> Result:
    """Close a session for proctoring violations, grading the answers saved so far"""
    now = now or datetime.utcnow()

    result = _grade_and_store(session, {}, now)
    session.status = SESSION_TERMINATED
    session.terminated_at = now

    logger.warning(f"Session {session.id} terminated after proctoring violations")
    return result


# ============================================================================
# Proctoring events
# ============================================================================

def record_event(session: ExamSession, event_type: str, severity: str,
                 screenshot_url: Optional[str] = None, details: Optional[dict] = None,
                 now: Optional[datetime] = None) -> SuspiciousEvent:
    """
    Log a suspicious event and terminate the session once the exam's
    high-severity violation limit is reached.

    Raises:
        SessionError: invalid severity or session already finished
    """
    now = now or datetime.utcnow()

    if severity not in SEVERITIES:
        raise SessionError(f"severity must be one of: {', '.join(SEVERITIES)}", 400)
    if session.status != SESSION_ACTIVE:
        raise SessionError("Session is no longer active", 409)

    event = SuspiciousEvent(
        session_id=session.id,
        type=event_type,
        severity=severity,
        screenshot_url=screenshot_url,
        details=details,
        timestamp=now
    )
    session.events.append(event)

    limit = session.exam.max_violations
    if limit:
        high_count = sum(1 for e in session.events if e.severity == "high")
        if high_count >= limit:
            terminate_session(session, now)

    db.session.commit()
    logger.info(f"Event {event_type}/{severity} on session {session.id} (status={session.status})")
    return event


# ============================================================================
# Manual grading
# ============================================================================

def apply_manual_grades(session: ExamSession, grades: Any, grader_id: str,
                        now: Optional[datetime] = None) -> Result:
    """
    Store manual scores and recompute the session result from effective scores.

    Args:
        grades: [{answer_id, score}]

    Raises:
        SessionError: session not finished, unknown answer or score out of range
    """
    now = now or datetime.utcnow()

    if not session.is_finished:
        raise SessionError("Session has not been submitted", 409)
    if not isinstance(grades, list) or not grades:
        raise SessionError("grades array is required", 400)

    answers = {a.id: a for a in session.answers}
    for item in grades:
        if not isinstance(item, dict):
            raise SessionError("Each grade needs answer_id and score", 400)
        answer = answers.get(item.get("answer_id"))
        if answer is None:
            raise SessionError(f"Answer not found: {item.get('answer_id')}", 404)

        score = item.get("score")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise SessionError("score must be a number", 400)
        if score < 0 or score > answer.question.points:
            raise SessionError(
                f"score must be between 0 and {answer.question.points}", 400
            )

        answer.manual_score = float(score)
        answer.graded_by = grader_id

    exam = session.exam
    by_question = session.answers_by_question()
    total = 0.0
    pending_manual = False
    for question in exam.questions:
        answer = by_question.get(question.id)
        if answer is None:
            continue
        total += answer.effective_score
        if question.needs_manual_grading and answer.manual_score is None:
            pending_manual = True

    result = session.result
    if result is None:
        result = Result(session_id=session.id)
        session.result = result

    result.total_score = round(total, 2)
    result.max_score = exam.max_score
    result.percentage = percentage_of(total, result.max_score)
    result.pass_status = result.percentage >= exam.pass_threshold
    result.needs_manual_grading = pending_manual
    result.finalized_at = None if pending_manual else now

    db.session.commit()
    logger.info(f"Manual grades saved for session {session.id} by {grader_id}")
    return result


def set_results_published(exam, publish: bool = True) -> int:
    """Publish or unpublish every result of an exam, returns the count changed"""
    count = 0
    for session in exam.sessions:
        if session.result:
            session.result.is_published = publish
            count += 1
    db.session.commit()
    return count
