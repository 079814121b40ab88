"""
Exam Routes - exam authoring, exam sessions and submission
"""
import logging
from datetime import datetime, timedelta
from flask import Blueprint, request, jsonify, g
from procto import db
from procto.models.classroom import Classroom
from procto.models.exam import (
    Exam, Question, ExamQuestion, QUESTION_TYPES,
    DEFAULT_MAX_ATTEMPTS, DEFAULT_PASS_THRESHOLD
)
from procto.models.session import ExamSession
from procto.services.authorization_service import (
    require_auth, require_permission, get_authorization_service, Permissions
)
from procto.services.rate_limiter import rate_limit
from procto.services.session_service import (
    SessionError, start_session, save_answers, submit_session
)
from procto.utils.datetime_utils import parse_iso_datetime

exams_bp = Blueprint("exams", __name__, url_prefix="/api/exams")

logger = logging.getLogger(__name__)

TYPE_ALIASES = {
    "mcq": "multiple_choice",
    "descriptive": "essay",
}


class QuestionValidationError(ValueError):
    pass


def normalize_question(raw, index):
    """
    Turn an authoring payload into (type, content, points, difficulty, tags).

    `mcq` questions carry `options` and a `correct_option` index; other types
    give `correct_answer` directly.
    """
    if not isinstance(raw, dict):
        raise QuestionValidationError(f"Question {index + 1} must be an object")

    qtype = (raw.get("type") or "multiple_choice").lower()
    is_mcq_alias = qtype == "mcq"
    qtype = TYPE_ALIASES.get(qtype, qtype)
    if qtype not in QUESTION_TYPES:
        raise QuestionValidationError(f"Question {index + 1}: unknown type '{raw.get('type')}'")

    text = (raw.get("question_text") or "").strip()
    if not text:
        raise QuestionValidationError(f"Question {index + 1}: question_text is required")

    content = {"question_text": text}

    if qtype in ("multiple_choice", "multiple_select"):
        options = raw.get("options")
        if not isinstance(options, list) or len(options) < 2:
            raise QuestionValidationError(f"Question {index + 1}: at least two options are required")
        content["options"] = options

        if is_mcq_alias or "correct_option" in raw:
            idx = raw.get("correct_option")
            if not isinstance(idx, int) or isinstance(idx, bool) or not 0 <= idx < len(options):
                raise QuestionValidationError(f"Question {index + 1}: correct_option out of range")
            content["correct_answer"] = options[idx]
        else:
            content["correct_answer"] = raw.get("correct_answer")
    elif qtype == "essay":
        if raw.get("max_words"):
            content["max_words"] = raw["max_words"]
    elif qtype != "code":
        content["correct_answer"] = raw.get("correct_answer")
        if qtype == "short_answer" and "case_insensitive" in raw:
            content["case_insensitive"] = bool(raw["case_insensitive"])

    points = raw.get("points", 1)
    if isinstance(points, bool) or not isinstance(points, (int, float)) or points <= 0:
        raise QuestionValidationError(f"Question {index + 1}: points must be positive")

    return qtype, content, float(points), (raw.get("difficulty") or "medium").lower(), raw.get("tags") or []


def client_ip():
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or request.remote_addr or "unknown"


def _load_exam(exam_id):
    exam = db.session.get(Exam, exam_id)
    if not exam or exam.deleted_at:
        return None
    return exam


# ==================== Exams ====================

@exams_bp.route("", methods=["POST"])
@require_permission(Permissions.EXAM_CREATE)
def create_exam():
    """Create an exam with its questions in one transaction"""
    data = request.get_json(silent=True) or {}

    classroom_id = data.get("classroom_id")
    title = (data.get("title") or "").strip()
    duration = data.get("duration_minutes")
    questions = data.get("questions") or []

    if not classroom_id or not title or not duration or not questions:
        return jsonify({
            "error": "classroom_id, title, duration_minutes, and at least one question are required"
        }), 400

    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        return jsonify({"error": "duration_minutes must be a positive integer"}), 400

    classroom = db.session.get(Classroom, classroom_id)
    if not classroom or classroom.deleted_at or not get_authorization_service().owns_classroom(g.current_user, classroom):
        return jsonify({"error": "Classroom not found or forbidden"}), 404

    try:
        start_at = parse_iso_datetime(data.get("start_at")) or datetime.utcnow()
        end_at = parse_iso_datetime(data.get("end_at")) or start_at + timedelta(minutes=duration)
    except ValueError:
        return jsonify({"error": "start_at and end_at must be ISO-8601 timestamps"}), 400

    if end_at <= start_at:
        return jsonify({"error": "end_at must be after start_at"}), 400

    rules = data.get("rules") or {}
    if not isinstance(rules, dict):
        return jsonify({"error": "rules must be an object"}), 400

    max_attempts = rules.get("max_attempts", DEFAULT_MAX_ATTEMPTS)
    pass_threshold = rules.get("pass_threshold", DEFAULT_PASS_THRESHOLD)
    max_violations = rules.get("max_violations")

    if not isinstance(max_attempts, int) or max_attempts < 1:
        return jsonify({"error": "rules.max_attempts must be at least 1"}), 400
    if not isinstance(pass_threshold, (int, float)) or not 0 <= pass_threshold <= 100:
        return jsonify({"error": "rules.pass_threshold must be between 0 and 100"}), 400
    if max_violations is not None and (not isinstance(max_violations, int) or max_violations < 1):
        return jsonify({"error": "rules.max_violations must be a positive integer"}), 400

    try:
        normalized = [normalize_question(q, i) for i, q in enumerate(questions)]
    except QuestionValidationError as e:
        return jsonify({"error": str(e)}), 400

    exam = Exam(
        classroom_id=classroom.id,
        code=Exam.unique_code(),
        title=title,
        instructions=(data.get("instructions") or data.get("description") or "").strip() or None,
        duration_minutes=duration,
        start_at=start_at,
        end_at=end_at,
        is_published=data.get("is_published", True),
        max_attempts=max_attempts,
        pass_threshold=float(pass_threshold),
        max_violations=max_violations,
        created_by=g.user_id
    )

    try:
        db.session.add(exam)
        for i, (qtype, content, points, difficulty, tags) in enumerate(normalized):
            question = Question(
                classroom_id=classroom.id,
                type=qtype,
                content=content,
                points=points,
                difficulty=difficulty,
                topic_tags=tags
            )
            db.session.add(question)
            exam.exam_questions.append(ExamQuestion(question=question, order_index=i))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Create exam failed: {e}")
        return jsonify({"error": "Could not create exam"}), 500

    logger.info(f"Exam {exam.id} ({exam.code}) created with {len(normalized)} questions")

    return jsonify({"exam": exam.to_dict()}), 201


@exams_bp.route("", methods=["GET"])
@require_auth
def list_exams():
    """Faculty see exams of their classrooms, students see published exams of enrolled classrooms"""
    user = g.current_user
    classroom_id = request.args.get("classroom_id")
    classroom_ids = get_authorization_service().get_user_classrooms(user)

    if classroom_id:
        classroom_ids = [c for c in classroom_ids if c == classroom_id]

    query = Exam.query.filter(Exam.classroom_id.in_(classroom_ids), Exam.deleted_at.is_(None))

    if user.role == "student":
        query = query.filter(Exam.is_published.is_(True)).order_by(Exam.start_at.asc())
    else:
        query = query.order_by(Exam.created_at.desc())

    exams = query.all()

    return jsonify({
        "exams": [e.to_dict() for e in exams],
        "count": len(exams)
    }), 200


@exams_bp.route("/<exam_id>", methods=["GET"])
@require_auth
def get_exam(exam_id):
    """Exam with questions; students never receive correct answers"""
    user = g.current_user
    exam = _load_exam(exam_id)

    if not exam:
        return jsonify({"error": "Exam not found"}), 404

    if not get_authorization_service().check_exam_access(user, exam):
        return jsonify({"error": "Forbidden"}), 403

    return jsonify({
        "exam": exam.to_dict(include_questions=True, hide_answers=user.role == "student")
    }), 200


@exams_bp.route("/code/<code>", methods=["GET"])
@require_auth
def get_exam_by_code(code):
    """Resolve an exam code entered in the exam room"""
    user = g.current_user
    exam = Exam.query.filter_by(code=code.strip().upper(), deleted_at=None).first()

    if not exam or not get_authorization_service().check_exam_access(user, exam):
        return jsonify({"error": "Exam not found"}), 404

    return jsonify({"exam": exam.to_dict()}), 200


@exams_bp.route("/<exam_id>", methods=["DELETE"])
@require_permission(Permissions.EXAM_CREATE)
def delete_exam(exam_id):
    """Soft delete an exam"""
    exam = _load_exam(exam_id)

    if not exam:
        return jsonify({"error": "Exam not found"}), 404

    if not get_authorization_service().owns_exam(g.current_user, exam):
        return jsonify({"error": "Forbidden"}), 403

    exam.deleted_at = datetime.utcnow()
    db.session.commit()

    return jsonify({"message": "Exam deleted"}), 200


# ==================== Sessions ====================

@exams_bp.route("/<exam_id>/sessions", methods=["POST"])
@require_permission(Permissions.EXAM_TAKE)
def start_exam_session(exam_id):
    """Start or resume an exam session"""
    user = g.current_user
    exam = _load_exam(exam_id)

    if not exam or not exam.is_published:
        return jsonify({"error": "Exam not found"}), 404

    if not get_authorization_service().is_enrolled(user.id, exam.classroom_id):
        return jsonify({"error": "Not enrolled in this classroom"}), 403

    try:
        session, resumed = start_session(exam, user, ip_address=client_ip())
    except SessionError as e:
        return jsonify({"error": e.message}), e.status_code

    return jsonify({
        "session": session.to_dict(),
        "resumed": resumed
    }), 200 if resumed else 201


@exams_bp.route("/<exam_id>/sessions", methods=["GET"])
@require_auth
def list_exam_sessions(exam_id):
    """Faculty see every session of the exam, students their own"""
    user = g.current_user
    exam = _load_exam(exam_id)

    if not exam:
        return jsonify({"error": "Exam not found"}), 404

    auth = get_authorization_service()
    query = ExamSession.query.filter_by(exam_id=exam.id)

    if auth.owns_exam(user, exam):
        sessions = query.order_by(ExamSession.started_at.desc()).all()
        return jsonify({
            "sessions": [s.to_dict(include_student=True, include_result=True) for s in sessions]
        }), 200

    if user.role != "student":
        return jsonify({"error": "Forbidden"}), 403

    sessions = query.filter_by(student_id=user.id).order_by(ExamSession.started_at.desc()).all()
    return jsonify({
        "sessions": [s.to_dict(include_result=True) for s in sessions]
    }), 200


def _owned_session(exam_id, session_id):
    """Load a session for its student, returning (session, error_response)"""
    session = db.session.get(ExamSession, session_id)

    if not session:
        return None, (jsonify({"error": "Session not found"}), 404)
    if session.student_id != g.user_id:
        return None, (jsonify({"error": "Forbidden"}), 403)
    if session.exam_id != exam_id:
        return None, (jsonify({"error": "Exam/session mismatch"}), 400)
    return session, None


@exams_bp.route("/<exam_id>/sessions/<session_id>/answers", methods=["PUT"])
@require_permission(Permissions.EXAM_TAKE)
def save_session_answers(exam_id, session_id):
    """Save in-progress answers so the session can be resumed"""
    session, error = _owned_session(exam_id, session_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}

    try:
        answers = save_answers(session, data.get("answers"))
    except SessionError as e:
        return jsonify({"error": e.message}), e.status_code

    return jsonify({
        "message": "Answers saved",
        "answers": [a.to_dict() for a in answers]
    }), 200


@exams_bp.route("/<exam_id>/sessions/<session_id>/submit", methods=["POST"])
@require_permission(Permissions.EXAM_TAKE)
@rate_limit("exam_submit")
def submit_exam(exam_id, session_id):
    """Submit answers, auto-grade and create the result"""
    session, error = _owned_session(exam_id, session_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}

    try:
        result = submit_session(session, data.get("answers"))
    except SessionError as e:
        return jsonify({"error": e.message}), e.status_code

    return jsonify({
        "message": "Exam submitted successfully",
        "result": {
            "id": result.id,
            "total_score": result.total_score,
            "max_score": result.max_score,
            "percentage": result.percentage,
            "pass_status": result.pass_status,
            "needs_manual_grading": bool(result.needs_manual_grading),
            "is_late": bool(session.is_late)
        }
    }), 200
