"""
Results Routes - result views, manual grading, publishing and analytics
"""
import logging
from flask import Blueprint, request, jsonify, g
from procto import db
from procto.models.exam import Exam
from procto.models.session import ExamSession, Result, FINISHED_STATUSES
from procto.services.analytics_service import build_exam_analytics
from procto.services.authorization_service import (
    require_auth, require_permission, get_authorization_service, Permissions
)
from procto.services.integrity_scorer import IntegrityScorer
from procto.services.session_service import (
    SessionError, apply_manual_grades, set_results_published
)
from procto.utils.csv_export import csv_response
from procto.utils.datetime_utils import isoformat

results_bp = Blueprint("results", __name__, url_prefix="/api/results")

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ["student_name", "email", "total_score", "percentage", "pass_status"]


def _exam_summary(exam):
    return {
        "id": exam.id,
        "code": exam.code,
        "title": exam.title,
        "classroom_id": exam.classroom_id,
        "classroom_name": exam.classroom.name if exam.classroom else None
    }


@results_bp.route("", methods=["GET"])
@require_auth
def list_results():
    """Students get their published results, faculty a per-exam grading summary"""
    user = g.current_user

    if user.role == "student":
        sessions = ExamSession.query.join(Result).filter(
            ExamSession.student_id == user.id,
            Result.is_published.is_(True)
        ).order_by(ExamSession.started_at.desc()).all()

        return jsonify({
            "results": [
                {
                    **s.result.to_dict(),
                    "status": s.status,
                    "submitted_at": isoformat(s.submitted_at),
                    "exam": _exam_summary(s.exam),
                    "events_count": len(s.events)
                }
                for s in sessions
            ]
        }), 200

    classroom_ids = get_authorization_service().get_user_classrooms(user)
    exams = Exam.query.filter(
        Exam.classroom_id.in_(classroom_ids),
        Exam.deleted_at.is_(None)
    ).order_by(Exam.created_at.desc()).all() if classroom_ids else []

    summaries = []
    for exam in exams:
        finished = [s for s in exam.sessions if s.status in FINISHED_STATUSES]
        graded = [s for s in finished if s.result and not s.result.needs_manual_grading]
        published = [s for s in finished if s.result and s.result.is_published]
        summaries.append({
            "exam": _exam_summary(exam),
            "total_sessions": len(exam.sessions),
            "graded_sessions": len(graded),
            "published_sessions": len(published),
            "pending_grading": len(finished) - len(graded)
        })

    return jsonify({"exams": summaries}), 200


@results_bp.route("/<session_id>", methods=["GET"])
@require_auth
def get_result(session_id):
    """Detailed breakdown of one session"""
    user = g.current_user
    session = db.session.get(ExamSession, session_id)

    if not session:
        return jsonify({"error": "Session not found"}), 404

    if not get_authorization_service().check_session_access(user, session):
        return jsonify({"error": "Forbidden"}), 403

    is_student = user.role == "student"
    if is_student and not (session.result and session.result.is_published):
        return jsonify({"error": "Result not published yet"}), 403

    answers = session.answers_by_question()
    questions = []
    for eq in session.exam.exam_questions:
        answer = answers.get(eq.question_id)
        questions.append({
            **eq.question.to_dict(order_index=eq.order_index),
            "answer": answer.to_dict() if answer else None
        })

    events = [e.to_dict() for e in session.events]
    integrity = IntegrityScorer().compute_breakdown(e["severity"] for e in events)

    return jsonify({
        "session": session.to_dict(include_student=True),
        "exam": _exam_summary(session.exam),
        "questions": questions,
        "events": events,
        "integrity": integrity,
        "result": session.result.to_dict() if session.result else None
    }), 200


@results_bp.route("/<session_id>", methods=["PATCH"])
@require_permission(Permissions.RESULTS_GRADE)
def grade_result(session_id):
    """Save manual scores; the server recomputes the result"""
    session = db.session.get(ExamSession, session_id)

    if not session:
        return jsonify({"error": "Session not found"}), 404

    if not get_authorization_service().owns_exam(g.current_user, session.exam):
        return jsonify({"error": "Forbidden"}), 403

    data = request.get_json(silent=True) or {}

    try:
        result = apply_manual_grades(session, data.get("grades"), g.user_id)
    except SessionError as e:
        return jsonify({"error": e.message}), e.status_code

    return jsonify({
        "message": "Grades saved",
        "result": result.to_dict()
    }), 200


@results_bp.route("/publish", methods=["POST"])
@require_permission(Permissions.RESULTS_PUBLISH)
def publish_results():
    """Publish (or withdraw) every result of an exam"""
    data = request.get_json(silent=True) or {}
    exam_id = data.get("exam_id")

    if not exam_id:
        return jsonify({"error": "exam_id is required"}), 400

    exam = db.session.get(Exam, exam_id)
    if not exam or exam.deleted_at:
        return jsonify({"error": "Exam not found"}), 404

    if not get_authorization_service().owns_exam(g.current_user, exam):
        return jsonify({"error": "Forbidden"}), 403

    publish = bool(data.get("publish", True))
    count = set_results_published(exam, publish)

    logger.info(f"{'Published' if publish else 'Unpublished'} {count} results for exam {exam.id}")

    return jsonify({
        "message": f"{count} results {'published' if publish else 'unpublished'}",
        "count": count,
        "publish": publish
    }), 200


def _analytics_exam(exam_id):
    """Load an exam for its owner, returning (exam, error_response)"""
    exam = db.session.get(Exam, exam_id)
    if not exam or exam.deleted_at:
        return None, (jsonify({"error": "Exam not found"}), 404)
    if not get_authorization_service().owns_exam(g.current_user, exam):
        return None, (jsonify({"error": "Forbidden"}), 403)
    return exam, None


@results_bp.route("/analytics/<exam_id>", methods=["GET"])
@require_permission(Permissions.RESULTS_GRADE)
def exam_analytics(exam_id):
    """Class-level statistics for an exam"""
    exam, error = _analytics_exam(exam_id)
    if error:
        return error

    data = build_exam_analytics(exam)
    data["exam"] = {
        **_exam_summary(exam),
        "max_score": exam.max_score,
        "pass_threshold": exam.pass_threshold
    }
    return jsonify(data), 200


@results_bp.route("/analytics/<exam_id>/export", methods=["GET"])
@require_permission(Permissions.RESULTS_GRADE)
def export_analytics(exam_id):
    """Per-student results as CSV"""
    exam, error = _analytics_exam(exam_id)
    if error:
        return error

    rows = build_exam_analytics(exam)["results"]
    return csv_response(rows, filename=f"{exam.code}-results", columns=EXPORT_COLUMNS)
