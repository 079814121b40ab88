"""
Proctoring Routes - suspicious event intake and live monitoring
"""
import logging
from flask import Blueprint, request, jsonify, g
from procto import db
from procto.models.exam import Exam
from procto.models.session import ExamSession, SuspiciousEvent, SESSION_ACTIVE, SEVERITIES
from procto.services.authorization_service import (
    require_auth, require_permission, get_authorization_service, Permissions
)
from procto.services.integrity_scorer import assess_session
from procto.services.rate_limiter import rate_limit
from procto.services.session_service import SessionError, record_event

proctor_bp = Blueprint("proctor", __name__, url_prefix="/api/proctor")

logger = logging.getLogger(__name__)

RECENT_EVENTS_LIMIT = 5


@proctor_bp.route("/events", methods=["POST"])
@require_permission(Permissions.PROCTOR_REPORT)
@rate_limit("proctor_event")
def log_event():
    """Record a suspicious event reported by the exam room"""
    data = request.get_json(silent=True) or {}

    session_id = data.get("session_id")
    event_type = (data.get("type") or "").strip()
    severity = data.get("severity")

    if not session_id or not event_type or not severity:
        return jsonify({"error": "session_id, type and severity are required"}), 400

    if severity not in SEVERITIES:
        return jsonify({"error": f"severity must be one of: {', '.join(SEVERITIES)}"}), 400

    details = data.get("details")
    if details is not None and not isinstance(details, dict):
        return jsonify({"error": "details must be an object"}), 400

    session = db.session.get(ExamSession, session_id)
    if not session:
        return jsonify({"error": "Session not found"}), 404

    if session.student_id != g.user_id:
        return jsonify({"error": "Forbidden"}), 403

    try:
        event = record_event(
            session,
            event_type,
            severity,
            screenshot_url=data.get("screenshot_url"),
            details=details
        )
    except SessionError as e:
        return jsonify({"error": e.message}), e.status_code

    return jsonify({
        "event": event.to_dict(),
        "session_status": session.status,
        "terminated": session.status != SESSION_ACTIVE
    }), 201


@proctor_bp.route("/events", methods=["GET"])
@require_auth
def list_events():
    """Events of one session, newest first"""
    session_id = request.args.get("session_id")
    if not session_id:
        return jsonify({"error": "session_id query parameter is required"}), 400

    session = db.session.get(ExamSession, session_id)
    if not session:
        return jsonify({"error": "Session not found"}), 404

    if not get_authorization_service().owns_exam(g.current_user, session.exam):
        return jsonify({"error": "Forbidden"}), 403

    events = SuspiciousEvent.query.filter_by(session_id=session.id).order_by(
        SuspiciousEvent.timestamp.desc()
    ).all()

    return jsonify({
        "events": [e.to_dict() for e in events],
        "count": len(events)
    }), 200


@proctor_bp.route("/sessions", methods=["GET"])
@require_permission(Permissions.PROCTOR_MONITOR)
def monitor_sessions():
    """Active sessions of the faculty's exams with integrity scores and flags"""
    classroom_ids = get_authorization_service().get_user_classrooms(g.current_user)
    if not classroom_ids:
        return jsonify({"sessions": [], "count": 0}), 200

    sessions = ExamSession.query.join(Exam).filter(
        Exam.classroom_id.in_(classroom_ids),
        Exam.deleted_at.is_(None),
        ExamSession.status == SESSION_ACTIVE
    ).order_by(ExamSession.started_at.desc()).all()

    monitored = []
    for session in sessions:
        events = [e.to_dict() for e in session.events]
        data = session.to_dict(include_student=True)
        data["exam"] = {
            "id": session.exam.id,
            "code": session.exam.code,
            "title": session.exam.title
        }
        data["recent_events"] = list(reversed(events[-RECENT_EVENTS_LIMIT:]))
        data.update(assess_session(events))
        monitored.append(data)

    return jsonify({
        "sessions": monitored,
        "count": len(monitored)
    }), 200
