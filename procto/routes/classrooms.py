"""
Classroom Routes - Create, list and join classrooms
"""
import logging
from datetime import datetime
from flask import Blueprint, request, jsonify, g
from procto import db
from procto.models.classroom import Classroom, Enrollment
from procto.services.authorization_service import (
    require_auth, require_permission, get_authorization_service, Permissions
)

classrooms_bp = Blueprint("classrooms", __name__, url_prefix="/api/classrooms")

logger = logging.getLogger(__name__)


# ==================== Faculty: Create & Manage Classrooms ====================

@classrooms_bp.route("", methods=["POST"])
@require_permission(Permissions.CLASSROOM_CREATE)
def create_classroom():
    """Faculty creates a new classroom"""
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()

    if not name:
        return jsonify({"error": "Classroom name is required"}), 400

    classroom = Classroom(
        name=name,
        description=(data.get("description") or "").strip() or None,
        join_code=Classroom.unique_join_code(),
        faculty_id=g.user_id
    )

    db.session.add(classroom)
    db.session.commit()

    logger.info(f"Classroom {classroom.id} created with code {classroom.join_code}")

    return jsonify({
        "classroom": classroom.to_dict(),
        "message": f"Classroom created! Share code: {classroom.join_code}"
    }), 201


@classrooms_bp.route("", methods=["GET"])
@require_auth
def list_classrooms():
    """Faculty see their classrooms, students see their enrollments"""
    user = g.current_user

    if user.role in ("faculty", "admin"):
        classrooms = Classroom.query.filter_by(
            faculty_id=user.id, is_active=True, deleted_at=None
        ).order_by(Classroom.created_at.desc()).all()

        return jsonify({
            "classrooms": [c.to_dict() for c in classrooms],
            "count": len(classrooms)
        }), 200

    enrollments = Enrollment.query.filter_by(
        student_id=user.id, dropped_at=None
    ).order_by(Enrollment.enrolled_at.desc()).all()

    classrooms = []
    for e in enrollments:
        if not e.classroom.is_available:
            continue
        data = e.classroom.to_dict(include_faculty=True)
        data["enrolled_at"] = e.enrolled_at.isoformat() if e.enrolled_at else None
        data["enrollment_id"] = e.id
        classrooms.append(data)

    return jsonify({
        "classrooms": classrooms,
        "count": len(classrooms)
    }), 200


@classrooms_bp.route("/<classroom_id>", methods=["GET"])
@require_auth
def get_classroom(classroom_id):
    """Classroom details with its exams"""
    user = g.current_user
    classroom = db.session.get(Classroom, classroom_id)

    if not classroom or classroom.deleted_at:
        return jsonify({"error": "Classroom not found"}), 404

    auth = get_authorization_service()
    if not auth.check_classroom_access(user, classroom):
        return jsonify({"error": "Access denied to this classroom"}), 403

    is_owner = auth.owns_classroom(user, classroom)
    exams = [
        e for e in classroom.exams
        if e.deleted_at is None and (is_owner or e.is_published)
    ]
    exams.sort(key=lambda e: e.start_at, reverse=True)

    data = classroom.to_dict(include_faculty=True)
    data["exams_list"] = [e.to_dict() for e in exams]

    if is_owner:
        data["students_list"] = [
            {**e.student.to_summary(), "enrolled_at": e.enrolled_at.isoformat() if e.enrolled_at else None}
            for e in classroom.active_enrollments()
        ]

    return jsonify({"classroom": data}), 200


@classrooms_bp.route("/<classroom_id>", methods=["DELETE"])
@require_permission(Permissions.CLASSROOM_CREATE)
def delete_classroom(classroom_id):
    """Soft delete a classroom"""
    classroom = db.session.get(Classroom, classroom_id)

    if not classroom or classroom.deleted_at:
        return jsonify({"error": "Classroom not found"}), 404

    if not get_authorization_service().owns_classroom(g.current_user, classroom):
        return jsonify({"error": "Forbidden"}), 403

    classroom.deleted_at = datetime.utcnow()
    classroom.is_active = False
    db.session.commit()

    return jsonify({"message": "Classroom deleted"}), 200


# ==================== Student: Join & Leave ====================

@classrooms_bp.route("/join", methods=["POST"])
@require_permission(Permissions.CLASSROOM_JOIN)
def join_classroom():
    """Student joins a classroom with its code"""
    data = request.get_json(silent=True) or {}
    code = (data.get("code") or "").strip().upper()

    if not code:
        return jsonify({"error": "Classroom code is required"}), 400

    classroom = Classroom.query.filter_by(join_code=code).first()

    if not classroom or not classroom.is_available:
        return jsonify({"error": "Invalid class code. Please check with your faculty and try again."}), 404

    existing = Enrollment.query.filter_by(
        classroom_id=classroom.id, student_id=g.user_id
    ).first()

    if existing and existing.dropped_at is None:
        return jsonify({"error": "Already enrolled in this classroom"}), 409

    if existing:
        # Re-enroll after a drop
        existing.dropped_at = None
        existing.enrolled_at = datetime.utcnow()
    else:
        db.session.add(Enrollment(classroom_id=classroom.id, student_id=g.user_id))

    db.session.commit()

    logger.info(f"Student {g.user_id} joined classroom {classroom.id}")

    return jsonify({
        "message": "Enrolled successfully",
        "classroom": classroom.to_dict(include_faculty=True)
    }), 201


@classrooms_bp.route("/<classroom_id>/enrollment", methods=["DELETE"])
@require_permission(Permissions.CLASSROOM_JOIN)
def drop_classroom(classroom_id):
    """Student leaves a classroom"""
    enrollment = Enrollment.query.filter_by(
        classroom_id=classroom_id, student_id=g.user_id, dropped_at=None
    ).first()

    if not enrollment:
        return jsonify({"error": "Not enrolled in this classroom"}), 404

    enrollment.dropped_at = datetime.utcnow()
    db.session.commit()

    return jsonify({"message": "Dropped from classroom"}), 200
