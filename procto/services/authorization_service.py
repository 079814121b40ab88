"""
Authorization Service - Role-Based Access Control

Extends JWT authentication with:
- Role decorators for Flask routes
- Classroom ownership and enrollment checks
- Exam and session access checks
"""
import logging
from typing import Optional, List
from functools import wraps
from flask import request, jsonify, g
from procto import db
from procto.models.user import User
from procto.models.classroom import Classroom, Enrollment
from procto.utils.jwt_handler import verify_token, get_user_id_from_token

logger = logging.getLogger(__name__)


# ============================================================================
# Permission Definitions
# ============================================================================

class Permissions:
    """Permission constants for RBAC"""
    CLASSROOM_CREATE = "classroom:create"
    CLASSROOM_JOIN = "classroom:join"

    EXAM_CREATE = "exam:create"
    EXAM_TAKE = "exam:take"

    PROCTOR_MONITOR = "proctor:monitor"
    PROCTOR_REPORT = "proctor:report"

    RESULTS_GRADE = "results:grade"
    RESULTS_PUBLISH = "results:publish"


# Role to permissions mapping
ROLE_PERMISSIONS = {
    "student": [
        Permissions.CLASSROOM_JOIN,
        Permissions.EXAM_TAKE,
        Permissions.PROCTOR_REPORT,
    ],
    "faculty": [
        Permissions.CLASSROOM_CREATE,
        Permissions.EXAM_CREATE,
        Permissions.PROCTOR_MONITOR,
        Permissions.RESULTS_GRADE,
        Permissions.RESULTS_PUBLISH,
    ],
    "admin": [
        Permissions.CLASSROOM_CREATE,
        Permissions.EXAM_CREATE,
        Permissions.PROCTOR_MONITOR,
        Permissions.RESULTS_GRADE,
        Permissions.RESULTS_PUBLISH,
    ]
}


# ============================================================================
# Authorization Service
# ============================================================================

class AuthorizationService:
    """
    Access checks for classrooms, exams and exam sessions.

    Usage:
        auth_service = get_authorization_service()

        if auth_service.check_classroom_access(user, classroom):
            # Allow access
    """

    def has_permission(self, user: User, permission: str) -> bool:
        """Check if user has a specific permission"""
        if not user or not user.role:
            return False

        return permission in ROLE_PERMISSIONS.get(user.role, [])

    def _active_enrollments(self, student_id: str):
        """Enrollments that are not dropped, in classrooms that are not deleted"""
        return Enrollment.query.join(Classroom).filter(
            Enrollment.student_id == student_id,
            Enrollment.dropped_at.is_(None),
            Classroom.deleted_at.is_(None),
            Classroom.is_active.is_(True)
        )

    def is_enrolled(self, student_id: str, classroom_id: str) -> bool:
        enrollment = self._active_enrollments(student_id).filter(
            Enrollment.classroom_id == classroom_id
        ).first()
        return enrollment is not None

    def owns_classroom(self, user: User, classroom: Optional[Classroom]) -> bool:
        if not user or not classroom:
            return False
        if user.role == "admin":
            return True
        return user.role == "faculty" and classroom.faculty_id == user.id

    def check_classroom_access(self, user: User, classroom: Optional[Classroom]) -> bool:
        """
        Faculty owners and admins manage a classroom, enrolled students read it.

        Returns:
            True if access allowed, False otherwise
        """
        if not user or not classroom:
            return False

        if self.owns_classroom(user, classroom):
            return True

        if user.role == "student":
            return self.is_enrolled(user.id, classroom.id)

        return False

    def owns_exam(self, user: User, exam) -> bool:
        return exam is not None and self.owns_classroom(user, exam.classroom)

    def check_exam_access(self, user: User, exam) -> bool:
        """Owners see any exam, students only published exams of their classrooms"""
        if not exam or exam.deleted_at is not None:
            return False
        if self.owns_exam(user, exam):
            return True
        if user.role == "student" and exam.is_published:
            return self.is_enrolled(user.id, exam.classroom_id)
        return False

    def check_session_access(self, user: User, session) -> bool:
        """The student who owns a session, or the faculty owning its exam"""
        if not user or not session:
            return False
        if user.role == "student":
            return session.student_id == user.id
        return self.owns_exam(user, session.exam)

    def get_user_classrooms(self, user: User) -> List[str]:
        """Get list of classroom IDs user has access to"""
        if not user:
            return []

        if user.role == "admin":
            classrooms = Classroom.query.filter_by(deleted_at=None).all()
            return [c.id for c in classrooms]

        if user.role == "faculty":
            classrooms = Classroom.query.filter_by(faculty_id=user.id, deleted_at=None).all()
            return [c.id for c in classrooms]

        enrollments = self._active_enrollments(user.id).all()
        return [e.classroom_id for e in enrollments]


# ============================================================================
# Flask Decorators
# ============================================================================

def require_auth(f):
    """Decorator to require authentication"""
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header:
            return jsonify({"error": "Missing authorization header"}), 401

        parts = auth_header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return jsonify({"error": "Invalid authorization format"}), 401

        token = parts[1]
        try:
            payload = verify_token(token)
        except Exception as e:
            logger.warning(f"Auth failed for user {get_user_id_from_token(token)}: {e}")
            return jsonify({"error": f"Invalid token: {str(e)}"}), 401

        user = db.session.get(User, payload.get("user_id"))
        if not user:
            return jsonify({"error": "User not found"}), 404

        if not user.is_active:
            return jsonify({"error": "Account is deactivated"}), 403

        g.current_user = user
        g.user_id = user.id

        return f(*args, **kwargs)
    return decorated


def require_permission(permission):
    """Decorator to require a role that grants the given permission"""
    def decorator(f):
        @wraps(f)
        @require_auth
        def decorated(*args, **kwargs):
            if not get_authorization_service().has_permission(g.current_user, permission):
                return jsonify({"error": "Forbidden"}), 403

            return f(*args, **kwargs)
        return decorated
    return decorator


# Singleton
_auth_service: Optional[AuthorizationService] = None


def get_authorization_service() -> AuthorizationService:
    """Get or create authorization service singleton"""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthorizationService()
    return _auth_service
