"""
Classroom Model with join codes for students
"""
import secrets
import string
from datetime import datetime
from procto import db
from procto.models.user import generate_uuid

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_code(prefix: str, length: int = 4) -> str:
    """Generate a human-readable code like PROCTO-7QX2"""
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return f"{prefix}-{suffix}"


def generate_join_code() -> str:
    return generate_code("PROCTO")


class Classroom(db.Model):
    """Course-like grouping of students and exams"""
    __tablename__ = "classrooms"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)

    # Join code shared with students
    join_code = db.Column(db.String(16), unique=True, nullable=False, index=True)

    # Creator (faculty)
    faculty_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)

    # Status
    is_active = db.Column(db.Boolean, default=True)
    deleted_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    faculty = db.relationship("User", foreign_keys=[faculty_id], backref="created_classrooms")

    @classmethod
    def unique_join_code(cls) -> str:
        """Draw join codes until one is unused"""
        while True:
            code = generate_join_code()
            if not cls.query.filter_by(join_code=code).first():
                return code

    @property
    def is_available(self) -> bool:
        return bool(self.is_active) and self.deleted_at is None

    def active_enrollments(self):
        return [e for e in self.enrollments if e.dropped_at is None]

    def to_dict(self, include_faculty=False):
        data = {
            "id": self.id,
            "code": self.join_code,
            "name": self.name,
            "description": self.description,
            "faculty_id": self.faculty_id,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "students": len(self.active_enrollments()),
            "exams": len([e for e in self.exams if e.deleted_at is None])
        }

        if include_faculty and self.faculty:
            data["faculty"] = self.faculty.full_name

        return data


class Enrollment(db.Model):
    """Join table: links students to classrooms"""
    __tablename__ = "enrollments"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    student_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    classroom_id = db.Column(db.String(36), db.ForeignKey("classrooms.id"), nullable=False, index=True)

    enrolled_at = db.Column(db.DateTime, default=datetime.utcnow)
    dropped_at = db.Column(db.DateTime)

    # One enrollment row per student and classroom, reused on re-join
    __table_args__ = (
        db.UniqueConstraint('student_id', 'classroom_id', name='unique_student_classroom'),
    )

    # Relationships
    student = db.relationship("User", backref="enrollments")
    classroom = db.relationship("Classroom", backref="enrollments")

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "classroom_id": self.classroom_id,
            "enrolled_at": self.enrolled_at.isoformat() if self.enrolled_at else None,
            "dropped_at": self.dropped_at.isoformat() if self.dropped_at else None
        }
