"""
Exam and Question Models
"""
from datetime import datetime
from sqlalchemy import JSON
from procto import db
from procto.models.user import generate_uuid
from procto.models.classroom import generate_code
from procto.utils.datetime_utils import isoformat


QUESTION_TYPES = (
    "multiple_choice",
    "multiple_select",
    "true_false",
    "short_answer",
    "numerical",
    "essay",
    "code",
)

# Types graded by faculty after submission
MANUAL_QUESTION_TYPES = ("essay", "code")

DEFAULT_MAX_ATTEMPTS = 1
DEFAULT_PASS_THRESHOLD = 60.0


class Exam(db.Model):
    """Timed exam belonging to a classroom"""
    __tablename__ = "exams"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    classroom_id = db.Column(db.String(36), db.ForeignKey("classrooms.id"), nullable=False, index=True)
    code = db.Column(db.String(16), unique=True, nullable=False, index=True)
    title = db.Column(db.String(300), nullable=False)
    instructions = db.Column(db.Text)

    duration_minutes = db.Column(db.Integer, nullable=False)
    start_at = db.Column(db.DateTime, nullable=False)
    end_at = db.Column(db.DateTime, nullable=False)

    is_published = db.Column(db.Boolean, default=True)

    # Rules
    max_attempts = db.Column(db.Integer, default=DEFAULT_MAX_ATTEMPTS, nullable=False)
    pass_threshold = db.Column(db.Float, default=DEFAULT_PASS_THRESHOLD, nullable=False)
    max_violations = db.Column(db.Integer)  # high-severity events before termination, None = never

    created_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    deleted_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    classroom = db.relationship("Classroom", backref="exams")
    exam_questions = db.relationship(
        "ExamQuestion", backref="exam", cascade="all, delete-orphan",
        order_by="ExamQuestion.order_index"
    )

    @classmethod
    def unique_code(cls) -> str:
        while True:
            code = generate_code("EXAM")
            if not cls.query.filter_by(code=code).first():
                return code

    @property
    def questions(self):
        """Questions in exam order"""
        return [eq.question for eq in self.exam_questions]

    @property
    def max_score(self) -> float:
        return float(sum(q.points for q in self.questions))

    def status_at(self, now: datetime = None) -> str:
        now = now or datetime.utcnow()
        if now < self.start_at:
            return "scheduled"
        if now > self.end_at:
            return "closed"
        return "active"

    @property
    def status(self) -> str:
        return self.status_at()

    def rules_dict(self):
        return {
            "max_attempts": self.max_attempts,
            "pass_threshold": self.pass_threshold,
            "max_violations": self.max_violations
        }

    def to_dict(self, include_questions=False, hide_answers=False):
        data = {
            "id": self.id,
            "code": self.code,
            "classroom_id": self.classroom_id,
            "title": self.title,
            "instructions": self.instructions,
            "duration_minutes": self.duration_minutes,
            "start_at": isoformat(self.start_at),
            "end_at": isoformat(self.end_at),
            "status": self.status,
            "is_published": self.is_published,
            "rules": self.rules_dict(),
            "questions_count": len(self.exam_questions),
            "sessions_count": len(self.sessions),
            "created_at": isoformat(self.created_at)
        }

        if self.classroom:
            data["classroom"] = {
                "id": self.classroom.id,
                "code": self.classroom.join_code,
                "name": self.classroom.name
            }

        if include_questions:
            data["questions"] = [
                eq.question.to_dict(order_index=eq.order_index, hide_answer=hide_answers)
                for eq in self.exam_questions
            ]

        return data


class Question(db.Model):
    """Question bank entry, scoped to a classroom"""
    __tablename__ = "questions"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    classroom_id = db.Column(db.String(36), db.ForeignKey("classrooms.id"), nullable=False, index=True)
    type = db.Column(db.String(30), nullable=False)
    # {question_text, options, correct_answer, case_insensitive, max_words}
    content = db.Column(JSON, nullable=False)
    points = db.Column(db.Float, default=1.0, nullable=False)
    difficulty = db.Column(db.String(20), default="medium")  # easy, medium, hard
    topic_tags = db.Column(JSON, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def needs_manual_grading(self) -> bool:
        return self.type in MANUAL_QUESTION_TYPES

    def to_dict(self, order_index=None, hide_answer=False):
        content = dict(self.content or {})
        if hide_answer:
            content.pop("correct_answer", None)

        data = {
            "id": self.id,
            "type": self.type,
            "content": content,
            "points": self.points,
            "difficulty": self.difficulty,
            "topic_tags": self.topic_tags or []
        }
        if order_index is not None:
            data["order_index"] = order_index
        return data


class ExamQuestion(db.Model):
    """Ordered link between an exam and a question"""
    __tablename__ = "exam_questions"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    exam_id = db.Column(db.String(36), db.ForeignKey("exams.id"), nullable=False, index=True)
    question_id = db.Column(db.String(36), db.ForeignKey("questions.id"), nullable=False)
    order_index = db.Column(db.Integer, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('exam_id', 'question_id', name='unique_exam_question'),
    )

    question = db.relationship("Question")
