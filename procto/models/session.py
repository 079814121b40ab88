"""
Exam session models: attempts, answers, proctoring events and results
"""
from datetime import datetime, timedelta
from sqlalchemy import JSON
from procto import db
from procto.models.user import generate_uuid
from procto.utils.datetime_utils import isoformat


SESSION_ACTIVE = "active"
SESSION_SUBMITTED = "submitted"
SESSION_TERMINATED = "terminated"

FINISHED_STATUSES = (SESSION_SUBMITTED, SESSION_TERMINATED)

SEVERITIES = ("low", "medium", "high")


class ExamSession(db.Model):
    """A student's single attempt at an exam"""
    __tablename__ = "exam_sessions"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    exam_id = db.Column(db.String(36), db.ForeignKey("exams.id"), nullable=False, index=True)
    student_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)

    # Status: active, submitted, terminated
    status = db.Column(db.String(20), nullable=False, default=SESSION_ACTIVE, index=True)
    started_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    submitted_at = db.Column(db.DateTime)
    terminated_at = db.Column(db.DateTime)
    is_late = db.Column(db.Boolean, default=False)
    ip_address = db.Column(db.String(64))

    # At most one active session per student and exam
    __table_args__ = (
        db.Index(
            "uq_active_session_per_student", "exam_id", "student_id", unique=True,
            postgresql_where=db.text("status = 'active'"),
            sqlite_where=db.text("status = 'active'")
        ),
    )

    # Relationships
    exam = db.relationship("Exam", backref="sessions")
    student = db.relationship("User", backref="exam_sessions")
    answers = db.relationship("Answer", backref="session", cascade="all, delete-orphan")
    events = db.relationship(
        "SuspiciousEvent", backref="session", cascade="all, delete-orphan",
        order_by="SuspiciousEvent.timestamp"
    )
    result = db.relationship("Result", backref="session", uselist=False, cascade="all, delete-orphan")

    @property
    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    @property
    def expires_at(self) -> datetime:
        """Deadline: the session duration, capped by the exam window"""
        by_duration = self.started_at + timedelta(minutes=self.exam.duration_minutes)
        return min(by_duration, self.exam.end_at)

    def answers_by_question(self):
        return {a.question_id: a for a in self.answers}

    def to_dict(self, include_student=False, include_result=False):
        data = {
            "id": self.id,
            "exam_id": self.exam_id,
            "student_id": self.student_id,
            "status": self.status,
            "started_at": isoformat(self.started_at),
            "expires_at": isoformat(self.expires_at),
            "submitted_at": isoformat(self.submitted_at),
            "terminated_at": isoformat(self.terminated_at),
            "is_late": bool(self.is_late),
            "answers_count": len(self.answers),
            "events_count": len(self.events)
        }

        if include_student and self.student:
            data["student"] = self.student.to_summary()

        if include_result:
            data["result"] = self.result.to_summary() if self.result else None

        return data


class Answer(db.Model):
    """Response to one question within a session"""
    __tablename__ = "answers"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    session_id = db.Column(db.String(36), db.ForeignKey("exam_sessions.id"), nullable=False, index=True)
    question_id = db.Column(db.String(36), db.ForeignKey("questions.id"), nullable=False)
    response = db.Column(JSON)
    auto_score = db.Column(db.Float)
    manual_score = db.Column(db.Float)
    graded_by = db.Column(db.String(36), db.ForeignKey("users.id"))
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('session_id', 'question_id', name='unique_session_question'),
    )

    question = db.relationship("Question")

    @property
    def effective_score(self) -> float:
        if self.manual_score is not None:
            return self.manual_score
        if self.auto_score is not None:
            return self.auto_score
        return 0.0

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "question_id": self.question_id,
            "response": self.response,
            "auto_score": self.auto_score,
            "manual_score": self.manual_score,
            "graded_by": self.graded_by
        }


class SuspiciousEvent(db.Model):
    """Proctoring signal reported during a session (tab switch, no face, ...)"""
    __tablename__ = "suspicious_events"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    session_id = db.Column(db.String(36), db.ForeignKey("exam_sessions.id"), nullable=False, index=True)
    type = db.Column(db.String(50), nullable=False)
    severity = db.Column(db.String(10), nullable=False)  # low, medium, high
    screenshot_url = db.Column(db.String(500))
    details = db.Column(JSON)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "type": self.type,
            "severity": self.severity,
            "screenshot_url": self.screenshot_url,
            "details": self.details,
            "timestamp": isoformat(self.timestamp)
        }


class Result(db.Model):
    """Computed score and pass status for a finished session"""
    __tablename__ = "results"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    session_id = db.Column(db.String(36), db.ForeignKey("exam_sessions.id"), nullable=False, unique=True)
    total_score = db.Column(db.Float, nullable=False, default=0.0)
    max_score = db.Column(db.Float, nullable=False, default=0.0)
    percentage = db.Column(db.Float, nullable=False, default=0.0)
    pass_status = db.Column(db.Boolean, nullable=False, default=False)
    needs_manual_grading = db.Column(db.Boolean, default=False)
    is_published = db.Column(db.Boolean, default=False)
    finalized_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_summary(self):
        return {
            "total_score": self.total_score,
            "percentage": self.percentage,
            "pass_status": self.pass_status,
            "is_published": bool(self.is_published)
        }

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "total_score": self.total_score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "pass_status": self.pass_status,
            "needs_manual_grading": bool(self.needs_manual_grading),
            "is_published": bool(self.is_published),
            "finalized_at": isoformat(self.finalized_at)
        }
