"""
Pytest Configuration for Procto Tests
"""
import os
from datetime import datetime, timedelta

import pytest

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from procto import create_app, db
from procto.models.user import User
from procto.models.classroom import Classroom, Enrollment
from procto.models.exam import Exam, Question, ExamQuestion
from procto.utils.jwt_handler import create_access_token


@pytest.fixture(scope='function')
def app():
    """Create application with a fresh in-memory database"""
    test_config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SECRET_KEY': 'test-secret-key',
    }

    app = create_app(test_config)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client"""
    return app.test_client()


def make_user(email, role='student', password='testpassword123', first_name='Test', last_name='User'):
    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        role=role
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def headers_for(user):
    return {'Authorization': f'Bearer {create_access_token(user.id, user.role)}'}


@pytest.fixture(scope='function')
def faculty(app):
    return make_user('faculty@example.com', role='faculty', first_name='Fay', last_name='Culty')


@pytest.fixture(scope='function')
def student(app):
    return make_user('student@example.com', role='student', first_name='Stu', last_name='Dent')


@pytest.fixture(scope='function')
def other_student(app):
    return make_user('other@example.com', role='student', first_name='Oth', last_name='Er')


@pytest.fixture(scope='function')
def faculty_headers(faculty):
    return headers_for(faculty)


@pytest.fixture(scope='function')
def student_headers(student):
    return headers_for(student)


@pytest.fixture(scope='function')
def classroom(faculty, student):
    """Classroom owned by `faculty` with `student` enrolled"""
    classroom = Classroom(
        name='Physics 101',
        join_code=Classroom.unique_join_code(),
        faculty_id=faculty.id
    )
    db.session.add(classroom)
    db.session.flush()
    db.session.add(Enrollment(classroom_id=classroom.id, student_id=student.id))
    db.session.commit()
    return classroom


DEFAULT_QUESTIONS = [
    ('multiple_choice', {'question_text': 'Unit of force?', 'options': ['N', 'J'], 'correct_answer': 'N'}, 2),
    ('true_false', {'question_text': 'Light is a wave.', 'correct_answer': 'true'}, 1),
    ('essay', {'question_text': 'Explain inertia.'}, 5),
]


def make_exam(classroom, faculty, questions=None, start_offset=-10, duration=60,
              window_minutes=120, max_attempts=1, pass_threshold=60.0,
              max_violations=None, is_published=True):
    """Exam whose window started `start_offset` minutes from now"""
    start_at = datetime.utcnow() + timedelta(minutes=start_offset)
    exam = Exam(
        classroom_id=classroom.id,
        code=Exam.unique_code(),
        title='Midterm',
        duration_minutes=duration,
        start_at=start_at,
        end_at=start_at + timedelta(minutes=window_minutes),
        is_published=is_published,
        max_attempts=max_attempts,
        pass_threshold=pass_threshold,
        max_violations=max_violations,
        created_by=faculty.id
    )
    db.session.add(exam)

    for i, (qtype, content, points) in enumerate(questions or DEFAULT_QUESTIONS):
        question = Question(classroom_id=classroom.id, type=qtype, content=content, points=points)
        db.session.add(question)
        exam.exam_questions.append(ExamQuestion(question=question, order_index=i))

    db.session.commit()
    return exam


@pytest.fixture(scope='function')
def exam(classroom, faculty):
    return make_exam(classroom, faculty)
