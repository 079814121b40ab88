"""
Tests for Classroom Routes
"""
import re

from procto import db
from procto.models.classroom import Enrollment
from conftest import make_user, headers_for


class TestCreateClassroom:

    def test_create_classroom(self, client, faculty_headers, faculty):
        response = client.post('/api/classrooms', headers=faculty_headers, json={
            'name': 'Chemistry',
            'description': 'Intro course'
        })

        assert response.status_code == 201
        data = response.get_json()['classroom']
        assert data['name'] == 'Chemistry'
        assert data['faculty_id'] == faculty.id
        assert re.fullmatch(r'PROCTO-[A-Z0-9]{4}', data['code'])

    def test_create_requires_name(self, client, faculty_headers):
        response = client.post('/api/classrooms', headers=faculty_headers, json={'name': '  '})
        assert response.status_code == 400

    def test_student_cannot_create(self, client, student_headers):
        response = client.post('/api/classrooms', headers=student_headers, json={'name': 'Nope'})
        assert response.status_code == 403


class TestListClassrooms:

    def test_faculty_lists_own(self, client, faculty_headers, classroom):
        response = client.get('/api/classrooms', headers=faculty_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['count'] == 1
        assert data['classrooms'][0]['id'] == classroom.id

    def test_student_lists_enrolled(self, client, student_headers, classroom):
        response = client.get('/api/classrooms', headers=student_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['count'] == 1
        assert data['classrooms'][0]['faculty'] == 'Fay Culty'

    def test_other_faculty_sees_nothing(self, client, classroom):
        other = make_user('prof2@example.com', role='faculty')
        response = client.get('/api/classrooms', headers=headers_for(other))
        assert response.get_json()['count'] == 0


class TestGetClassroom:

    def test_owner_sees_students(self, client, faculty_headers, classroom, exam, student):
        response = client.get(f'/api/classrooms/{classroom.id}', headers=faculty_headers)

        assert response.status_code == 200
        data = response.get_json()['classroom']
        assert [s['id'] for s in data['students_list']] == [student.id]
        assert [e['id'] for e in data['exams_list']] == [exam.id]

    def test_student_does_not_see_roster(self, client, student_headers, classroom):
        response = client.get(f'/api/classrooms/{classroom.id}', headers=student_headers)

        assert response.status_code == 200
        assert 'students_list' not in response.get_json()['classroom']

    def test_unenrolled_student_forbidden(self, client, classroom, other_student):
        response = client.get(f'/api/classrooms/{classroom.id}', headers=headers_for(other_student))
        assert response.status_code == 403

    def test_missing_classroom(self, client, faculty_headers):
        response = client.get('/api/classrooms/does-not-exist', headers=faculty_headers)
        assert response.status_code == 404

    def test_delete_classroom(self, client, faculty_headers, classroom):
        response = client.delete(f'/api/classrooms/{classroom.id}', headers=faculty_headers)
        assert response.status_code == 200

        response = client.get(f'/api/classrooms/{classroom.id}', headers=faculty_headers)
        assert response.status_code == 404

    def test_deleted_classroom_exams_closed_to_students(self, client, faculty_headers, student_headers,
                                                        classroom, exam):
        client.delete(f'/api/classrooms/{classroom.id}', headers=faculty_headers)

        assert client.get('/api/classrooms', headers=student_headers).get_json()['count'] == 0
        assert client.get('/api/exams', headers=student_headers).get_json()['count'] == 0
        assert client.get(f'/api/exams/{exam.id}', headers=student_headers).status_code == 403

        response = client.post(f'/api/exams/{exam.id}/sessions', headers=student_headers)
        assert response.status_code == 403


class TestJoinClassroom:

    def test_join_with_code(self, client, classroom, other_student):
        response = client.post('/api/classrooms/join', headers=headers_for(other_student), json={
            'code': classroom.join_code.lower()
        })

        assert response.status_code == 201
        assert Enrollment.query.filter_by(
            classroom_id=classroom.id, student_id=other_student.id
        ).count() == 1

    def test_join_invalid_code(self, client, student_headers):
        response = client.post('/api/classrooms/join', headers=student_headers, json={'code': 'PROCTO-ZZZZ'})
        assert response.status_code == 404

    def test_join_missing_code(self, client, student_headers):
        response = client.post('/api/classrooms/join', headers=student_headers, json={})
        assert response.status_code == 400

    def test_join_twice(self, client, student_headers, classroom):
        response = client.post('/api/classrooms/join', headers=student_headers, json={
            'code': classroom.join_code
        })
        assert response.status_code == 409

    def test_join_deleted_classroom(self, client, classroom, other_student):
        classroom.is_active = False
        db.session.commit()

        response = client.post('/api/classrooms/join', headers=headers_for(other_student), json={
            'code': classroom.join_code
        })
        assert response.status_code == 404

    def test_faculty_cannot_join(self, client, faculty_headers, classroom):
        response = client.post('/api/classrooms/join', headers=faculty_headers, json={
            'code': classroom.join_code
        })
        assert response.status_code == 403

    def test_drop_and_rejoin(self, client, student_headers, student, classroom):
        response = client.delete(f'/api/classrooms/{classroom.id}/enrollment', headers=student_headers)
        assert response.status_code == 200

        response = client.get('/api/classrooms', headers=student_headers)
        assert response.get_json()['count'] == 0

        response = client.post('/api/classrooms/join', headers=student_headers, json={
            'code': classroom.join_code
        })
        assert response.status_code == 201

        enrollments = Enrollment.query.filter_by(classroom_id=classroom.id, student_id=student.id).all()
        assert len(enrollments) == 1
        assert enrollments[0].dropped_at is None

    def test_drop_when_not_enrolled(self, client, classroom, other_student):
        response = client.delete(
            f'/api/classrooms/{classroom.id}/enrollment', headers=headers_for(other_student)
        )
        assert response.status_code == 404
