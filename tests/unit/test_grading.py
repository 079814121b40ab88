"""
Unit Tests for the Grading Service
"""
from types import SimpleNamespace

import pytest

from procto.services.grading_service import grade_answer, score_session, percentage_of


class TestGradeAnswer:

    @pytest.mark.parametrize('response, expected', [
        ('Paris', 2.0),
        ('paris', 0.0),
        (None, 0.0),
    ])
    def test_multiple_choice_exact(self, response, expected):
        content = {'options': ['Paris', 'Rome'], 'correct_answer': 'Paris'}
        assert grade_answer('multiple_choice', content, response, 2).auto_score == expected

    @pytest.mark.parametrize('response, expected', [
        (['b', 'a'], 3.0),
        (['a', 'b', 'a'], 3.0),
        (['a'], 0.0),
        (['a', 'b', 'c'], 0.0),
        ('a,b', 0.0),
        ([{'x': 1}], 0.0),
    ])
    def test_multiple_select_set_equality(self, response, expected):
        content = {'correct_answer': ['a', 'b']}
        assert grade_answer('multiple_select', content, response, 3).auto_score == expected

    @pytest.mark.parametrize('response, expected', [
        ('TRUE', 1.0),
        (' true ', 1.0),
        (True, 1.0),
        ('false', 0.0),
    ])
    def test_true_false_case_insensitive(self, response, expected):
        assert grade_answer('true_false', {'correct_answer': 'true'}, response, 1).auto_score == expected

    def test_short_answer_trimmed_and_case_insensitive(self):
        content = {'correct_answer': ' Newton '}
        assert grade_answer('short_answer', content, 'newton  ', 2).auto_score == 2.0

    def test_short_answer_case_sensitive(self):
        content = {'correct_answer': 'pH', 'case_insensitive': False}
        assert grade_answer('short_answer', content, 'PH', 2).auto_score == 0.0
        assert grade_answer('short_answer', content, 'pH', 2).auto_score == 2.0

    def test_short_answer_blank(self):
        assert grade_answer('short_answer', {'correct_answer': 'x'}, '   ', 1).auto_score == 0.0

    @pytest.mark.parametrize('response, expected', [
        (9.81, 1.0),
        ('9.805', 1.0),
        (9.83, 0.0),
        ('abc', 0.0),
        (None, 0.0),
        (True, 0.0),
    ])
    def test_numerical_tolerance(self, response, expected):
        assert grade_answer('numerical', {'correct_answer': 9.81}, response, 1).auto_score == expected

    @pytest.mark.parametrize('qtype', ['essay', 'code'])
    def test_manual_types(self, qtype):
        grade = grade_answer(qtype, {}, 'some text', 5)
        assert grade.auto_score == 0.0
        assert grade.needs_manual_grading is True

    def test_unknown_type_scores_zero(self):
        grade = grade_answer('hologram', {'correct_answer': 'x'}, 'x', 5)
        assert grade.auto_score == 0.0
        assert grade.needs_manual_grading is False


def question(qid, qtype, correct, points):
    return SimpleNamespace(id=qid, type=qtype, content={'correct_answer': correct}, points=points)


class TestScoreSession:

    def test_percentage_and_pass(self):
        questions = [
            question('q1', 'multiple_choice', 'a', 2),
            question('q2', 'true_false', 'true', 1),
            question('q3', 'numerical', 3, 1),
        ]
        score = score_session(questions, {'q1': 'a', 'q3': 3.001}, pass_threshold=75)

        assert score.total_score == 3.0
        assert score.max_score == 4
        assert score.percentage == 75.0
        assert score.pass_status is True
        assert score.needs_manual_grading is False
        assert score.question_scores['q2'].auto_score == 0.0

    def test_threshold_is_inclusive_only_at_or_above(self):
        questions = [question('q1', 'multiple_choice', 'a', 1), question('q2', 'multiple_choice', 'a', 2)]
        score = score_session(questions, {'q1': 'a'}, pass_threshold=33.34)

        assert score.percentage == 33.33
        assert score.pass_status is False

    def test_manual_scores_replace_auto(self):
        questions = [question('q1', 'essay', None, 5), question('q2', 'multiple_choice', 'a', 5)]

        pending = score_session(questions, {'q2': 'a'}, pass_threshold=60)
        assert pending.needs_manual_grading is True
        assert pending.pass_status is False

        graded = score_session(questions, {'q2': 'a'}, pass_threshold=60, manual_scores={'q1': 4})
        assert graded.total_score == 9
        assert graded.percentage == 90
        assert graded.needs_manual_grading is False

    def test_empty_exam(self):
        score = score_session([], {}, pass_threshold=60)
        assert score.percentage == 0.0
        assert score.pass_status is False
        assert score.to_dict()['max_score'] == 0.0


def test_percentage_of_rounds_to_two_places():
    assert percentage_of(1, 3) == 33.33
    assert percentage_of(5, 0) == 0.0
