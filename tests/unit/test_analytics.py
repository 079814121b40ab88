"""
Unit Tests for Exam Analytics
"""
import pytest

from procto.services.analytics_service import (
    QuestionInfo, SubmissionRecord, compute_exam_analytics, bucket_index, effective_score
)


QUESTIONS = [
    QuestionInfo(question_id='q1', type='multiple_choice', points=2),
    QuestionInfo(question_id='q2', type='essay', points=8),
]


def submission(name, total, pct, passed, scores):
    return SubmissionRecord(
        student_id=f'id-{name}',
        student_name=name,
        email=f'{name}@example.com',
        total_score=total,
        percentage=pct,
        pass_status=passed,
        answer_scores=scores
    )


class TestHelpers:

    @pytest.mark.parametrize('pct, bucket', [
        (-5, 0), (0, 0), (9.99, 0), (10, 1), (59.5, 5), (99.9, 9), (100, 9),
    ])
    def test_bucket_index(self, pct, bucket):
        assert bucket_index(pct) == bucket

    def test_effective_score_prefers_manual(self):
        assert effective_score(2.0, 5.0) == 5.0
        assert effective_score(2.0, None) == 2.0
        assert effective_score(None, None) == 0.0
        assert effective_score(3.0, 0.0) == 0.0


class TestComputeExamAnalytics:

    def test_no_submissions(self):
        data = compute_exam_analytics(QUESTIONS, [])

        assert data['analytics'] == {
            'total_submissions': 0,
            'avg_score': 0,
            'highest_score': 0,
            'lowest_score': 0,
            'pass_rate': 0,
            'pass_count': 0,
            'fail_count': 0,
            'distribution': [0] * 10
        }
        assert [q['total_attempts'] for q in data['question_stats']] == [0, 0]
        assert data['results'] == []

    def test_summary_and_distribution(self):
        submissions = [
            submission('ann', 10, 100.0, True, {'q1': (2, None), 'q2': (0, 8)}),
            submission('bob', 6, 60.0, True, {'q1': (2, None), 'q2': (0, 4)}),
            submission('cy', 0, 0.0, False, {'q1': (0, None), 'q2': (0, None)}),
        ]

        data = compute_exam_analytics(QUESTIONS, submissions)
        analytics = data['analytics']

        assert analytics['total_submissions'] == 3
        assert analytics['avg_score'] == 53.33
        assert analytics['highest_score'] == 100.0
        assert analytics['lowest_score'] == 0.0
        assert analytics['pass_count'] == 2
        assert analytics['fail_count'] == 1
        assert analytics['pass_rate'] == 66.67
        assert analytics['distribution'] == [1, 0, 0, 0, 0, 0, 1, 0, 0, 1]

    def test_question_stats_use_effective_scores(self):
        submissions = [
            submission('ann', 10, 100.0, True, {'q1': (2, None), 'q2': (0, 8)}),
            submission('bob', 5, 50.0, False, {'q1': (0, 1), 'q2': (4, None)}),
        ]

        stats = {s['question_id']: s for s in compute_exam_analytics(QUESTIONS, submissions)['question_stats']}

        assert stats['q1']['avg_score'] == 1.5
        assert stats['q1']['correct_rate'] == 50
        assert stats['q2']['avg_score'] == 6
        assert stats['q2']['correct_rate'] == 50
        assert stats['q2']['total_attempts'] == 2

    def test_answers_to_unknown_questions_ignored(self):
        data = compute_exam_analytics(QUESTIONS, [
            submission('ann', 2, 20.0, False, {'q1': (2, None), 'removed': (5, None)})
        ])

        assert [s['total_attempts'] for s in data['question_stats']] == [1, 0]

    def test_results_rows(self):
        data = compute_exam_analytics(QUESTIONS, [submission('ann', 2, 20.0, False, {})])

        assert data['results'] == [{
            'student_id': 'id-ann',
            'student_name': 'ann',
            'email': 'ann@example.com',
            'total_score': 2,
            'percentage': 20.0,
            'pass_status': False
        }]
