"""
Unit Tests for Rate Limiter Service
"""
from unittest.mock import Mock, patch

import pytest
import redis


class TestRateLimits:
    """Tests for rate limit configuration"""

    def test_rate_limits_defined(self):
        from procto.services.rate_limiter import RATE_LIMITS

        assert 'login_attempt' in RATE_LIMITS
        assert 'register' in RATE_LIMITS
        assert 'proctor_event' in RATE_LIMITS
        assert 'exam_submit' in RATE_LIMITS

    def test_rate_limit_structure(self):
        from procto.services.rate_limiter import RATE_LIMITS

        for action, config in RATE_LIMITS.items():
            assert config['max_requests'] > 0
            assert config['window_seconds'] > 0


def mocked_client(execute_result):
    client = Mock()
    pipe = Mock()
    pipe.execute.return_value = execute_result
    client.pipeline.return_value = pipe
    client.ping.return_value = True
    return client, pipe


class TestRateLimiter:

    @pytest.fixture
    def limiter(self, monkeypatch):
        from procto.services.rate_limiter import RateLimiter
        monkeypatch.setenv('RATE_LIMIT_ENABLED', 'false')
        return RateLimiter()

    def test_disabled_allows_all(self, limiter):
        result = limiter.check_rate_limit('user-1', 'login_attempt')

        assert result['allowed'] is True
        assert result['remaining'] == 999
        assert limiter.redis_client is None

    def test_no_redis_allows_all(self, limiter):
        limiter.enabled = True
        limiter.redis_client = None

        result = limiter.check_rate_limit('user-1', 'proctor_event')
        assert result['allowed'] is True
        assert result['remaining'] == 999
        assert limiter.record_request('user-1', 'proctor_event') is True

    @patch('redis.from_url')
    def test_under_limit(self, mock_from_url, monkeypatch):
        from procto.services.rate_limiter import RateLimiter
        monkeypatch.setenv('RATE_LIMIT_ENABLED', 'true')
        client, _ = mocked_client([0, 3, []])
        mock_from_url.return_value = client

        result = RateLimiter().check_rate_limit('user-1', 'login_attempt')

        assert result['allowed'] is True
        assert result['remaining'] == 2
        assert result['limit'] == 5

    @patch('redis.from_url')
    def test_over_limit(self, mock_from_url, monkeypatch):
        from procto.services.rate_limiter import RateLimiter
        monkeypatch.setenv('RATE_LIMIT_ENABLED', 'true')
        client, _ = mocked_client([0, 5, [('1700000000.0', 1700000000.0)]])
        mock_from_url.return_value = client

        result = RateLimiter().check_rate_limit('user-1', 'login_attempt')

        assert result['allowed'] is False
        assert result['remaining'] == 0
        assert result['reset_at'] == 1700000300

    @patch('redis.from_url')
    def test_record_request(self, mock_from_url, monkeypatch):
        from procto.services.rate_limiter import RateLimiter
        monkeypatch.setenv('RATE_LIMIT_ENABLED', 'true')
        client, pipe = mocked_client([1, True])
        mock_from_url.return_value = client

        assert RateLimiter().record_request('user-1', 'proctor_event') is True
        key = pipe.zadd.call_args[0][0]
        assert key == 'procto:rate_limit:user-1:proctor_event'
        pipe.expire.assert_called_once_with(key, 120)

    @patch('redis.from_url')
    def test_connection_failure_fails_open(self, mock_from_url, monkeypatch):
        from procto.services.rate_limiter import RateLimiter
        monkeypatch.setenv('RATE_LIMIT_ENABLED', 'true')
        client = Mock()
        client.ping.side_effect = redis.ConnectionError('refused')
        mock_from_url.return_value = client

        limiter = RateLimiter()

        assert limiter.redis_client is None
        assert limiter.check_rate_limit('user-1', 'login_attempt')['allowed'] is True

    @patch('redis.from_url')
    def test_pipeline_error_fails_open(self, mock_from_url, monkeypatch):
        from procto.services.rate_limiter import RateLimiter
        monkeypatch.setenv('RATE_LIMIT_ENABLED', 'true')
        client, pipe = mocked_client(None)
        pipe.execute.side_effect = redis.TimeoutError('slow')
        mock_from_url.return_value = client

        assert RateLimiter().check_rate_limit('user-1', 'login_attempt')['allowed'] is True


class TestRateLimitDecorator:

    def test_returns_429_when_limited(self, client, student, monkeypatch):
        from procto.services import rate_limiter

        limiter = Mock()
        limiter.check_rate_limit.return_value = {
            'allowed': False, 'remaining': 0, 'reset_at': 1700000300,
            'retry_after': 42, 'limit': 5, 'window': 300
        }
        monkeypatch.setattr(rate_limiter, '_rate_limiter', limiter)

        response = client.post('/api/auth/login', json={
            'email': student.email,
            'password': 'testpassword123'
        })

        assert response.status_code == 429
        assert response.headers['Retry-After'] == '42'
        assert response.get_json()['retry_after'] == 42
        limiter.record_request.assert_not_called()
