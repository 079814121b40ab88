"""
Unit Tests for the application factory and logging setup
"""
import logging

from procto.utils import logging_config


def test_health(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'


def test_unknown_route_returns_json(client):
    response = client.get('/api/nothing-here')

    assert response.status_code == 404
    assert response.get_json() == {'error': 'Not found'}


def test_wrong_method_returns_json(client):
    response = client.put('/api/auth/login')

    assert response.status_code == 405
    assert 'error' in response.get_json()


def test_setup_logging_writes_files(tmp_path, monkeypatch):
    monkeypatch.setattr(logging_config, 'LOG_DIR', tmp_path)
    root = logging.getLogger()
    saved = root.handlers[:], root.level

    try:
        logger = logging_config.setup_logging('procto-test', level='DEBUG', log_to_console=False)
        logger.error('boom')
        for handler in root.handlers:
            handler.flush()

        names = sorted(p.name for p in tmp_path.iterdir())
        assert 'procto-test_errors.log' in names
        assert any(n.startswith('procto-test_20') for n in names)
        assert 'boom' in (tmp_path / 'procto-test_errors.log').read_text()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers, level = saved
        root.setLevel(level)
