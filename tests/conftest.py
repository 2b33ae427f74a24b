"""
Pytest fixtures: one app per test backed by a throwaway SQLite file.
"""
import pytest

from api import create_app


@pytest.fixture
def app(tmp_path):
    app = create_app("testing", {"DATABASE_URL": f"sqlite:///{tmp_path / 'test.db'}"})
    yield app
    app.extensions["account_store"].dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    with app.app_context():
        yield app.extensions["auth_service"]


@pytest.fixture
def store(service):
    return service.store


@pytest.fixture
def alice(service):
    """Registered account plus the token pair handed out at registration."""
    return service.register("alice", "alice@x.com", "secret1", "A", "B")
