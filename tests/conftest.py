import os

# Must be set before inbox.config is imported anywhere
os.environ["ENV"] = "test"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DISABLE_AUTH", "false")

import pytest
from fastapi.testclient import TestClient

from inbox.db import DatabaseManager
from inbox.main import create_app
from tests.fixtures.user_fixtures import make_token

pytest_plugins = [
    "tests.fixtures.user_fixtures",
    "tests.fixtures.message_fixtures",
    "tests.fixtures.notification_fixtures",
    "tests.fixtures.client_fixtures",
]


@pytest.fixture(scope="function")
def db_manager():
    manager = DatabaseManager("sqlite+pysqlite:///:memory:")
    manager.create_all()
    yield manager
    manager.drop_all()
    manager.dispose()


@pytest.fixture(scope="function")
def db(db_manager):
    session = db_manager.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def app(db_manager):
    return create_app(testing=True, db_manager=db_manager)


@pytest.fixture(scope="function")
def auth_headers(setup_user):
    return {"Authorization": f"Bearer {make_token(setup_user.id)}"}


@pytest.fixture(scope="function")
def client(app, auth_headers):
    """TestClient authenticated as ``setup_user``."""
    with TestClient(app) as c:
        c.headers.update(auth_headers)
        yield c


@pytest.fixture(scope="function")
def anon_client(app):
    with TestClient(app) as c:
        yield c
