"""
Shared fixtures for the clinic test suite.

Every test gets a fresh application backed by an in-memory SQLite database
with the two registration codes from TestConfig already seeded.

Route tests must not hold an application context while using the test
client: Flask reuses an already pushed context, and Flask-Login keeps the
current user on ``g``, so the logged-in user would leak between requests.
Service-level tests use the ``ctx`` fixture instead.
"""
import pytest

import auth
from app import create_app, seed_access_codes
from config import TestConfig
from models import db

PASSWORD = "S3guro!2024"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        seed_access_codes(app)
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Application context for calling the stores directly."""
    with app.app_context():
        yield app


@pytest.fixture
def users(app):
    with app.app_context():
        admin_id = auth.register("admin1", PASSWORD, TestConfig.ADMIN_ACCESS_CODE)
        medico_id = auth.register("medico1", PASSWORD, TestConfig.MEDICO_ACCESS_CODE)
    return {"admin": admin_id, "medico": medico_id}


def login(client, username, password=PASSWORD):
    return client.post("/login", data={"username": username, "password": password})


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(app, users):
    client = app.test_client()
    login(client, "admin1")
    return client


@pytest.fixture
def medico_client(app, users):
    client = app.test_client()
    login(client, "medico1")
    return client
