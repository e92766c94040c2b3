import os

# Settings and the engine are created at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-for-the-chat-history-suite"
os.environ.pop("AUTH_JWKS_URL", None)
os.environ.pop("AUTH_ISSUER", None)

import pytest
from fastapi.testclient import TestClient

from pdfchat.auth import AuthenticatedUser, get_current_user
from pdfchat.db import Base, SessionLocal, engine
from pdfchat.main import app
from pdfchat.models_db import User

TEST_USER_ID = "user-1"


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db):
    record = User(id=TEST_USER_ID, email="reader@example.com", first_name="Ada")
    db.add(record)
    db.commit()
    return record


@pytest.fixture
def anonymous_client():
    with TestClient(app) as client:
        yield client


@pytest.fixture
def client():
    app.dependency_overrides[get_current_user] = lambda: AuthenticatedUser(
        user_id=TEST_USER_ID, email="reader@example.com", first_name="Ada"
    )
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_current_user, None)
