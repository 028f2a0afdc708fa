import os
import sys

os.environ.setdefault("SECRET_KEY", "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("REVOCATION_SWEEP_INTERVAL_SECONDS", "0")

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from codesensei.api import deps
from codesensei.config import get_settings
from codesensei.database import Base
from codesensei.main import create_app

TEST_PASSWORD = "pw123456"


@pytest.fixture
def testing_session_local():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def build_app(testing_session_local):
    """Factory for an app bound to the in-memory test database."""

    def _build(settings=None):
        app = create_app(settings or get_settings())

        def override_get_db():
            db = testing_session_local()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[deps.get_db] = override_get_db
        return app

    return _build


@pytest.fixture
def app(build_app):
    return build_app()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def manager(app):
    return app.state.session_manager


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, username="alice", email="alice@x.com", password=TEST_PASSWORD) -> str:
    response = client.post(
        "/auth/register",
        json={"username": username, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["token"]


def login(client, username="alice", password=TEST_PASSWORD) -> str:
    response = client.post("/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]["token"]
