import os
import uuid

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("RATE_LIMIT", "10000/minute")
os.environ.setdefault("DEVICE_AGENT_RATE_LIMIT", "10000/minute")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from opsdesk.db import Base, get_db
from opsdesk.main import app
from opsdesk.auth.security import create_access_token
from opsdesk.models.models import Role, User
from opsdesk.routes.sync import get_graph_client
from opsdesk.services.graph_client import GraphUpstreamError


class FakeGraphClient:
    """In-memory stand-in for GraphClient; records every call it receives."""

    def __init__(self, devices=None, details=None, users=None, recent_users=None, skus=None):
        self.devices = devices or []
        self.details = details or {}
        self.users = users or {}
        self.recent_users = recent_users or []
        self.skus = skus or []
        self.calls = []

    def list_managed_devices(self):
        self.calls.append(("list_managed_devices",))
        return list(self.devices)

    def get_managed_device(self, device_id):
        self.calls.append(("get_managed_device", device_id))
        if device_id not in self.details:
            raise GraphUpstreamError(404, "not found")
        return self.details[device_id]

    def get_user(self, user_id):
        self.calls.append(("get_user", user_id))
        if user_id not in self.users:
            raise GraphUpstreamError(404, "user not found")
        return self.users[user_id]

    def list_recent_users(self, days, now=None):
        self.calls.append(("list_recent_users", days))
        return list(self.recent_users)

    def list_subscribed_skus(self):
        self.calls.append(("list_subscribed_skus",))
        return list(self.skus)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(engine):
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    def _get_db():
        session = Session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def fake_graph():
    fake = FakeGraphClient()
    app.dependency_overrides[get_graph_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_graph_client, None)


def make_user(db, email, *role_names):
    user = User(email=email, display_name=email.split("@")[0])
    for name in role_names:
        role = db.query(Role).filter(Role.name == name).first() or Role(name=name)
        user.roles.append(role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_header(user):
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest.fixture()
def admin_headers(db):
    return auth_header(make_user(db, "admin@example.com", "admin"))


@pytest.fixture()
def operator_headers(db):
    return auth_header(make_user(db, "ops@example.com", "operator"))


@pytest.fixture()
def viewer_headers(db):
    return auth_header(make_user(db, "viewer@example.com", "viewer"))


def new_id():
    return str(uuid.uuid4())
