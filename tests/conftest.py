"""Shared fixtures: a fresh app per test, backed by an in-memory Mongo (mongomock)."""

import os

# Must be set before config.get_settings() is first called
os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_FORMAT", "text")

from types import SimpleNamespace

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import Repositories
from main import create_app
from schemas import User
from security import hash_password

PASSWORD = "s3cret-pass"


@pytest.fixture
def db():
    return mongomock.MongoClient()["workhub_test"]


@pytest.fixture
def app(db):
    return create_app(database=db)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def repos(db):
    return Repositories.from_db(db)


@pytest.fixture
def make_user(client):
    """Register a user over HTTP; returns id, token and ready-made auth headers."""

    def _make(name="Alice", email=None):
        email = email or f"{name.lower()}@example.com"
        resp = client.post("/api/auth/register", json={"name": name, "email": email, "password": PASSWORD})
        assert resp.status_code == 200, resp.text
        token = resp.json()["token"]
        me = client.get("/api/auth", headers={"x-auth-token": token})
        assert me.status_code == 200, me.text
        return SimpleNamespace(id=me.json()["id"], token=token, email=email,
                               headers={"x-auth-token": token})

    return _make


@pytest.fixture
def seed_user(repos):
    """Insert a user straight into the repository, bypassing HTTP."""

    def _seed(name="Alice"):
        doc = repos.users.create(User(name=name, email=f"{name.lower()}@example.com",
                                      password=hash_password(PASSWORD)))
        return str(doc["_id"])

    return _seed
