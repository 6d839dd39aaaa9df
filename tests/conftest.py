"""
Pytest fixtures for the fulfillment test suite.

Provides:
- an in-memory SQLite session per test (tables created fresh)
- a FastAPI TestClient bound to the same database
- factories for users and requests
- logging configured for the hungerlink namespace
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("INCREMENT_RETRY_DELAY", "0")

import logging

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from db import get_session
from logging_config import configure_logging, reset_logging
from main import app
from models import Request, User
from services.ledger import derive_and_clamp


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_client(engine):
    """One TestClient per actor, each with its own session cookie."""

    def _get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    yield lambda: TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(is_donor=False, is_recipient=False, name=None):
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.org",
            name=name or f"User {counter['n']}",
            is_donor=is_donor,
            is_recipient=is_recipient,
            password_hash="x",
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_request(session, make_user):
    def _make(food_needed="rice", quantity_label="50 meals", fulfilled_quantity=0,
              status="open", requester=None, **kwargs):
        requester = requester or make_user(is_recipient=True)
        req = Request(
            requester_id=requester.id,
            food_needed=food_needed,
            quantity_label=quantity_label,
            fulfilled_quantity=fulfilled_quantity,
            location="Community hall",
            status=status,
            **kwargs,
        )
        derive_and_clamp(req)
        session.add(req)
        session.commit()
        session.refresh(req)
        return req

    return _make


@pytest.fixture
def register():
    """Register through the API; the client keeps the session cookie."""

    def _register(client, email, role, password="secret123", name="Tester"):
        resp = client.post(
            "/register",
            json={
                "email": email,
                "name": name,
                "password": password,
                "is_donor": role == "donor",
                "is_recipient": role == "recipient",
            },
        )
        assert resp.status_code == 200, resp.text
        return resp.json()["id"]

    return _register
