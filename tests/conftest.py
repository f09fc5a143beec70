"""Pytest configuration and fixtures."""

import os

import pytest

# app.py builds a module-level app on import, so it needs a database URL
os.environ.setdefault("DATABASE_URL", "sqlite://")

import accounts
from app import create_app
from models import db, Quote


TEST_CONFIG = {
    "TESTING": True,
    "SECRET_KEY": "test-secret",
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "WTF_CSRF_ENABLED": False,
}


@pytest.fixture
def app():
    """Fresh application backed by its own in-memory database."""
    app = create_app(TEST_CONFIG)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Run the test body inside an application context."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def alice(ctx):
    return accounts.register("alice", "wonderland")


@pytest.fixture
def bob(ctx):
    return accounts.register("bob", "builder")


@pytest.fixture
def quote(alice):
    q = Quote(text="hi", author_name="A", user_id=alice.id)
    db.session.add(q)
    db.session.commit()
    return q


def make_user(app, username, password="secret"):
    """Register a user outside of any request; returns the new id."""
    with app.app_context():
        return accounts.register(username, password).id


def make_quote(app, user_id, text="hi", author_name="A"):
    with app.app_context():
        q = Quote(text=text, author_name=author_name, user_id=user_id)
        db.session.add(q)
        db.session.commit()
        return q.id


def login(client, username, password="secret"):
    return client.post("/login", data={"username": username, "password": password})


@pytest.fixture
def file_app(tmp_path):
    """Application on a file-backed database, so each app context gets its own connection."""
    app = create_app({**TEST_CONFIG, "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'quotes.db'}"})
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def csrf_app():
    """Application with CSRF checks switched on."""
    app = create_app({**TEST_CONFIG, "WTF_CSRF_ENABLED": True})
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
