"""Shared fixtures: an in-memory database and journal users."""

import pytest

from tradescope.db.database import Database
from tradescope.db.models import User


@pytest.fixture
def database():
    """Fresh in-memory database with all tables."""
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def db(database):
    """Session on the in-memory database (never committed)."""
    session = database.session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def user(db):
    user = User(email="trader@example.com", display_name="Trader", is_active=True)
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def other_user(db):
    user = User(email="other@example.com", is_active=True)
    db.add(user)
    db.flush()
    return user
