"""Shared fixtures: every test runs against its own SQLite database file."""
from __future__ import annotations

import os

# Must be set before locallibrary.config builds the module-level settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from locallibrary import models
from locallibrary.config import Settings
from locallibrary.database import Database
from locallibrary.main import create_app


@pytest.fixture
def settings():
    return Settings(DATABASE_URL="sqlite://", RATE_LIMIT_ENABLED=False, ENVIRONMENT="test")


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'library.sqlite'}")
    db.create_all()
    yield db
    db.drop_all()
    db.dispose()


@pytest.fixture
def app(settings, database):
    return create_app(settings, database)


@pytest.fixture
def client(app):
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture
def add(database):
    """Persist a model instance directly and return it detached."""

    def _add(obj):
        with database.session() as session:
            session.add(obj)
            session.commit()
            session.refresh(obj)
        return obj

    return _add


@pytest.fixture
def count(database):
    def _count(model) -> int:
        with database.session() as session:
            return session.query(model).count()

    return _count


@pytest.fixture
def author(add):
    return add(models.Author(first_name="Patrick", last_name="Rothfuss"))


@pytest.fixture
def genre(add):
    return add(models.Genre(name="Fantasy"))


@pytest.fixture
def book(add, author, genre):
    return add(
        models.Book(
            title="The Name of the Wind",
            summary="A young man grows to be the most notorious wizard.",
            isbn="9781473211896",
            author_id=author.id,
            genres=[genre],
        )
    )
