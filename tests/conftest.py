"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
DATABASE_URL is pointed at it before the application is imported, so the
app's own engine never tries to reach Postgres.
"""
import os

SQLITE_URL = "sqlite:///./test_fleethealth.db"
os.environ["DATABASE_URL"] = SQLITE_URL

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from fleethealth.db.base import Base, get_db
from fleethealth.main import app
from fleethealth.models import DailySnapshot, Endpoint

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    """Every analysis reads "the latest import date", so tests start empty."""
    db = TestingSessionLocal()
    try:
        db.query(DailySnapshot).delete()
        db.query(Endpoint).delete()
        db.commit()
    finally:
        db.close()
    yield


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
