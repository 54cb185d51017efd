import pytest
from fastapi.testclient import TestClient

from sighting_api.database import Database
from sighting_api.main import app
from sighting_api.store import SightingStore

DB_ENV_VARS = ("DB_USER", "DB_PASSWORD", "DB_HOST", "DB_PORT", "DB_NAME", "DB_SSLMODE", "DATABASE_URL")


@pytest.fixture
def clean_db_env(monkeypatch):
    """Remove any database settings inherited from the environment."""
    for var in DB_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def session():
    """Session on a fresh in-memory database."""
    db = Database("sqlite://")
    s = db.session()
    yield s
    s.close()
    db.dispose()


@pytest.fixture
def store(session):
    return SightingStore(session)


@pytest.fixture
def client(monkeypatch, clean_db_env):
    """API client; the app lifespan opens (and later disposes) an in-memory database."""
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    with TestClient(app) as c:
        yield c
