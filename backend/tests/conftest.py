"""
Test configuration.

Settings are read once at import time, so the test database and environment
must be in place before anything under `dossier` is imported.
"""
import os
import tempfile

_TEST_DB_DIR = tempfile.mkdtemp(prefix="dossier-tests-")

os.environ["ENV"] = "dev"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'dossier.db')}"
os.environ["REDIS_URL"] = "memory://"
os.environ.pop("API_AUTH_KEY", None)
os.environ.pop("FRONTEND_ORIGIN", None)

import pytest  # noqa: E402

from dossier.core.db import Base, SessionLocal, engine  # noqa: E402
import dossier.models  # noqa: E402,F401  (registers tables on Base.metadata)


@pytest.fixture
def db():
    """A fresh schema per test; yields a session bound to it."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db, monkeypatch):
    """API client with Celery dispatch captured instead of sent to a broker."""
    from fastapi.testclient import TestClient

    from dossier.core.celery_app import celery_app
    from dossier.main import app

    sent = []

    def _send_task(name, args=None, kwargs=None, **options):
        sent.append({"name": name, "args": list(args or []), "options": options})

    monkeypatch.setattr(celery_app, "send_task", _send_task)

    with TestClient(app) as test_client:
        test_client.sent_tasks = sent
        yield test_client
