import os

# keep imports from touching a database file in the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_RETENTION_WORKER", "0")

from datetime import datetime

import pytest

import app as app_module
from db import SessionLocal, make_engine
from db_helpers import insert_audit_record
from models import AuditLog
from schema import ensure_schema


@pytest.fixture
def engine():
    """A fresh in-memory store that every SessionLocal() is bound to for the test."""
    eng = make_engine("sqlite://")
    original = SessionLocal.kw["bind"]
    SessionLocal.configure(bind=eng)
    yield eng
    SessionLocal.configure(bind=original)
    eng.dispose()


@pytest.fixture
def migrated(engine):
    ensure_schema(engine)
    return engine


@pytest.fixture
def db_session(migrated):
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def flask_app(engine):
    app_module.app.config.update(TESTING=True, SCHEMA_READY=False)
    yield app_module.app
    app_module.app.config["SCHEMA_READY"] = False


@pytest.fixture
def client(flask_app, migrated):
    with flask_app.test_client() as c:
        yield c


@pytest.fixture
def fixed_now():
    return datetime(2026, 10, 1, 12, 0, 0)


@pytest.fixture
def add_record(db_session, fixed_now):
    def _add(domain, timestamp=None, **kwargs):
        return insert_audit_record(db_session, domain=domain, timestamp=timestamp or fixed_now, **kwargs)

    return _add


@pytest.fixture
def stored():
    """Read back every record through a session of its own."""

    def _stored():
        with SessionLocal() as session:
            return session.query(AuditLog).order_by(AuditLog.id).all()

    return _stored
