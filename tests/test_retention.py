import threading
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

import retention
from db import SessionLocal
from db_helpers import insert_audit_record
from errors import RetentionSweepError
from retention import RetentionWorker, run_sweep_once, sweep

HORIZON = timedelta(days=90)


def test_sweep_removes_only_records_past_the_horizon(db_session, add_record, stored, fixed_now):
    for days in (100, 91, 89, 1):
        add_record(f"{days}d.example", timestamp=fixed_now - timedelta(days=days))

    deleted = sweep(db_session, HORIZON, now=fixed_now)

    assert deleted == 2
    assert [r.domain for r in stored()] == ["89d.example", "1d.example"]


def test_sweep_twice_is_a_noop(db_session, add_record, fixed_now):
    add_record("old.example", timestamp=fixed_now - timedelta(days=120))
    add_record("new.example", timestamp=fixed_now)

    assert sweep(db_session, HORIZON, now=fixed_now) == 1
    assert sweep(db_session, HORIZON, now=fixed_now) == 0


def test_sweep_keeps_record_exactly_at_cutoff(db_session, add_record, stored, fixed_now):
    add_record("edge.example", timestamp=fixed_now - HORIZON)

    assert sweep(db_session, HORIZON, now=fixed_now) == 0
    assert len(stored()) == 1


def test_record_written_during_sweep_survives(db_session, add_record, stored, fixed_now):
    add_record("stale.example", timestamp=fixed_now - timedelta(days=200))
    original_query = db_session.query

    def query_then_insert(*args, **kwargs):
        # an ingestion lands between the cutoff being fixed and the delete running
        writer = SessionLocal()
        try:
            insert_audit_record(writer, domain="fresh.example", timestamp=fixed_now)
        finally:
            writer.close()
        return original_query(*args, **kwargs)

    with patch.object(db_session, "query", side_effect=query_then_insert):
        deleted = sweep(db_session, HORIZON, now=fixed_now)

    assert deleted == 1
    assert [r.domain for r in stored()] == ["fresh.example"]


def test_sweep_defaults_to_current_time(db_session, add_record, stored, fixed_now, monkeypatch):
    monkeypatch.setattr(retention, "utcnow", lambda: fixed_now)
    add_record("old.example", timestamp=fixed_now - timedelta(days=91))
    add_record("new.example", timestamp=fixed_now - timedelta(days=1))

    assert sweep(db_session) == 1
    assert [r.domain for r in stored()] == ["new.example"]


def test_sweep_failure_rolls_back_and_raises():
    db = MagicMock()
    db.query.return_value.filter.return_value.delete.side_effect = OperationalError(
        "DELETE FROM audit_log", {}, Exception("database is locked")
    )

    with pytest.raises(RetentionSweepError):
        sweep(db, HORIZON)
    db.rollback.assert_called_once()
    db.commit.assert_not_called()


def test_run_sweep_once_logs_and_swallows_failures():
    db = MagicMock()
    factory = MagicMock(return_value=db)

    with patch("retention.sweep", side_effect=RetentionSweepError("boom")), \
            patch.object(retention, "logger") as logger:
        assert run_sweep_once(30, session_factory=factory) is None

    logger.error.assert_called_once()
    db.close.assert_called_once()


def test_run_sweep_once_uses_horizon_days(db_session, add_record, fixed_now, monkeypatch):
    monkeypatch.setattr(retention, "utcnow", lambda: fixed_now)
    add_record("a.example", timestamp=fixed_now - timedelta(days=10))
    add_record("b.example", timestamp=fixed_now - timedelta(days=3))

    assert run_sweep_once(7) == 1


def test_worker_sweeps_until_stopped():
    called = threading.Event()
    factory = MagicMock()

    with patch("retention.run_sweep_once", side_effect=lambda *a: called.set()) as run_once:
        worker = RetentionWorker(interval_seconds=3600, horizon_days=45, session_factory=factory)
        worker.start()
        assert called.wait(2)
        worker.stop()
        worker.join(2)

    assert not worker.is_alive()
    run_once.assert_called_with(45, factory)
    assert worker.daemon


def test_worker_survives_unexpected_failures():
    passes = []
    second_pass = threading.Event()

    def failing_sweep(db, horizon):
        passes.append(horizon)
        if len(passes) >= 2:
            second_pass.set()
        raise OperationalError("DELETE FROM audit_log", {}, Exception("connection lost"))

    with patch("retention.sweep", side_effect=failing_sweep), \
            patch.object(retention, "logger") as logger:
        worker = RetentionWorker(interval_seconds=0.01, horizon_days=30, session_factory=MagicMock())
        worker.start()
        assert second_pass.wait(2)
        worker.stop()
        worker.join(2)

    assert not worker.is_alive()
    logger.error.assert_any_call("retention_sweep_failed", exc_info=True)
