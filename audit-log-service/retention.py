# retention.py
import threading
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError

from config import RETENTION_HORIZON_DAYS, RETENTION_INTERVAL_SECONDS
from db import SessionLocal
from db_helpers import utcnow
from errors import RetentionSweepError
from log_config import get_logger
from models import AuditLog

logger = get_logger("retention")


def sweep(db, horizon=timedelta(days=RETENTION_HORIZON_DAYS), now=None):
    """
    Delete every record whose timestamp is strictly older than `now - horizon`.

    The cutoff is fixed when the sweep starts and the delete is scoped by the
    timestamp predicate alone, so rows inserted while the sweep runs (stamped
    with the current time) are never removed by it.
    """
    now = now or utcnow()
    cutoff = now - horizon
    try:
        deleted = (
            db.query(AuditLog)
            .filter(AuditLog.timestamp < cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise RetentionSweepError(f"retention sweep failed for cutoff {cutoff.isoformat()}") from e
    return deleted


def run_sweep_once(horizon_days=RETENTION_HORIZON_DAYS, session_factory=None):
    """Run one pass in its own session. Failures are logged and left for the next tick."""
    db = (session_factory or SessionLocal)()
    try:
        deleted = sweep(db, timedelta(days=horizon_days))
        logger.info("retention_sweep_completed", deleted=deleted, horizon_days=horizon_days)
        return deleted
    except RetentionSweepError as e:
        logger.error("retention_sweep_failed", error=str(e), exc_info=True)
        return None
    finally:
        db.close()


class RetentionWorker(threading.Thread):
    """Background thread that sweeps on a fixed interval until stopped."""

    def __init__(self, interval_seconds=RETENTION_INTERVAL_SECONDS,
                 horizon_days=RETENTION_HORIZON_DAYS, session_factory=None):
        super().__init__(name="retention-worker", daemon=True)
        self.interval_seconds = interval_seconds
        self.horizon_days = horizon_days
        self.session_factory = session_factory
        self._stop_event = threading.Event()

    def run(self):
        logger.info("retention_worker_started", interval_seconds=self.interval_seconds,
                    horizon_days=self.horizon_days)
        while not self._stop_event.is_set():
            try:
                run_sweep_once(self.horizon_days, self.session_factory)
            except Exception:
                # the next tick retries
                logger.error("retention_sweep_failed", exc_info=True)
            self._stop_event.wait(self.interval_seconds)
        logger.info("retention_worker_stopped")

    def stop(self):
        self._stop_event.set()
