# db_helpers.py
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from errors import StoreUnavailableError
from models import AuditLog

DEFAULT_STATS_LIMIT = 10


def utcnow():
    """Naive UTC, the form timestamps are stored and compared in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def insert_audit_record(db, domain, timestamp, client_origin=None, results=None,
                        user_agent=None, email=None, score=None):
    record = AuditLog(
        domain=domain,
        timestamp=timestamp,
        client_origin=client_origin,
        results=results,
        user_agent=user_agent,
        email=email,
        score=score,
    )
    try:
        db.add(record)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreUnavailableError("failed to write audit record") from e
    return record


def top_domains(db, limit=DEFAULT_STATS_LIMIT):
    """Return [(domain, count), ...] ordered by count desc, then domain asc."""
    count = func.count(AuditLog.id).label("count")
    try:
        rows = (
            db.query(AuditLog.domain, count)
            .group_by(AuditLog.domain)
            .order_by(count.desc(), AuditLog.domain.asc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        raise StoreUnavailableError("failed to aggregate audit records") from e
    return [(domain, int(n)) for domain, n in rows]
