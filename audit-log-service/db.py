from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool, StaticPool

from config import DATABASE_URL, STORE_TIMEOUT_SECONDS


def make_engine(url=DATABASE_URL, timeout=STORE_TIMEOUT_SECONDS):
    """Build an engine whose connection and query waits are bounded by `timeout` seconds."""
    parsed = make_url(url)
    backend = parsed.get_backend_name()

    if backend == "sqlite":
        connect_args = {"timeout": timeout, "check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            # one shared connection, otherwise every checkout sees a fresh empty database
            return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(
            url,
            connect_args=connect_args,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=2,
            pool_timeout=timeout,
            pool_pre_ping=True,
        )

    connect_args = {}
    if backend == "postgresql":
        connect_args = {
            "connect_timeout": timeout,
            "options": f"-c statement_timeout={timeout * 1000}",
        }
    return create_engine(
        url,
        connect_args=connect_args,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=2,
        pool_timeout=timeout,
        pool_recycle=1800,
        pool_pre_ping=True,
    )


engine = make_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_engine():
    """The engine sessions are currently bound to."""
    return SessionLocal.kw["bind"]
