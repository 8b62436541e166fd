from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import event
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from config import settings


def _sqlite_connect_args(url: str) -> dict:
    if url.startswith("sqlite:"):
        # timeout is in seconds for sqlite3.connect(); bounded so a locked db can't hang a dashboard.
        return {"check_same_thread": False, "timeout": max(1.0, float(settings.query_timeout_s))}
    return {}


engine = create_engine(
    settings.database_url,
    connect_args=_sqlite_connect_args(settings.database_url),
    pool_pre_ping=True,
)


# SQLite concurrency tuning:
# - WAL allows concurrent readers (current + previous window fetches run in parallel).
# - busy_timeout makes reads wait a bit instead of failing fast with "database is locked".
if str(settings.database_url).startswith("sqlite:"):
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:
        cur = dbapi_connection.cursor()
        try:
            cur.execute("PRAGMA journal_mode=WAL;")
            cur.execute("PRAGMA synchronous=NORMAL;")
            cur.execute("PRAGMA foreign_keys=ON;")
            cur.execute(f"PRAGMA busy_timeout={int(settings.query_timeout_s * 1000)};")  # ms
        finally:
            cur.close()

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@contextmanager
def session_scope() -> Session:
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

