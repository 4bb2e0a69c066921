"""Database package: engine, session factory, init_db(), get_session(), tenant_session()."""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from mailsync.config import DATABASE_URL
from mailsync.db.base import Base

# Import all models so Base.metadata has all tables
from mailsync.db.models import MailAccount, Message, Thread  # noqa: F401

_init_lock = threading.Lock()
_engine: Optional[Engine] = None
_engine_url: Optional[str] = None
_SessionLocal: sessionmaker | None = None


def _ensure_sqlite_dir(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    database = make_url(url).database
    if database and database != ":memory:" and not database.startswith("file:"):
        Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def _get_engine(url: str) -> Engine:
    """Create engine with check_same_thread=False for use from executor threads."""
    if url.startswith("sqlite"):
        _ensure_sqlite_dir(url)
        if "?" in url:
            url += "&check_same_thread=False"
        else:
            url += "?check_same_thread=False"
        engine = create_engine(url, echo=False)

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_connection, _record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

        return engine
    return create_engine(url, echo=False, pool_pre_ping=True)


def init_db(database_url: Optional[str] = None) -> None:
    """Create engine and tables. Re-initializes only when a different database_url is given."""
    global _engine, _engine_url, _SessionLocal
    with _init_lock:
        if _SessionLocal is not None and (database_url is None or database_url == _engine_url):
            return
        url = database_url or DATABASE_URL
        if _engine is not None:
            _engine.dispose()
        _engine = _get_engine(url)
        _engine_url = url
        Base.metadata.create_all(bind=_engine)
        _SessionLocal = sessionmaker(bind=_engine, autocommit=False, autoflush=False, expire_on_commit=False)


def dispose_db() -> None:
    """Dispose the engine and forget the session factory (next get_session() re-initializes)."""
    global _engine, _engine_url, _SessionLocal
    with _init_lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _engine_url = None
        _SessionLocal = None


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Context manager yielding a DB session. Calls init_db() on first use."""
    init_db()
    session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def tenant_session(tenant_id: str) -> Generator[Session, None, None]:
    """Session whose transaction is scoped to one tenant.

    The tenant is fixed before the first statement runs and recorded in session.info;
    repositories filter on it explicitly. On PostgreSQL the transaction-local
    app.tenant_id setting is also set (bound parameter) for row-level security policies.
    """
    if not tenant_id or not str(tenant_id).strip():
        raise ValueError("tenant_session requires a non-empty tenant_id")
    with get_session() as session:
        session.info["tenant_id"] = tenant_id
        if session.get_bind().dialect.name == "postgresql":
            session.execute(text("SELECT set_config('app.tenant_id', :tenant_id, true)"), {"tenant_id": tenant_id})
        yield session
