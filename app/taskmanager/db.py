from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, g
from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker


def engine_options(db_url: str) -> dict[str, object]:
    opts: dict[str, object] = {"pool_pre_ping": True}
    if db_url.startswith("postgres"):
        opts.update(pool_recycle=1800, pool_size=5, max_overflow=10, pool_timeout=30)
    elif db_url.startswith("sqlite"):
        # Flask's dev server and the test client may hop threads between requests.
        opts["connect_args"] = {"check_same_thread": False}
    return opts


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """
    SQLite ignores FOREIGN KEY clauses unless asked per connection; the audit
    trail relies on ON DELETE SET NULL when a user removes their account.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _fk_pragma(dbapi_connection, connection_record):  # type: ignore[no-redef]
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()


def init_db(app: Flask) -> None:
    db_url = app.config["DATABASE_URL"]
    engine = create_engine(db_url, **engine_options(db_url))
    enable_sqlite_foreign_keys(engine)
    app.logger.info("Database engine ready (dialect=%s)", engine.dialect.name)
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        expire_on_commit=False,
    )


def create_schema(app: Flask) -> None:
    from app.taskmanager.models import Base

    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])


def ping(app: Flask) -> bool:
    """True when the database answers a trivial query."""
    engine: Engine = app.extensions["sqlalchemy_engine"]
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return True


def db_session(app: Flask | None = None) -> Session:
    """
    Request-scoped session, created on first use and closed on teardown.
    """
    s: Session | None = getattr(g, "db_session", None)
    if s is None:
        if app is None:
            from flask import current_app

            app = current_app
        s = app.extensions["sqlalchemy_sessionmaker"]()
        g.db_session = s
    return s


def teardown_db_session(_exc: BaseException | None) -> None:
    s: Session | None = g.pop("db_session", None)
    if s is not None:
        s.close()


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Non-request helper for scripts and tests: yields a session and commits/rolls back.
    """
    s: Session = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
