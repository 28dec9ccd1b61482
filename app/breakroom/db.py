from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

ENGINE_KEY = "sqlalchemy_engine"
SESSIONMAKER_KEY = "sqlalchemy_sessionmaker"


def engine_options(db_url: str) -> dict[str, object]:
    """Pool settings: sized for gunicorn workers on Postgres, library defaults for SQLite."""
    options: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        options.update(pool_recycle=1800, pool_size=5, max_overflow=10, pool_timeout=30)
    return options


def init_db(app: Flask) -> None:
    engine = create_engine(app.config["DATABASE_URL"], **engine_options(app.config["DATABASE_URL"]))

    env = (app.config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        @event.listens_for(engine, "checkout")
        def _log_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
            app.logger.debug("DB connection checkout from pool")

    app.extensions[ENGINE_KEY] = engine
    # expire_on_commit=False: handlers serialize rows after committing
    app.extensions[SESSIONMAKER_KEY] = sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def db_session() -> Session:
    """The session of the current request; opened lazily, closed by teardown_db_session."""
    s: Session | None = getattr(g, "db_session", None)
    if s is None:
        s = current_app.extensions[SESSIONMAKER_KEY]()
        g.db_session = s
    return s


def teardown_db_session(_exc: BaseException | None) -> None:
    s: Session | None = getattr(g, "db_session", None)
    if s is None:
        return
    g.db_session = None
    try:
        s.close()
    except Exception:
        current_app.logger.exception("Failed to close request DB session (request_id=%s)", getattr(g, "request_id", None))


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Session outside a request (seeding, test fixtures).
    Commits when the block exits cleanly, rolls back and re-raises otherwise.
    """
    s: Session = app.extensions[SESSIONMAKER_KEY]()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
