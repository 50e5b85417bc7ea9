from __future__ import annotations

import logging
import os
import weakref
from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)


def build_engine(db_url: str) -> Engine:
    engine_kwargs: dict[str, object] = {
        "future": True,
        "pool_pre_ping": True,
    }
    if db_url.startswith("postgres"):
        engine_kwargs.update(
            {
                "pool_recycle": 1800,
                "pool_size": 5,
                "max_overflow": 10,
                "pool_timeout": 30,
            }
        )
    engine = create_engine(db_url, **engine_kwargs)

    if db_url.startswith("sqlite"):
        # sqlite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
        @event.listens_for(engine, "connect")
        def _sqlite_fk_on(dbapi_connection, connection_record):  # type: ignore[no-redef]
            cur = dbapi_connection.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

    return engine


# Engines to dispose in forked children (gunicorn --preload). One at-fork hook per process.
_fork_engines: "weakref.WeakSet[Engine]" = weakref.WeakSet()
_fork_hook_registered = False


def _dispose_engines_after_fork() -> None:
    for engine in list(_fork_engines):
        engine.dispose()
        logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())


def dispose_after_fork(engine: Engine) -> None:
    global _fork_hook_registered
    _fork_engines.add(engine)
    if not _fork_hook_registered and hasattr(os, "register_at_fork"):
        os.register_at_fork(after_in_child=_dispose_engines_after_fork)
        _fork_hook_registered = True


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def init_db(app: Flask) -> None:
    engine = build_engine(app.config["DATABASE_URL"])
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = make_sessionmaker(engine)
    dispose_after_fork(engine)
    app.logger.debug("Database engine ready (%s)", engine.url.get_backend_name())


def db_session() -> Session:
    """
    Request-scoped session. Use inside request handlers.
    """
    s: Session | None = getattr(g, "db_session", None)
    if s is not None:
        return s
    sm = current_app.extensions["sqlalchemy_sessionmaker"]
    g.db_session = sm()
    return g.db_session


def teardown_db_session(exc: BaseException | None) -> None:
    s: Session | None = getattr(g, "db_session", None)
    if s is None:
        return
    if exc is not None:
        s.rollback()
    s.close()
    g.db_session = None


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Non-request helper for scripts and tests: commits on success, rolls back on error.
    """
    sm = app.extensions["sqlalchemy_sessionmaker"]
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
