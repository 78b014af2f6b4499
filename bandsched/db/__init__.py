import logging
import os
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./bandsched.db")

Base = declarative_base()


#############################
# Engine and session helpers
#############################


def make_engine(url: str | None = None):
    """Create an engine for ``url`` (defaults to ``DATABASE_URL``)."""
    url = url or DATABASE_URL
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # Share the single in-memory database between sessions.
            kwargs["poolclass"] = StaticPool
    return create_engine(url, echo=False, future=True, **kwargs)


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


engine = make_engine()
SessionLocal = make_session_factory(engine)


@contextmanager
def session_scope(session_factory=None):
    """Yield a session, committing on success and rolling back on error."""
    session = (session_factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind=None) -> None:
    """Create tables if they do not already exist.  Idempotent."""
    from bandsched.db import models  # noqa: F401  registers the tables

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    logger.info("Database schema ready on %s", bind.url.render_as_string(hide_password=True))
