"""
store.py
========
Database gateway for the newsletter pipeline.

1) Creates the engine for the content store (DB_URL from config).
2) Creates tables (once) from the SQLModel classes in models.py.
3) Hands out Sessions (one unit of work per request or job).
"""

from sqlmodel import SQLModel, Session, create_engine

from .config import DB_URL

# SQLite needs check_same_thread off because FastAPI runs sync endpoints in a
# threadpool and APScheduler jobs run on their own threads.
_connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}

engine = create_engine(DB_URL, echo=False, connect_args=_connect_args)


def init_db() -> None:
    """
    Create all tables defined in models.py. Safe on every startup: only
    missing tables are created, nothing is dropped.
    """
    from . import models  # noqa: F401  (import just to register models with SQLModel)

    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    """
    Open a Session bound to the engine.

      with get_session() as session:
          session.add(obj)
          session.commit()
    """
    return Session(engine)
