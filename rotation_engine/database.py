"""Database setup. SQLite by default, any SQLAlchemy URL via DATABASE_URL."""
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import get_settings

Base = declarative_base()


def make_engine(database_url: str, echo: bool = False):
    """
    Create an engine. For SQLite every transaction starts with BEGIN IMMEDIATE so
    concurrent writers queue on the busy timeout instead of failing a lock upgrade.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False, "timeout": 30},
        echo=echo,
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Hand transaction control to SQLAlchemy (pysqlite would BEGIN lazily)
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


engine = make_engine(get_settings().database_url)
SessionLocal = make_session_factory(engine)


def init_db(bind=None) -> None:
    """Create tables. Importing models registers them on Base.metadata."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def session_scope(session_factory=None):
    """One transaction: commit on success, rollback on any exception."""
    db = (session_factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
