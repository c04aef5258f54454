from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import declarative_base, sessionmaker

from . import config

Base = declarative_base()


def make_engine(url: str, echo: bool = False):
    if url.startswith("sqlite"):
        engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False, "timeout": 30})

        # pysqlite: take the write lock at BEGIN so writers serialize and SAVEPOINTs work
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            dbapi_connection.execute("PRAGMA foreign_keys=ON")

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine
    return create_engine(url, echo=echo, pool_pre_ping=True)


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


engine = make_engine(config.DATABASE_URL, echo=config.DB_ECHO)
SessionLocal = make_session_factory(engine)


@contextmanager
def session_scope(factory=None):
    """One transaction per block: commit on success, rollback on any error."""
    db = (factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def ping(factory=None) -> None:
    with session_scope(factory) as db:
        db.execute(text("select 1"))
