from contextlib import contextmanager
import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import NullPool

from .config import settings

APP_ENV = os.getenv("APP_ENV", settings.APP_ENV).lower()  # "dev" | "prod"


def _enable_sqlite_transactions(engine: Engine) -> None:
    """
    pysqlite apre le transazioni da solo e salta il DDL: lo disattiviamo ed
    emettiamo BEGIN noi, così migrazioni e checkout sono davvero atomici.
    Le foreign key in SQLite vanno accese per ogni connessione.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def make_engine(url: str | None = None) -> Engine:
    url = url or settings.DB_URL

    # In sviluppo: nessun pool -> connessione chiusa subito dopo ogni request
    if APP_ENV != "prod":
        engine = create_engine(url, future=True, pool_pre_ping=True, poolclass=NullPool)
    else:
        engine = create_engine(
            url,
            future=True,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=0,
            pool_recycle=1800,
        )

    if engine.dialect.name == "sqlite":
        _enable_sqlite_transactions(engine)
    return engine


def make_sessionmaker(bind: Engine) -> sessionmaker:
    return sessionmaker(
        bind=bind,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


engine = make_engine()

SessionLocal = make_sessionmaker(engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()  # importantissimo per rilasciare la connessione


@contextmanager
def session_scope(factory: sessionmaker | None = None):
    """Come get_db, ma per CLI e script: la sessione viene chiusa sempre."""
    db = (factory or SessionLocal)()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session):
    """Commit se tutto va bene, rollback di tutto (dall'ultimo commit) a qualsiasi errore."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
