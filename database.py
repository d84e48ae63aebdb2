import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlalchemy import Table, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config import Settings
from errors import ServiceError, StorageError
from models import Base

logger = logging.getLogger(__name__)


def create_db_engine(settings: Settings) -> Engine:
    url = settings.DATABASE_URL
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": settings.DB_TIMEOUT_SECONDS},
        )
        _serialize_sqlite_writers(engine)
    else:
        engine = create_engine(url, pool_pre_ping=True, pool_timeout=settings.DB_TIMEOUT_SECONDS)
    logger.info("Database engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def _serialize_sqlite_writers(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first DML; take the write lock up front instead.
    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def init_db(engine: Engine) -> None:
    """Create missing tables and indexes. Safe to run on every deploy."""
    Base.metadata.create_all(bind=engine)
    logger.info("Schema verified: %s", ", ".join(sorted(Base.metadata.tables)))


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_session(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Commit on success; roll back and re-raise otherwise.

    Driver and connection failures surface as ``StorageError``.
    """
    try:
        yield db
        db.commit()
    except ServiceError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Transaction rolled back: %s", e)
        raise StorageError(detail=str(e)) from e
    except Exception:
        db.rollback()
        raise


def lock_table(db: Session, table: Table, key_column=None, key=None) -> None:
    """Take an exclusive write lock on ``table`` for the rest of the transaction.

    Concurrent writers block here until the holder commits or rolls back,
    so a check-then-write sequence after this call cannot interleave.
    """
    bind = db.get_bind()
    dialect = bind.dialect.name
    name = bind.dialect.identifier_preparer.format_table(table)
    if dialect == "postgresql":
        db.connection().exec_driver_sql(f"LOCK TABLE {name} IN SHARE ROW EXCLUSIVE MODE")
    elif dialect == "mssql":
        db.connection().exec_driver_sql(f"SELECT TOP 0 * FROM {name} WITH (TABLOCKX, HOLDLOCK)")
    elif dialect in ("mysql", "mariadb"):
        # InnoDB next-key locks cover the key range, including absent rows.
        stmt = select(table.c.id)
        if key_column is not None:
            stmt = stmt.where(key_column == key)
        db.execute(stmt.with_for_update())
    elif dialect == "sqlite":
        # Already held: transactions start with BEGIN IMMEDIATE.
        db.connection()
    else:
        logger.warning("No table lock available for dialect %s", dialect)
