"""Database engine, session factory and transaction helpers."""
import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from clinicjobs.core import config

logger = logging.getLogger(__name__)

DATABASE_URL = config.DATABASE_URL

# PostgreSQL lock_not_available, deadlock_detected, serialization_failure
LOCK_TIMEOUT_PGCODES = {"55P03", "40P01", "40001"}

# Execution option asking SQLite to take the write lock when the transaction begins
SQLITE_WRITE_LOCK = "clinicjobs_sqlite_write_lock"


def enable_sqlite_transactions(engine) -> None:
    """
    Let SQLAlchemy, not pysqlite, emit BEGIN on SQLite connections.

    pysqlite defers BEGIN until the first INSERT/UPDATE, so reads made before
    it run outside any transaction and SQLite ignores FOR UPDATE. Connections
    opened with the SQLITE_WRITE_LOCK option begin with BEGIN IMMEDIATE and
    hold the database write lock from their first statement until commit;
    competing writers wait up to the connect timeout and then fail with
    "database is locked".
    """
    is_memory = engine.url.database in (None, "", ":memory:")

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        if not is_memory:
            # Readers holding a snapshot must not block the writer's commit
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(SQLITE_WRITE_LOCK):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, lock_timeout_ms: int = None):
    """Create an engine; SQLite waits on the write lock for the lock timeout."""
    lock_timeout_ms = lock_timeout_ms or config.LOCK_TIMEOUT_MS
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": lock_timeout_ms / 1000},
        )
        enable_sqlite_transactions(engine)
        return engine
    return create_engine(database_url, pool_pre_ping=True)


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def set_lock_timeout(db: Session, timeout_ms: int) -> None:
    """
    Start the current write transaction with a bounded lock wait.

    PostgreSQL uses SET LOCAL so the setting ends with the transaction.
    SQLite has no row locks: the session's connection begins with
    BEGIN IMMEDIATE (see enable_sqlite_transactions) and waits for the
    database write lock up to the connect timeout set in build_engine.
    Must be called before the session runs any statement.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        db.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_ms)}ms'"))
    elif dialect == "mysql":
        db.execute(text(f"SET SESSION innodb_lock_wait_timeout = {max(1, int(timeout_ms) // 1000)}"))
    elif dialect == "sqlite":
        db.connection(execution_options={SQLITE_WRITE_LOCK: True})


def is_lock_timeout(error: DBAPIError) -> bool:
    """Check whether a driver error means the lock wait ran out."""
    orig = getattr(error, "orig", None)
    if getattr(orig, "pgcode", None) in LOCK_TIMEOUT_PGCODES:
        return True
    message = str(orig or error).lower()
    return (
        "database is locked" in message
        or "lock wait timeout" in message
        or "lock timeout" in message
        or "could not obtain lock" in message
    )
