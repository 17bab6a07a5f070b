from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from demo_scheduling.core.config import settings

# Execution option marking a SQLite transaction that must hold the write lock.
SQLITE_IMMEDIATE = "sqlite_immediate"


def build_engine(database_url: str, lock_timeout_ms: int = settings.LOCK_TIMEOUT_MS) -> Engine:
    """
    Create an engine whose transactions can serialize per demo session.

    PostgreSQL is the deployment and test backend: row-level locks via
    SELECT ... FOR UPDATE (see ``apply_lock_timeout``), so different sessions
    never contend.

    SQLite is a single-writer fallback for local development only. It has no
    row locks; a transaction that locks a session row is opened with
    BEGIN IMMEDIATE (see ``begin_locking_transaction``), which takes the
    database-wide write lock, and the driver busy timeout bounds the wait.
    Read-only transactions use a plain deferred BEGIN.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    engine = create_engine(
        database_url,
        connect_args={
            "check_same_thread": False,
            "timeout": lock_timeout_ms / 1000,
        },
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Take over transaction control from pysqlite so we can emit our own BEGIN.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(SQLITE_IMMEDIATE):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")

    return engine


def begin_locking_transaction(db: Session) -> None:
    """
    SQLite only: make sure the current transaction holds the write lock.

    Must be called before the transaction writes anything. A read-only
    snapshot that is already open is ended first so the next BEGIN can be
    IMMEDIATE.
    """
    if db.get_bind().dialect.name != "sqlite":
        return
    if db.in_transaction():
        if db.connection().get_execution_options().get(SQLITE_IMMEDIATE):
            return
        db.commit()
    db.connection(execution_options={SQLITE_IMMEDIATE: True})


def apply_lock_timeout(db: Session, lock_timeout_ms: int = settings.LOCK_TIMEOUT_MS) -> None:
    """Bound the current transaction's lock waits (PostgreSQL only)."""
    if db.get_bind().dialect.name == "postgresql":
        # SET does not accept bind parameters.
        db.execute(text(f"SET LOCAL lock_timeout = {int(lock_timeout_ms)}"))


def make_session_factory(bind: Engine) -> sessionmaker:
    # Objects keep their committed state after commit, so nothing has to be
    # re-read (and no lock re-taken) once a unit of work has succeeded.
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


# The engine is the entry point to the database. It's configured with the
# database URL and handles the connection pooling.
engine = build_engine(settings.DATABASE_URL)

# SessionLocal is a factory for creating new Session objects.
SessionLocal = make_session_factory(engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        # Closing rolls back anything left uncommitted, e.g. when the client
        # disconnected mid-request.
        db.close()
