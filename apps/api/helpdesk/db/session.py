from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker

from helpdesk.core.config import settings


def _install_sqlite_hooks(engine: Engine) -> None:
    """Let SQLAlchemy own transactions and take the write lock up front.

    pysqlite's implicit BEGIN breaks SAVEPOINT handling, and a deferred
    transaction that upgrades from read to write fails instead of waiting on
    the busy timeout. BEGIN IMMEDIATE queues writers instead.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str) -> Engine:
    """Create an engine configured for the target backend."""
    backend = make_url(database_url).get_backend_name()

    if backend == "sqlite":
        engine = create_engine(
            database_url,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS,
            },
        )
        _install_sqlite_hooks(engine)
        return engine

    connect_args = {}
    if backend.startswith("postgresql"):
        connect_args["options"] = "-c timezone=utc"
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
