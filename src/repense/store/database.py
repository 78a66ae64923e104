"""Database connection manager for the Store."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from repense.store.models import Base

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy import Connection, Engine

# Seconds a SQLite writer waits for the write lock before giving up
SQLITE_BUSY_TIMEOUT = 30

# Connection execution option marking a unit of work that will write
IMMEDIATE_OPTION = "repense_immediate"


def _normalize_url(url: str) -> str:
    """Accept ':memory:' or a bare file path as shorthand for SQLite URLs."""
    if url == ":memory:":
        return "sqlite:///:memory:"
    if "://" not in url:
        return f"sqlite:///{url}"
    return url


class Database:
    """Database connection manager.

    Works with any SQLAlchemy URL. SQLite connections get WAL mode and foreign
    keys. Units of work opened with :meth:`transaction` begin with
    ``BEGIN IMMEDIATE``, so two writers never both read a seat count before
    either has written it; plain sessions use a deferred ``BEGIN`` and never
    wait on a writer.
    """

    def __init__(self, url: str = "repense.db", echo: bool = False) -> None:
        """Initialize database connection.

        Args:
            url: SQLAlchemy URL, a SQLite file path, or ":memory:".
            echo: Log emitted SQL.
        """
        self.url = _normalize_url(url)
        self.echo = echo
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    @property
    def is_sqlite(self) -> bool:
        """Whether the backing store is SQLite."""
        return make_url(self.url).get_backend_name() == "sqlite"

    @property
    def engine(self) -> Engine:
        """Get or create the database engine."""
        if self._engine is None:
            if not self.is_sqlite:
                self._engine = create_engine(self.url, echo=self.echo, pool_pre_ping=True)
                return self._engine

            database = make_url(self.url).database
            in_memory = database in (None, "", ":memory:")
            if not in_memory:
                Path(database).parent.mkdir(parents=True, exist_ok=True)

            # For in-memory databases, use StaticPool to share connection across threads
            if in_memory:
                self._engine = create_engine(
                    self.url,
                    echo=self.echo,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            else:
                self._engine = create_engine(
                    self.url,
                    echo=self.echo,
                    connect_args={
                        "check_same_thread": False,
                        "timeout": SQLITE_BUSY_TIMEOUT,
                    },
                )

            @event.listens_for(self._engine, "connect")
            def set_sqlite_pragma(dbapi_connection: object, _connection_record: object) -> None:
                # SQLAlchemy emits BEGIN itself (see below), not the driver
                dbapi_connection.isolation_level = None  # type: ignore[attr-defined]
                cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            @event.listens_for(self._engine, "begin")
            def begin_transaction(conn: Connection) -> None:
                # Units of work take the write lock up front so their reads
                # cannot go stale before the write; plain reads stay deferred
                if conn.get_execution_options().get(IMMEDIATE_OPTION):
                    conn.exec_driver_sql("BEGIN IMMEDIATE")
                else:
                    conn.exec_driver_sql("BEGIN")

        return self._engine

    @property
    def session_factory(self) -> sessionmaker[Session]:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                expire_on_commit=False,
            )
        return self._session_factory

    def create_tables(self) -> None:
        """Create all tables if they don't exist."""
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session.

        Returns:
            A new SQLAlchemy session.
        """
        return self.session_factory()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Unit of work: commit everything on success, roll back on any error.

        Yields:
            A session whose writes are committed together when the block exits.
        """
        session = self.get_session()
        try:
            # Bind the connection now so BEGIN IMMEDIATE is the first statement
            session.connection(execution_options={IMMEDIATE_OPTION: True})
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def is_wal_mode(self) -> bool:
        """Check if WAL mode is enabled.

        Returns:
            True if WAL mode is enabled.
        """
        with self.engine.connect() as conn:
            result = conn.execute(text("PRAGMA journal_mode"))
            mode = result.scalar()
            return mode == "wal"

    def close(self) -> None:
        """Close the database connection."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
