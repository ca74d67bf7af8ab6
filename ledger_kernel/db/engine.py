"""
Module: ledger_kernel.db.engine
Responsibility: SQLAlchemy engine and session factory for one ledger
    database, plus the transactional ``session_scope`` used by the SQL DAO.
Architecture position: Kernel > DB.  May import from db/base.py only,
    except create_tables which imports models/ to register its tables.

Invariants enforced:
    - One Database per ledger engine; several ledgers in one process do
      not share connections.
    - ``session_scope`` commits on normal exit and rolls back on any
      exception, re-raising it.

Failure modes:
    - SQLAlchemyError from create_engine on a malformed URL.
    - RuntimeError when a disposed Database is used.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.db.base import Base
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.engine")


class Database:
    """
    Connection handle for one ledger database.

    Contract:
        Construct from a SQLAlchemy URL (``sqlite:///path.db`` for local
        files).  Call ``dispose`` when the ledger closes.
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self.url = database_url
        self._engine: Engine | None = create_engine(database_url, echo=echo)
        self._session_factory: sessionmaker[Session] | None = sessionmaker(
            bind=self._engine, expire_on_commit=False
        )
        logger.info(
            "database_initialized",
            extra={"dialect": self._engine.dialect.name, "echo": echo},
        )

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database disposed")
        return self._engine

    def get_session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("Database disposed")
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Transactional scope around a series of operations.

        Postconditions: committed and closed on normal exit; rolled back
        and closed on exception, which is re-raised.
        """
        session = self.get_session()
        logger.debug("transaction_started")
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed")
        except Exception:
            session.rollback()
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        # Importing the models registers their tables on Base.metadata
        import ledger_kernel.models  # noqa: F401

        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all ledger tables.  Use with caution; primarily for testing."""
        Base.metadata.drop_all(self.engine)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            logger.info("database_disposed", extra={"dialect": self._engine.dialect.name})
        self._engine = None
        self._session_factory = None

    def is_sqlite(self) -> bool:
        return self._engine is not None and self._engine.dialect.name == "sqlite"
