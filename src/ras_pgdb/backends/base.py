# -*- coding: utf-8 -*-
"""
Backend Base Classes
====================

Defines the contract shared by the DuckDB and PostgreSQL backends and the
transaction-scoped handle that the ingestion pipeline writes through.

SQL handed to a backend always uses '?' placeholders; each backend converts
them to its driver's paramstyle before execution.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Generator, List, Optional, Sequence, Tuple

from ..errors import TransactionError

logger = logging.getLogger(__name__)

ConnectionType = Any
Row = Tuple[Any, ...]


class BackendType(Enum):
    """Supported database backends."""
    DUCKDB = "duckdb"
    POSTGRES = "postgres"


class IsolationLevel(Enum):
    """Transaction isolation levels."""
    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"


class TransactionContext:
    """
    Handle on one open transaction.

    The transaction is rolled back when the owning ``transaction()`` block
    exits, unless ``commit()`` was called first. Statements issued after a
    commit are rejected.

    Parameters
    ----------
    backend : BaseBackend
        Backend that opened the transaction.
    isolation_level : IsolationLevel
        Isolation level the transaction runs at.
    connection : optional
        Driver connection the transaction is bound to.
    saved_state : optional
        Whatever the backend's begin hook returned; handed back to its end
        hook when the transaction finishes.
    """

    def __init__(
        self,
        backend: "BaseBackend",
        isolation_level: IsolationLevel,
        connection: ConnectionType,
        saved_state: Any = None,
    ):
        self.backend = backend
        self.isolation_level = isolation_level
        self.connection = connection
        self.saved_state = saved_state
        self.committed = False
        self.statements = 0

    @property
    def backend_type(self) -> BackendType:
        return self.backend.backend_type

    @property
    def driver_errors(self) -> Tuple[type, ...]:
        return self.backend.driver_errors

    def _check_open(self) -> None:
        if self.committed:
            raise TransactionError("transaction already committed")

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> None:
        """Execute a statement that returns no rows."""
        self._check_open()
        self.backend._run(self.connection, sql, params, fetch=False)
        self.statements += 1

    def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Row]:
        """Execute a statement and return every result row."""
        self._check_open()
        rows = self.backend._run(self.connection, sql, params, fetch=True)
        self.statements += 1
        return rows

    def fetch_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Row]:
        """Execute a statement and return its first row, or None."""
        rows = self.fetch_all(sql, params)
        return rows[0] if rows else None

    def fetch_value(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Execute a statement and return the first column of its first row."""
        row = self.fetch_one(sql, params)
        return row[0] if row is not None else None

    def geometry_param(self, srid: int) -> str:
        """SQL expression binding one WKB parameter as a geometry."""
        return self.backend.geometry_param(srid)

    def commit(self) -> None:
        """Commit the transaction. Raises TransactionError on failure."""
        self._check_open()
        try:
            self.backend._commit(self.connection)
        except self.driver_errors as e:
            raise TransactionError(f"commit failed: {e}") from e
        self.committed = True


class BaseBackend(ABC):
    """
    Shared behaviour for the concrete backends.

    Subclasses provide the driver calls (``_run``, ``_begin``, ``_commit``,
    ``_rollback``); this class builds the transaction lifecycle and the SQL
    dialect helpers on top of them.
    """

    def __init__(self):
        self._connection: Optional[ConnectionType] = None

    @property
    @abstractmethod
    def backend_type(self) -> BackendType:
        """Return the backend type."""

    @property
    @abstractmethod
    def placeholder(self) -> str:
        """Return the driver's SQL placeholder."""

    @property
    @abstractmethod
    def driver_errors(self) -> Tuple[type, ...]:
        """Exception types raised by the underlying driver."""

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def connection_errors(self) -> Tuple[type, ...]:
        """Exception types connect() raises when the database is unreachable."""
        return self.driver_errors

    @abstractmethod
    def connect(self) -> ConnectionType:
        """Get a database connection."""

    @abstractmethod
    def close(self) -> None:
        """Release every connection held by the backend."""

    @abstractmethod
    def release_connection(self, conn: ConnectionType) -> None:
        """Hand a connection obtained from connect() back to the backend."""

    @abstractmethod
    def _run(
        self,
        conn: ConnectionType,
        sql: str,
        params: Optional[Sequence[Any]],
        fetch: bool,
    ) -> List[Row]:
        """Execute one statement on conn, returning rows when fetch is True."""

    @abstractmethod
    def _begin(self, conn: ConnectionType, isolation_level: IsolationLevel) -> Any:
        """
        Open a transaction on conn.

        Returns state for _end() to restore; it is kept on the transaction
        handle, never on the backend.
        """

    @abstractmethod
    def _commit(self, conn: ConnectionType) -> None:
        """Commit the open transaction on conn."""

    @abstractmethod
    def _rollback(self, conn: ConnectionType) -> None:
        """Roll back the open transaction on conn."""

    def _end(self, conn: ConnectionType, saved_state: Any) -> None:
        """Hook run after a transaction finishes, either way."""

    @abstractmethod
    def geometry_param(self, srid: int) -> str:
        """SQL expression binding a WKB parameter as a geometry value."""

    @abstractmethod
    def execute(
        self,
        sql: str,
        params: Optional[List[Any]] = None,
        connection: Optional[ConnectionType] = None,
    ) -> None:
        """Execute and commit a single statement."""

    def convert_placeholders(self, sql: str) -> str:
        """Convert '?' placeholders to the backend's paramstyle."""
        if self.placeholder == "?":
            return sql
        return sql.replace("?", self.placeholder)

    @contextmanager
    def transaction(
        self,
        isolation_level: IsolationLevel = IsolationLevel.READ_COMMITTED,
    ) -> Generator[TransactionContext, None, None]:
        """
        Open a transaction whose rollback is armed until an explicit commit.

        Parameters
        ----------
        isolation_level : IsolationLevel
            Transaction isolation level.

        Yields
        ------
        TransactionContext
            Handle for statements, commit included.

        Raises
        ------
        TransactionError
            If the database is unreachable or the transaction cannot be started.
        """
        try:
            conn = self.connect()
        except self.connection_errors as e:
            raise TransactionError(f"could not connect: {e}") from e

        try:
            saved_state = self._begin(conn, isolation_level)
        except self.driver_errors as e:
            self.release_connection(conn)
            raise TransactionError(f"could not begin transaction: {e}") from e

        ctx = TransactionContext(self, isolation_level, conn, saved_state)
        try:
            yield ctx
        finally:
            if not ctx.committed:
                self._rollback_quietly(conn)
            self._end(conn, ctx.saved_state)
            self.release_connection(conn)

    def _rollback_quietly(self, conn: ConnectionType) -> None:
        try:
            self._rollback(conn)
            logger.debug("Transaction rolled back")
        except self.driver_errors as e:
            # Driver already discarded the transaction (e.g. after a failed COMMIT)
            logger.warning(f"Rollback reported an error: {e}")

    def format_upsert(
        self,
        table: str,
        columns: List[str],
        key_columns: List[str],
        returning: Optional[str] = None,
        expressions: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Generate UPSERT SQL using INSERT ... ON CONFLICT DO UPDATE.

        Both backends accept the same syntax. Key columns are never part of
        the SET list, so an existing row keeps its surrogate identifier.

        Parameters
        ----------
        table : str
            Qualified table name.
        columns : list of str
            All columns to insert/update.
        key_columns : list of str
            Natural-key columns backing the unique constraint.
        returning : str, optional
            Column to return from the written row.
        expressions : dict, optional
            Per-column value expressions replacing the bare '?'.

        Returns
        -------
        str
            UPSERT SQL template with '?' placeholders.
        """
        expressions = expressions or {}
        values = ", ".join(expressions.get(c, "?") for c in columns)
        col_list = ", ".join(columns)
        key_list = ", ".join(key_columns)

        update_cols = [c for c in columns if c not in key_columns]
        if update_cols:
            update_set = ", ".join(f"{c} = EXCLUDED.{c}" for c in update_cols)
            conflict = f"DO UPDATE SET {update_set}"
        else:
            conflict = "DO NOTHING"

        sql = (
            f"INSERT INTO {table} ({col_list}) VALUES ({values}) "
            f"ON CONFLICT ({key_list}) {conflict}"
        )
        if returning:
            sql += f" RETURNING {returning}"
        return sql
