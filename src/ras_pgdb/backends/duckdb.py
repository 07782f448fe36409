# -*- coding: utf-8 -*-
"""
DuckDB Backend Implementation
=============================

Single-connection backend over a DuckDB file (or ':memory:').

DuckDB is used for:
- Local ingestion runs without a database server
- The test suite (in-memory databases)

Geometries are stored as WKB blobs; the spatial extension, when it can be
loaded, reads them back with ST_GeomFromWKB.
"""

from __future__ import annotations

import gc
import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

import duckdb

from .base import BackendType, BaseBackend, IsolationLevel, Row

logger = logging.getLogger(__name__)


class DuckDBBackend(BaseBackend):
    """
    DuckDB backend implementation.

    Parameters
    ----------
    db_path : str or Path
        Path to the DuckDB database file. Use ':memory:' for in-memory database.
    read_only : bool, optional
        If True, opens database in read-only mode. Default is False.
    spatial : bool, optional
        If True, loads the DuckDB spatial extension. Default is True.

    Example
    -------
    >>> backend = DuckDBBackend(':memory:', spatial=False)
    >>> with backend.transaction() as tx:
    ...     tx.execute("CREATE TABLE t (id INTEGER)")
    ...     tx.commit()
    >>> backend.close()
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        read_only: bool = False,
        spatial: bool = True,
    ):
        super().__init__()
        self.db_path = Path(db_path) if str(db_path) != ':memory:' else ':memory:'
        self.read_only = read_only
        self.spatial = spatial
        self._spatial_loaded = False

    @property
    def backend_type(self) -> BackendType:
        """Return the backend type."""
        return BackendType.DUCKDB

    @property
    def placeholder(self) -> str:
        """Return the SQL placeholder ('?' for DuckDB)."""
        return '?'

    @property
    def driver_errors(self) -> Tuple[type, ...]:
        return (duckdb.Error,)

    @property
    def spatial_available(self) -> bool:
        """Check if the spatial extension is available and loaded."""
        return self._spatial_loaded

    def connect(self) -> duckdb.DuckDBPyConnection:
        """
        Get or create the database connection.

        Returns
        -------
        duckdb.DuckDBPyConnection
            Active database connection.
        """
        if self._connection is None:
            if self.db_path != ':memory:':
                self.db_path.parent.mkdir(parents=True, exist_ok=True)

            self._connection = duckdb.connect(
                str(self.db_path),
                read_only=self.read_only
            )

            if self.spatial and not self._spatial_loaded:
                self._load_spatial()

        return self._connection

    def _load_spatial(self) -> None:
        """Load the DuckDB spatial extension."""
        try:
            self._connection.execute("INSTALL spatial;")
            self._connection.execute("LOAD spatial;")
            self._spatial_loaded = True
        except duckdb.Error as e:
            if "already installed" in str(e).lower():
                self._connection.execute("LOAD spatial;")
                self._spatial_loaded = True
            else:
                logger.warning(f"Could not load spatial extension: {e}")
                self._spatial_loaded = False

    def release_connection(self, conn) -> None:
        """The single connection stays open until close()."""

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            self._spatial_loaded = False

    def _run(
        self,
        conn: duckdb.DuckDBPyConnection,
        sql: str,
        params: Optional[Sequence[Any]],
        fetch: bool,
    ) -> List[Row]:
        if params:
            result = conn.execute(sql, list(params))
        else:
            result = conn.execute(sql)
        return result.fetchall() if fetch else []

    def _begin(self, conn, isolation_level: IsolationLevel) -> bool:
        # DuckDB transactions are always serializable; GC is paused only once BEGIN succeeded
        conn.execute("BEGIN TRANSACTION")
        gc_was_enabled = gc.isenabled()
        gc.disable()
        return gc_was_enabled

    def _commit(self, conn) -> None:
        conn.execute("COMMIT")

    def _rollback(self, conn) -> None:
        conn.execute("ROLLBACK")

    def _end(self, conn, gc_was_enabled: bool) -> None:
        if gc_was_enabled:
            gc.enable()

    def geometry_param(self, srid: int) -> str:
        return "?"

    def execute(
        self,
        sql: str,
        params: Optional[List[Any]] = None,
        connection: Optional[duckdb.DuckDBPyConnection] = None,
    ) -> None:
        """Execute a SQL statement in auto-commit mode."""
        conn = connection or self.connect()
        self._run(conn, sql, params, fetch=False)

    def count_rows(self, table: str) -> int:
        """Count the rows of a table."""
        return self.connect().execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
