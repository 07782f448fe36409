# -*- coding: utf-8 -*-
"""
Post-ingestion maintenance: refresh the metadata materialized views and
vacuum the model tables. PostgreSQL only.
"""

from __future__ import annotations

import logging
from typing import List

from .backends.base import BackendType, BaseBackend
from .errors import RasPgdbError
from .queries import REFRESH_VIEWS_STATEMENTS, VACUUM_STATEMENTS

logger = logging.getLogger(__name__)


def _require_postgres(backend: BaseBackend, action: str) -> None:
    if backend.backend_type != BackendType.POSTGRES:
        raise ValueError(f"{action} requires the PostgreSQL backend")


def refresh_views(backend: BaseBackend) -> List[str]:
    """Refresh every metadata materialized view in one transaction."""
    _require_postgres(backend, "refresh")
    with backend.transaction() as tx:
        for statement in REFRESH_VIEWS_STATEMENTS:
            try:
                tx.execute(statement)
            except tx.driver_errors as e:
                raise RasPgdbError(f"refresh failed: {e}", "View", statement) from e
        tx.commit()
    logger.info(f"Refreshed {len(REFRESH_VIEWS_STATEMENTS)} materialized views")
    return list(REFRESH_VIEWS_STATEMENTS)


def vacuum_tables(backend: BaseBackend) -> List[str]:
    """Run VACUUM ANALYZE on every model table (outside any transaction)."""
    _require_postgres(backend, "vacuum")
    for statement in VACUUM_STATEMENTS:
        try:
            backend.execute_autocommit(statement)
        except backend.connection_errors as e:
            raise RasPgdbError(f"vacuum failed: {e}", "Table", statement) from e
    logger.info(f"Vacuumed {len(VACUUM_STATEMENTS)} tables")
    return list(VACUUM_STATEMENTS)
