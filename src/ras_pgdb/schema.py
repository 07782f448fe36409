# -*- coding: utf-8 -*-
"""
Model Geometry Schema
=====================

Table definitions for the inventory and model geometry tables.

PostgreSQL gets PostGIS geometry columns and declared foreign keys.
DuckDB stores geometry as WKB blobs and leaves foreign keys out: DuckDB
rewrites referenced rows on upsert, which declared foreign keys reject, so
referential integrity there rests on the ingestion pipeline's lookups.

create_schema() bootstraps an empty database (local files, tests); it does
not migrate existing databases.
"""

from __future__ import annotations

import logging
from typing import List

from .backends.base import BackendType, BaseBackend
from .config import DEFAULT_SRID
from .errors import RasPgdbError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"

# (table, surrogate key column, body) in dependency order
_TABLES = [
    (
        "inventory.collections",
        "collection_id",
        """
            s3_prefix VARCHAR NOT NULL UNIQUE
        """,
    ),
    (
        "models.model",
        "model_inventory_id",
        """
            collection_id INTEGER NOT NULL{ref:inventory.collections(collection_id)},
            name VARCHAR NOT NULL,
            type VARCHAR,
            s3_key VARCHAR NOT NULL UNIQUE,
            model_metadata {json},
            etl_metadata {json}
        """,
    ),
    (
        "models.ras_geometry_files",
        "geometry_file_id",
        """
            model_inventory_id INTEGER NOT NULL{ref:models.model(model_inventory_id)},
            geometry_file_path VARCHAR NOT NULL UNIQUE,
            geometry_file_extension VARCHAR,
            geometry_title VARCHAR,
            geometry_program_version NUMERIC,
            geometry_description VARCHAR
        """,
    ),
    (
        "models.ras_rivers",
        "river_id",
        """
            geometry_file_id INTEGER NOT NULL{ref:models.ras_geometry_files(geometry_file_id)},
            river_name VARCHAR NOT NULL,
            reach_name VARCHAR NOT NULL,
            geom {geometry},
            UNIQUE (geometry_file_id, river_name, reach_name)
        """,
    ),
    (
        "models.ras_xs",
        "xs_id",
        """
            river_id INTEGER NOT NULL{ref:models.ras_rivers(river_id)},
            xs_station DOUBLE PRECISION NOT NULL,
            cut_line_profile_match BOOLEAN,
            geom {geometry},
            UNIQUE (river_id, xs_station)
        """,
    ),
    (
        "models.ras_banks",
        "bank_id",
        """
            xs_id INTEGER NOT NULL{ref:models.ras_xs(xs_id)},
            bank_station DOUBLE PRECISION NOT NULL,
            geom {geometry},
            UNIQUE (xs_id, bank_station)
        """,
    ),
    (
        "models.ras_areas",
        "area_id",
        """
            geometry_file_id INTEGER NOT NULL{ref:models.ras_geometry_files(geometry_file_id)},
            area_name VARCHAR NOT NULL,
            is2d BOOLEAN NOT NULL,
            geom {geometry},
            UNIQUE (geometry_file_id, area_name)
        """,
    ),
    (
        "models.ras_connections",
        "connection_id",
        """
            geometry_file_id INTEGER NOT NULL{ref:models.ras_geometry_files(geometry_file_id)},
            connection_name VARCHAR NOT NULL,
            up_area VARCHAR,
            dn_area VARCHAR,
            geom {geometry},
            UNIQUE (geometry_file_id, connection_name)
        """,
    ),
    (
        "models.ras_breaklines",
        "breakline_id",
        """
            geometry_file_id INTEGER NOT NULL{ref:models.ras_geometry_files(geometry_file_id)},
            breakline_name VARCHAR NOT NULL,
            geom {geometry},
            UNIQUE (geometry_file_id, breakline_name)
        """,
    ),
    (
        "models.ras_bclines",
        "bcline_id",
        """
            area_id INTEGER NOT NULL{ref:models.ras_areas(area_id)},
            bcline_name VARCHAR NOT NULL,
            geom {geometry},
            UNIQUE (area_id, bcline_name)
        """,
    ),
]


def _render_body(body: str, backend_type: BackendType, srid: int) -> str:
    postgres = backend_type == BackendType.POSTGRES
    body = body.replace("{json}", "JSONB" if postgres else "VARCHAR")
    body = body.replace(
        "{geometry}", f"geometry(Geometry, {srid})" if postgres else "BLOB"
    )
    while "{ref:" in body:
        start = body.index("{ref:")
        end = body.index("}", start)
        target = body[start + len("{ref:"):end]
        body = body[:start] + (f" REFERENCES {target}" if postgres else "") + body[end + 1:]
    return body


def get_schema_sql(backend_type: BackendType, srid: int = DEFAULT_SRID) -> List[str]:
    """
    Return the DDL statements creating the schema for a backend.

    Parameters
    ----------
    backend_type : BackendType
        Target backend.
    srid : int
        SRID of the PostGIS geometry columns.

    Returns
    -------
    list of str
        Statements in execution order.
    """
    postgres = backend_type == BackendType.POSTGRES
    statements = [
        "CREATE SCHEMA IF NOT EXISTS inventory",
        "CREATE SCHEMA IF NOT EXISTS models",
    ]
    for table, id_column, body in _TABLES:
        if postgres:
            id_def = f"{id_column} SERIAL PRIMARY KEY"
        else:
            sequence = f"{table}_{id_column}_seq"
            statements.append(f"CREATE SEQUENCE IF NOT EXISTS {sequence}")
            id_def = f"{id_column} INTEGER PRIMARY KEY DEFAULT nextval('{sequence}')"
        statements.append(
            f"CREATE TABLE IF NOT EXISTS {table} (\n"
            f"            {id_def},{_render_body(body, backend_type, srid)})"
        )
    return statements


def create_schema(backend: BaseBackend, srid: int = DEFAULT_SRID) -> None:
    """
    Create the inventory and model geometry tables in one transaction.

    Raises
    ------
    RasPgdbError
        If any DDL statement is rejected; nothing is created.
    """
    with backend.transaction() as tx:
        for statement in get_schema_sql(backend.backend_type, srid):
            try:
                tx.execute(statement)
            except tx.driver_errors as e:
                raise RasPgdbError(f"DDL rejected: {e}", "Schema", SCHEMA_VERSION) from e
        tx.commit()
    logger.info(f"Created schema version {SCHEMA_VERSION} on {backend.backend_type.value}")
