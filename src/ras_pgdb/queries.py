# -*- coding: utf-8 -*-
"""
SQL for the model geometry tables.

Upserts are declared as UpsertStatement records (table, columns, natural
key, returned identifier, geometry column) and rendered per backend, so the
conflict target of every table sits next to its column list.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .backends.base import TransactionContext


@dataclass(frozen=True)
class UpsertStatement:
    """Insert-or-update of one entity keyed by its natural key."""
    entity: str
    table: str
    columns: List[str]
    key_columns: List[str]
    returning: Optional[str] = None
    geometry_column: Optional[str] = None

    def render(self, tx: TransactionContext, srid: int) -> str:
        expressions = {}
        if self.geometry_column:
            expressions[self.geometry_column] = tx.geometry_param(srid)
        return tx.backend.format_upsert(
            self.table,
            self.columns,
            self.key_columns,
            returning=self.returning,
            expressions=expressions,
        )


GET_COLLECTION_IDS_SQL = """
    SELECT collection_id
    FROM inventory.collections
    WHERE starts_with(CAST(? AS VARCHAR), s3_prefix)
    ORDER BY collection_id
"""

GET_MODEL_ID_SQL = """
    SELECT model_inventory_id
    FROM models.model
    WHERE s3_key = ?
"""

UPSERT_MODEL = UpsertStatement(
    entity="Model",
    table="models.model",
    columns=["collection_id", "name", "type", "s3_key", "model_metadata", "etl_metadata"],
    key_columns=["s3_key"],
    returning="model_inventory_id",
)

UPSERT_GEOMETRY_FILE = UpsertStatement(
    entity="GeometryFile",
    table="models.ras_geometry_files",
    columns=[
        "model_inventory_id",
        "geometry_file_path",
        "geometry_file_extension",
        "geometry_title",
        "geometry_program_version",
        "geometry_description",
    ],
    key_columns=["geometry_file_path"],
    returning="geometry_file_id",
)

UPSERT_RIVER = UpsertStatement(
    entity="River",
    table="models.ras_rivers",
    columns=["geometry_file_id", "river_name", "reach_name", "geom"],
    key_columns=["geometry_file_id", "river_name", "reach_name"],
    returning="river_id",
    geometry_column="geom",
)

UPSERT_CROSS_SECTION = UpsertStatement(
    entity="CrossSection",
    table="models.ras_xs",
    columns=["river_id", "xs_station", "cut_line_profile_match", "geom"],
    key_columns=["river_id", "xs_station"],
    returning="xs_id",
    geometry_column="geom",
)

UPSERT_BANK = UpsertStatement(
    entity="Bank",
    table="models.ras_banks",
    columns=["xs_id", "bank_station", "geom"],
    key_columns=["xs_id", "bank_station"],
    geometry_column="geom",
)

UPSERT_AREA = UpsertStatement(
    entity="Area",
    table="models.ras_areas",
    columns=["geometry_file_id", "area_name", "is2d", "geom"],
    key_columns=["geometry_file_id", "area_name"],
    returning="area_id",
    geometry_column="geom",
)

UPSERT_CONNECTION = UpsertStatement(
    entity="Connection",
    table="models.ras_connections",
    columns=["geometry_file_id", "connection_name", "up_area", "dn_area", "geom"],
    key_columns=["geometry_file_id", "connection_name"],
    geometry_column="geom",
)

UPSERT_BREAKLINE = UpsertStatement(
    entity="Breakline",
    table="models.ras_breaklines",
    columns=["geometry_file_id", "breakline_name", "geom"],
    key_columns=["geometry_file_id", "breakline_name"],
    geometry_column="geom",
)

UPSERT_BC_LINE = UpsertStatement(
    entity="BoundaryLine",
    table="models.ras_bclines",
    columns=["area_id", "bcline_name", "geom"],
    key_columns=["area_id", "bcline_name"],
    geometry_column="geom",
)

FEATURE_TABLES = [
    "models.ras_rivers",
    "models.ras_xs",
    "models.ras_banks",
    "models.ras_areas",
    "models.ras_connections",
    "models.ras_breaklines",
    "models.ras_bclines",
]

VACUUM_STATEMENTS = [
    "VACUUM ANALYZE models.model;",
    "VACUUM ANALYZE models.ras_geometry_files;",
    "VACUUM ANALYZE models.ras_rivers;",
    "VACUUM ANALYZE models.ras_xs;",
    "VACUUM ANALYZE models.ras_banks;",
    "VACUUM ANALYZE models.ras_areas;",
    "VACUUM ANALYZE models.ras_breaklines;",
    "VACUUM ANALYZE models.ras_bclines;",
    "VACUUM ANALYZE models.ras_connections;",
]

REFRESH_VIEWS_STATEMENTS = [
    "REFRESH MATERIALIZED VIEW models.ras_projects_metadata;",
    "REFRESH MATERIALIZED VIEW models.ras_plan_metadata;",
    "REFRESH MATERIALIZED VIEW models.ras_flow_metadata;",
    "REFRESH MATERIALIZED VIEW models.ras_geometry_metadata;",
    "REFRESH MATERIALIZED VIEW models.ras_rivers_metadata;",
    "REFRESH MATERIALIZED VIEW models.ras_convexhull;",
]
