# -*- coding: utf-8 -*-
"""
Ingestion configuration read from the environment.

Environment variables:
    RAS_PGDB_DATABASE_URL     PostgreSQL URL or DuckDB path (default ':memory:')
    RAS_PGDB_S3_BUCKET        bucket collection prefixes are matched under
    RAS_PGDB_DESTINATION_CRS  CRS requested from the model parser (default EPSG:4326)
    RAS_PGDB_SRID             SRID stored geometries are tagged with (default 4326)
    RAS_PGDB_FILE_STORE_ROOT  root directory of the local file store (default '.')
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_SRID = 4326
DEFAULT_DESTINATION_CRS = "EPSG:4326"


@dataclass(frozen=True)
class IngestConfig:
    database_url: str = ":memory:"
    s3_bucket: str = ""
    destination_crs: str = DEFAULT_DESTINATION_CRS
    srid: int = DEFAULT_SRID
    file_store_root: str = "."

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "IngestConfig":
        env = os.environ if environ is None else environ

        srid_raw = env.get("RAS_PGDB_SRID", str(DEFAULT_SRID))
        try:
            srid = int(srid_raw)
        except ValueError:
            raise ValueError(f"RAS_PGDB_SRID must be an integer, got {srid_raw!r}")

        return cls(
            database_url=env.get("RAS_PGDB_DATABASE_URL", ":memory:"),
            s3_bucket=env.get("RAS_PGDB_S3_BUCKET", ""),
            destination_crs=env.get("RAS_PGDB_DESTINATION_CRS", DEFAULT_DESTINATION_CRS),
            srid=srid,
            file_store_root=env.get("RAS_PGDB_FILE_STORE_ROOT", "."),
        )

    def storage_uri(self, source_path: str) -> str:
        """URI of a model file as recorded in collection prefixes."""
        if not self.s3_bucket or source_path.startswith("s3://"):
            return source_path
        return f"s3://{self.s3_bucket}/{source_path.lstrip('/')}"
