# -*- coding: utf-8 -*-
"""
Centralized pytest fixtures for RAS geometry ingestion tests.

Provides:
- In-memory DuckDB backend with the model schema and one seeded collection
- A parsed-model stand-in built from plain feature lists
- The "Main River" feature collection used across the pipeline tests
"""

import os
import sys
from pathlib import Path

import pytest

# Add src to path
src_dir = Path(__file__).parent.parent.parent / "src"
sys.path.insert(0, str(src_dir))

# Import after path setup
from ras_pgdb.backends import DuckDBBackend, PostgresBackend, PostgresConnectionError
from ras_pgdb.features import FeatureCollection, VectorFeature
from ras_pgdb.model import GeometryFileInfo, GeospatialData, LocalFileStore, ModelMetadata
from ras_pgdb.schema import create_schema


# ==============================================================================
# Configuration
# ==============================================================================

COLLECTION_PREFIX = "models/ras/"
SOURCE_PATH = "models/ras/Muncie/Muncie.prj"
GEOMETRY_PATH = "models/ras/Muncie/Muncie.g01"

POSTGRES_URL = os.environ.get("RAS_PGDB_TEST_POSTGRES_URL")

RIVER_LINE = "LINESTRING (0 0, 10 0, 20 5)"
XS_LINE = "LINESTRING (5 -5, 5 5)"
BANK_POINT = "POINT (5 2)"
AREA_POLYGON = "POLYGON ((30 0, 40 0, 40 10, 30 10, 30 0))"
AREA_POLYGON_2D = "POLYGON ((50 0, 60 0, 60 10, 50 10, 50 0))"
CONNECTION_LINE = "LINESTRING (40 5, 50 5)"
BREAKLINE = "LINESTRING (52 1, 58 9)"
BC_LINE = "LINESTRING (50 0, 50 10)"


# ==============================================================================
# Parsed model stand-in
# ==============================================================================

class FakeRasModel:
    """Parsed model assembled from in-memory feature collections."""

    def __init__(self, geom_files=None, features=None, geospatial=True, model_type="RAS"):
        self.type = model_type
        self.metadata = ModelMetadata(
            geom_files=list(geom_files or []),
            attributes={"title": "Muncie", "units": "English"},
        )
        self._features = dict(features or {})
        self._geospatial = geospatial
        self.requested_crs = None

    def is_geospatial(self):
        return self._geospatial

    def geospatial_data(self, destination_crs):
        self.requested_crs = destination_crs
        return GeospatialData(features=self._features)


class FakeLoader:
    """Model loader returning a fixed parsed model and recording calls."""

    def __init__(self, model):
        self.model = model
        self.calls = []

    def __call__(self, source_path, file_store):
        self.calls.append(source_path)
        return self.model


def geometry_file(path=GEOMETRY_PATH, program_version="5.07"):
    return GeometryFileInfo(
        path=path,
        file_ext=Path(path).suffix,
        title="Muncie Geometry",
        program_version=program_version,
        description="",
    )


def main_river_collection(**overrides):
    """
    One river "Main River, Reach 1" with cross-section "100.0" and bank
    "50.0", a storage area, a 2-D area, a connection, a breakline and a
    boundary-condition line on the 2-D area.
    """
    collection = FeatureCollection(
        rivers=[VectorFeature("Main River, Reach 1", {}, RIVER_LINE)],
        xs=[
            VectorFeature(
                "100.0",
                {"RiverReachName": "Main River, Reach 1", "CutLineProfileMatch": True},
                XS_LINE,
            )
        ],
        banks=[
            VectorFeature(
                "50.0",
                {"RiverReachName": "Main River, Reach 1", "xsName": "100.0"},
                BANK_POINT,
            )
        ],
        storage_areas=[VectorFeature("Pond", {}, AREA_POLYGON)],
        two_d_areas=[VectorFeature("Floodplain", {}, AREA_POLYGON_2D)],
        connections=[
            VectorFeature("Weir 1", {"Up Area": "Pond", "Dn Area": "Floodplain"}, CONNECTION_LINE)
        ],
        breaklines=[VectorFeature("Levee", {}, BREAKLINE)],
        bc_lines=[VectorFeature("Inflow", {"Area": "Floodplain"}, BC_LINE)],
    )
    for attr, value in overrides.items():
        setattr(collection, attr, value)
    return collection


class UnreachablePostgresBackend(PostgresBackend):
    """PostgreSQL backend whose pool never comes up."""

    def __init__(self):
        super().__init__("postgresql://u:p@127.0.0.1:1/mcat")

    def _init_pool(self):
        raise PostgresConnectionError("Failed to connect after 3 attempts. Last error: refused")


# ==============================================================================
# Database fixtures
# ==============================================================================

@pytest.fixture
def backend():
    """In-memory DuckDB backend with the model schema created."""
    backend = DuckDBBackend(":memory:", spatial=False)
    create_schema(backend)
    yield backend
    backend.close()


@pytest.fixture
def seeded_backend(backend):
    """Backend with a single collection covering every test model."""
    backend.execute(
        "INSERT INTO inventory.collections (s3_prefix) VALUES (?)", [COLLECTION_PREFIX]
    )
    return backend


@pytest.fixture
def collection_id(seeded_backend):
    return seeded_backend.connect().execute(
        "SELECT collection_id FROM inventory.collections WHERE s3_prefix = ?",
        [COLLECTION_PREFIX],
    ).fetchone()[0]


@pytest.fixture
def file_store(tmp_path):
    return LocalFileStore(str(tmp_path))


@pytest.fixture
def main_river_model():
    """Parsed model with one geometry file holding the Main River features."""
    gf = geometry_file()
    return FakeRasModel(geom_files=[gf], features={gf.file_name: main_river_collection()})


def table_counts(backend, tables):
    """Row count per table."""
    return {table: backend.count_rows(table) for table in tables}
