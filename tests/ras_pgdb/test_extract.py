# -*- coding: utf-8 -*-
"""Tests for the GeoPackage-backed model loader."""

import json

import geopandas as gpd
import pytest
from shapely import wkt

pytestmark = pytest.mark.integration

from conftest import (
    AREA_POLYGON_2D,
    BANK_POINT,
    BC_LINE,
    GEOMETRY_PATH,
    RIVER_LINE,
    SOURCE_PATH,
    XS_LINE,
    table_counts,
)

from ras_pgdb.errors import RasPgdbError
from ras_pgdb.extract import ExtractedRasModel, load_extracted_model, manifest_path
from ras_pgdb.pipeline import IngestionPipeline
from ras_pgdb.queries import FEATURE_TABLES


def write_layer(path, layer, rows, crs="EPSG:4326"):
    gdf = gpd.GeoDataFrame(
        [{k: v for k, v in r.items() if k != "geometry"} for r in rows],
        geometry=[wkt.loads(r["geometry"]) for r in rows],
        crs=crs,
    )
    gdf.to_file(path, layer=layer, driver="GPKG")


@pytest.fixture
def extracted_model(tmp_path):
    """Manifest plus one GeoPackage for the Muncie model under tmp_path."""
    model_dir = tmp_path / "models" / "ras" / "Muncie"
    model_dir.mkdir(parents=True)

    manifest = {
        "type": "RAS",
        "crs": "EPSG:4326",
        "attributes": {"title": "Muncie", "units": "English"},
        "geom_files": [
            {
                "path": GEOMETRY_PATH,
                "file_ext": ".g01",
                "title": "Muncie Geometry",
                "program_version": "5.07",
                "description": "",
            }
        ],
    }
    (tmp_path / manifest_path(SOURCE_PATH)).write_text(json.dumps(manifest))

    gpkg = tmp_path / (GEOMETRY_PATH + ".gpkg")
    write_layer(gpkg, "Rivers", [{"name": "Main River, Reach 1", "geometry": RIVER_LINE}])
    write_layer(gpkg, "XS", [{
        "name": "100.0",
        "RiverReachName": "Main River, Reach 1",
        "CutLineProfileMatch": True,
        "geometry": XS_LINE,
    }])
    write_layer(gpkg, "Banks", [{
        "name": "50.0",
        "RiverReachName": "Main River, Reach 1",
        "xsName": "100.0",
        "geometry": BANK_POINT,
    }])
    write_layer(gpkg, "2DAreas", [{"name": "Floodplain", "geometry": AREA_POLYGON_2D}])
    write_layer(gpkg, "BCLines", [{"name": "Inflow", "Area": "Floodplain", "geometry": BC_LINE}])
    return tmp_path


class TestManifest:
    """Manifest parsing."""

    def test_manifest_path(self):
        assert manifest_path(SOURCE_PATH) == "models/ras/Muncie/Muncie.extract.json"

    def test_metadata(self, extracted_model, file_store):
        model = load_extracted_model(SOURCE_PATH, file_store)
        assert model.type == "RAS"
        assert [g.path for g in model.metadata.geom_files] == [GEOMETRY_PATH]
        assert model.metadata.attributes["units"] == "English"

    def test_geospatial_from_geopackage_presence(self, extracted_model, file_store):
        assert ExtractedRasModel(SOURCE_PATH, file_store).is_geospatial() is True
        (extracted_model / (GEOMETRY_PATH + ".gpkg")).unlink()
        assert ExtractedRasModel(SOURCE_PATH, file_store).is_geospatial() is False

    def test_missing_manifest(self, file_store):
        with pytest.raises(RasPgdbError, match="manifest not found"):
            ExtractedRasModel(SOURCE_PATH, file_store)

    def test_invalid_manifest(self, tmp_path, file_store):
        path = tmp_path / manifest_path(SOURCE_PATH)
        path.parent.mkdir(parents=True)
        path.write_text("{not json")
        with pytest.raises(RasPgdbError, match="invalid extract manifest"):
            ExtractedRasModel(SOURCE_PATH, file_store)


class TestGeospatialData:
    """Feature collections read from GeoPackage layers."""

    def test_layers_read(self, extracted_model, file_store):
        model = ExtractedRasModel(SOURCE_PATH, file_store)
        data = model.geospatial_data("EPSG:4326")
        collection = data.features["Muncie.g01"]

        assert [f.name for f in collection.rivers] == ["Main River, Reach 1"]
        assert collection.xs[0].fields["RiverReachName"] == "Main River, Reach 1"
        assert collection.banks[0].fields["xsName"] == "100.0"
        assert collection.bc_lines[0].fields["Area"] == "Floodplain"
        assert collection.storage_areas == []
        assert collection.connections == []

    def test_reprojection(self, extracted_model, file_store):
        model = ExtractedRasModel(SOURCE_PATH, file_store)
        collection = model.geospatial_data("EPSG:3857").features["Muncie.g01"]
        x, y = collection.rivers[0].geometry.coords[-1]
        # 20 degrees east is about 2226 km in web mercator
        assert x == pytest.approx(2226389.8, rel=1e-4)
        assert y > 0


@pytest.mark.db
class TestExtractedModelIngestion:
    """Extracted model loaded end to end into DuckDB."""

    def test_ingest(self, seeded_backend, extracted_model, file_store):
        pipeline = IngestionPipeline(seeded_backend, load_extracted_model, file_store)
        pipeline.ingest_model_metadata(SOURCE_PATH)
        report = pipeline.ingest_model_geometry(SOURCE_PATH)

        assert report.geometry_files[GEOMETRY_PATH]["bc_lines"] == 1
        counts = table_counts(seeded_backend, FEATURE_TABLES)
        assert counts["models.ras_rivers"] == 1
        assert counts["models.ras_banks"] == 1
        assert counts["models.ras_areas"] == 1
        assert counts["models.ras_connections"] == 0
