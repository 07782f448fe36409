# -*- coding: utf-8 -*-
"""
Extracted Model Loader
======================

A model parser for models whose files have already been extracted to
GeoPackage. For a model source path ``models/ras/Muncie/Muncie.prj`` the
file store holds:

    models/ras/Muncie/Muncie.extract.json   manifest (type, metadata, geometry files)
    models/ras/Muncie/Muncie.g01.gpkg       one GeoPackage per geometry file

Manifest layout:

    {
        "type": "RAS",
        "geospatial": true,
        "crs": "EPSG:2277",
        "attributes": {"title": "Muncie", "units": "English"},
        "geom_files": [
            {"path": "models/ras/Muncie/Muncie.g01", "file_ext": ".g01",
             "title": "Muncie Geometry", "program_version": "5.07",
             "description": ""}
        ]
    }

Each GeoPackage may contain the layers Rivers, XS, Banks, StorageAreas,
2DAreas, Connections, BreakLines and BCLines. Every layer has a ``name``
column; the remaining attribute columns become the feature's fields.
"""

from __future__ import annotations

import json
import logging
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional

import geopandas as gpd
import pandas as pd

from .errors import RasPgdbError
from .features import FEATURE_LAYERS, FeatureCollection, VectorFeature
from .model import FileStore, GeometryFileInfo, GeospatialData, ModelMetadata

logger = logging.getLogger(__name__)

MANIFEST_SUFFIX = ".extract.json"
GEOPACKAGE_SUFFIX = ".gpkg"
NAME_COLUMN = "name"


def manifest_path(source_path: str) -> str:
    path = PurePosixPath(source_path)
    return str(path.with_name(path.stem + MANIFEST_SUFFIX))


def geopackage_path(geometry_file: GeometryFileInfo) -> str:
    return geometry_file.path + GEOPACKAGE_SUFFIX


def _native(value: Any) -> Any:
    if value is None:
        return None
    if not isinstance(value, (list, dict)) and pd.isna(value):
        return None
    if hasattr(value, "item"):
        return value.item()
    return value


def read_layer(
    gpkg: Any,
    layer: str,
    source_crs: Optional[str],
    destination_crs: str,
) -> List[VectorFeature]:
    """Read one GeoPackage layer as features in the destination CRS."""
    gdf = gpd.read_file(gpkg, layer=layer)
    if gdf.crs is None and source_crs:
        gdf = gdf.set_crs(source_crs)
    if gdf.crs is not None:
        gdf = gdf.to_crs(destination_crs)
    else:
        logger.warning(f"Layer {layer} has no CRS; geometries stored unprojected")

    if NAME_COLUMN not in gdf.columns:
        raise RasPgdbError(f"layer has no '{NAME_COLUMN}' column", "Layer", layer)

    attribute_columns = [
        c for c in gdf.columns if c not in (NAME_COLUMN, gdf.geometry.name)
    ]
    features = []
    for _, row in gdf.iterrows():
        features.append(
            VectorFeature(
                name=_native(row[NAME_COLUMN]),
                fields={c: _native(row[c]) for c in attribute_columns},
                geometry=row[gdf.geometry.name],
            )
        )
    return features


class ExtractedRasModel:
    """
    Parsed model backed by an extract manifest and GeoPackages.

    Parameters
    ----------
    source_path : str
        Path of the model's project file within the file store.
    file_store : FileStore
        Store holding the manifest and GeoPackages.
    """

    def __init__(self, source_path: str, file_store: FileStore):
        self.source_path = source_path
        self.file_store = file_store

        path = manifest_path(source_path)
        if not file_store.exists(path):
            raise RasPgdbError("extract manifest not found", "Model", path)
        try:
            manifest = json.loads(file_store.read_bytes(path))
        except ValueError as e:
            raise RasPgdbError(f"invalid extract manifest: {e}", "Model", path) from e

        self.type: str = manifest.get("type", "RAS")
        self.source_crs: Optional[str] = manifest.get("crs")
        self._geospatial: Optional[bool] = manifest.get("geospatial")
        self.metadata = ModelMetadata(
            geom_files=[GeometryFileInfo(**g) for g in manifest.get("geom_files", [])],
            attributes=manifest.get("attributes", {}),
        )

    def is_geospatial(self) -> bool:
        if self._geospatial is not None:
            return bool(self._geospatial)
        return any(
            self.file_store.exists(geopackage_path(g)) for g in self.metadata.geom_files
        )

    def geospatial_data(self, destination_crs: str) -> GeospatialData:
        data: Dict[str, FeatureCollection] = {}
        for geometry_file in self.metadata.geom_files:
            gpkg_path = geopackage_path(geometry_file)
            if not self.file_store.exists(gpkg_path):
                logger.warning(f"No GeoPackage for {geometry_file.path}")
                continue

            local = self.file_store.local_path(gpkg_path)
            layers = set(gpd.list_layers(local)["name"])
            collection = FeatureCollection()
            for layer, attr in FEATURE_LAYERS.items():
                if layer in layers:
                    setattr(
                        collection,
                        attr,
                        read_layer(local, layer, self.source_crs, destination_crs),
                    )
            data[geometry_file.file_name] = collection
        return GeospatialData(features=data)


def load_extracted_model(source_path: str, file_store: FileStore) -> ExtractedRasModel:
    """Model loader for extracted models."""
    return ExtractedRasModel(source_path, file_store)
