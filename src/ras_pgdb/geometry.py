# -*- coding: utf-8 -*-
"""
Geometry encoding for stored features.

Feature geometries arrive from the model parser as WKB bytes, WKT text,
GeoJSON-like mappings or shapely geometries. Every upsert binds them as
2-D WKB; the backend wraps the parameter so the store tags it with the
configured SRID.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from shapely import wkb as shapely_wkb
from shapely import wkt as shapely_wkt
from shapely.errors import ShapelyError
from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry

from .errors import FeatureParseError

LINE_TYPES = ("LineString", "MultiLineString")
POINT_OR_LINE_TYPES = ("Point", "MultiPoint", "LineString", "MultiLineString")
POLYGON_TYPES = ("Polygon", "MultiPolygon")


def to_shapely(geometry: Any) -> BaseGeometry:
    """Convert a supported geometry representation to a shapely geometry."""
    if isinstance(geometry, BaseGeometry):
        return geometry
    if isinstance(geometry, (bytes, bytearray, memoryview)):
        return shapely_wkb.loads(bytes(geometry))
    if isinstance(geometry, str):
        text = geometry.strip()
        # Hex-encoded WKB starts with the byte-order marker 00 or 01
        if text[:2] in ("00", "01") and all(c in "0123456789abcdefABCDEF" for c in text):
            return shapely_wkb.loads(text, hex=True)
        return shapely_wkt.loads(text)
    if hasattr(geometry, "__geo_interface__"):
        return shape(geometry.__geo_interface__)
    if isinstance(geometry, dict):
        return shape(geometry)
    raise TypeError(f"unsupported geometry representation: {type(geometry).__name__}")


def encode_geometry(
    geometry: Any,
    expected_types: Optional[Iterable[str]] = None,
    entity: Optional[str] = None,
    key: Any = None,
) -> bytes:
    """
    Encode a feature geometry as 2-D WKB.

    Parameters
    ----------
    geometry : any
        WKB bytes, (hex) WKB or WKT text, GeoJSON mapping or shapely geometry.
    expected_types : iterable of str, optional
        Geometry type names the feature class accepts.
    entity, key : optional
        Feature class and name used in error messages.

    Returns
    -------
    bytes
        WKB encoding without SRID.

    Raises
    ------
    FeatureParseError
        If the geometry is missing, unreadable or of an unexpected type.
    """
    if geometry is None:
        raise FeatureParseError("feature has no geometry", entity, key)

    try:
        geom = to_shapely(geometry)
    except (ShapelyError, TypeError, ValueError, KeyError) as e:
        raise FeatureParseError(f"unreadable geometry: {e}", entity, key) from e

    if expected_types is not None and geom.geom_type not in tuple(expected_types):
        raise FeatureParseError(
            f"expected {'/'.join(expected_types)} geometry, got {geom.geom_type}",
            entity,
            key,
        )

    return shapely_wkb.dumps(geom, output_dimension=2)
