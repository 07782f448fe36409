# -*- coding: utf-8 -*-
"""
Feature Schemas
===============

Raw features delivered by the model parser carry a name, a free-form
attribute map and a geometry. Before anything is written, the feature
collection of a geometry file is validated once into typed records, so a
missing or malformed attribute surfaces as a FeatureParseError naming the
feature instead of failing half-way through the writes.

Attribute names follow the parser's field names:

    XS           RiverReachName, CutLineProfileMatch
    Banks        RiverReachName, xsName
    Connections  Up Area, Dn Area
    BCLines      Area
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import FeatureParseError
from .geometry import LINE_TYPES, POINT_OR_LINE_TYPES, POLYGON_TYPES, encode_geometry

RIVER_REACH_FIELD = "RiverReachName"
PROFILE_MATCH_FIELD = "CutLineProfileMatch"
XS_NAME_FIELD = "xsName"
UP_AREA_FIELD = "Up Area"
DN_AREA_FIELD = "Dn Area"
AREA_FIELD = "Area"

# GeoPackage layer name -> FeatureCollection attribute
FEATURE_LAYERS = {
    "Rivers": "rivers",
    "XS": "xs",
    "Banks": "banks",
    "StorageAreas": "storage_areas",
    "2DAreas": "two_d_areas",
    "Connections": "connections",
    "BreakLines": "breaklines",
    "BCLines": "bc_lines",
}

_TRUE = {"true", "t", "yes", "y", "1"}
_FALSE = {"false", "f", "no", "n", "0"}


@dataclass
class VectorFeature:
    """One feature as produced by the model parser."""
    name: str
    fields: Dict[str, Any] = field(default_factory=dict)
    geometry: Any = None


@dataclass
class FeatureCollection:
    """Raw features of one geometry file, grouped by feature class."""
    rivers: List[VectorFeature] = field(default_factory=list)
    xs: List[VectorFeature] = field(default_factory=list)
    banks: List[VectorFeature] = field(default_factory=list)
    storage_areas: List[VectorFeature] = field(default_factory=list)
    two_d_areas: List[VectorFeature] = field(default_factory=list)
    connections: List[VectorFeature] = field(default_factory=list)
    breaklines: List[VectorFeature] = field(default_factory=list)
    bc_lines: List[VectorFeature] = field(default_factory=list)


@dataclass(frozen=True)
class River:
    name: str
    river_name: str
    reach_name: str
    geometry: bytes


@dataclass(frozen=True)
class CrossSection:
    name: str
    station: float
    river_reach: str
    profile_match: Optional[bool]
    geometry: bytes

    @property
    def xs_key(self) -> str:
        return cross_section_key(self.river_reach, self.name)


@dataclass(frozen=True)
class Bank:
    name: str
    station: float
    river_reach: str
    xs_name: str
    geometry: bytes

    @property
    def xs_key(self) -> str:
        return cross_section_key(self.river_reach, self.xs_name)


@dataclass(frozen=True)
class Area:
    name: str
    is_2d: bool
    geometry: bytes


@dataclass(frozen=True)
class Connection:
    name: str
    up_area: Optional[str]
    dn_area: Optional[str]
    geometry: bytes


@dataclass(frozen=True)
class Breakline:
    name: str
    geometry: bytes


@dataclass(frozen=True)
class BoundaryLine:
    name: str
    area: str
    geometry: bytes


@dataclass
class GeometryFileFeatures:
    """Validated features of one geometry file."""
    rivers: List[River] = field(default_factory=list)
    cross_sections: List[CrossSection] = field(default_factory=list)
    banks: List[Bank] = field(default_factory=list)
    areas: List[Area] = field(default_factory=list)
    connections: List[Connection] = field(default_factory=list)
    breaklines: List[Breakline] = field(default_factory=list)
    bc_lines: List[BoundaryLine] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {
            "rivers": len(self.rivers),
            "cross_sections": len(self.cross_sections),
            "banks": len(self.banks),
            "areas": len(self.areas),
            "connections": len(self.connections),
            "breaklines": len(self.breaklines),
            "bc_lines": len(self.bc_lines),
        }


def cross_section_key(river_reach: str, xs_name: str) -> str:
    """Lookup key tying banks to the cross-section they sit on."""
    return f"{river_reach}-{xs_name}"


def split_river_reach(label: Any, entity: str = "River", key: Any = None) -> Tuple[str, str]:
    """
    Split a "river, reach" label into trimmed river and reach names.

    Raises
    ------
    FeatureParseError
        If the label is not a string or lacks either component.
    """
    key = label if key is None else key
    if not isinstance(label, str) or "," not in label:
        raise FeatureParseError(
            f"expected 'river, reach' label, got {label!r}", entity, key
        )
    river, reach = (part.strip() for part in label.split(",", 1))
    if not river or not reach:
        raise FeatureParseError(
            f"river/reach label {label!r} has an empty component", entity, key
        )
    return river, reach


def parse_station(name: Any, entity: str) -> float:
    """Parse a feature name as a finite station value."""
    try:
        station = float(str(name).strip())
    except ValueError as e:
        raise FeatureParseError(f"station is not numeric: {e}", entity, name) from e
    if not math.isfinite(station):
        raise FeatureParseError("station is not finite", entity, name)
    return station


def _feature_name(feature: VectorFeature, entity: str) -> str:
    if not isinstance(feature.name, str) or not feature.name.strip():
        raise FeatureParseError("feature has no name", entity, feature.name)
    return feature.name


def _required_str(feature: VectorFeature, attr: str, entity: str) -> str:
    if attr not in feature.fields:
        raise FeatureParseError(f"missing attribute '{attr}'", entity, feature.name)
    value = feature.fields[attr]
    if not isinstance(value, str):
        raise FeatureParseError(
            f"attribute '{attr}' must be text, got {type(value).__name__}",
            entity,
            feature.name,
        )
    return value


def _optional_str(feature: VectorFeature, attr: str, entity: str) -> Optional[str]:
    value = feature.fields.get(attr)
    if value is None:
        return None
    if not isinstance(value, str):
        raise FeatureParseError(
            f"attribute '{attr}' must be text, got {type(value).__name__}",
            entity,
            feature.name,
        )
    return value


def _optional_flag(feature: VectorFeature, attr: str, entity: str) -> Optional[bool]:
    value = feature.fields.get(attr)
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
        return value.strip().lower() in _TRUE
    raise FeatureParseError(
        f"attribute '{attr}' is not a flag: {value!r}", entity, feature.name
    )


def validate_rivers(features: List[VectorFeature]) -> List[River]:
    rivers = []
    for f in features:
        name = _feature_name(f, "River")
        river_name, reach_name = split_river_reach(name, "River")
        rivers.append(
            River(
                name=name,
                river_name=river_name,
                reach_name=reach_name,
                geometry=encode_geometry(f.geometry, LINE_TYPES, "River", name),
            )
        )
    return rivers


def validate_cross_sections(features: List[VectorFeature]) -> List[CrossSection]:
    sections = []
    for f in features:
        name = _feature_name(f, "CrossSection")
        station = parse_station(name, "CrossSection")
        river_reach = _required_str(f, RIVER_REACH_FIELD, "CrossSection")
        split_river_reach(river_reach, "CrossSection", name)
        sections.append(
            CrossSection(
                name=name,
                station=station,
                river_reach=river_reach,
                profile_match=_optional_flag(f, PROFILE_MATCH_FIELD, "CrossSection"),
                geometry=encode_geometry(f.geometry, LINE_TYPES, "CrossSection", name),
            )
        )
    return sections


def validate_banks(features: List[VectorFeature]) -> List[Bank]:
    banks = []
    for f in features:
        name = _feature_name(f, "Bank")
        banks.append(
            Bank(
                name=name,
                station=parse_station(name, "Bank"),
                river_reach=_required_str(f, RIVER_REACH_FIELD, "Bank"),
                xs_name=_required_str(f, XS_NAME_FIELD, "Bank"),
                geometry=encode_geometry(f.geometry, POINT_OR_LINE_TYPES, "Bank", name),
            )
        )
    return banks


def validate_areas(features: List[VectorFeature], is_2d: bool) -> List[Area]:
    entity = "2DArea" if is_2d else "StorageArea"
    return [
        Area(
            name=_feature_name(f, entity),
            is_2d=is_2d,
            geometry=encode_geometry(f.geometry, POLYGON_TYPES, entity, f.name),
        )
        for f in features
    ]


def validate_connections(features: List[VectorFeature]) -> List[Connection]:
    return [
        Connection(
            name=_feature_name(f, "Connection"),
            up_area=_optional_str(f, UP_AREA_FIELD, "Connection"),
            dn_area=_optional_str(f, DN_AREA_FIELD, "Connection"),
            geometry=encode_geometry(f.geometry, LINE_TYPES, "Connection", f.name),
        )
        for f in features
    ]


def validate_breaklines(features: List[VectorFeature]) -> List[Breakline]:
    return [
        Breakline(
            name=_feature_name(f, "Breakline"),
            geometry=encode_geometry(f.geometry, LINE_TYPES, "Breakline", f.name),
        )
        for f in features
    ]


def validate_bc_lines(features: List[VectorFeature]) -> List[BoundaryLine]:
    return [
        BoundaryLine(
            name=_feature_name(f, "BoundaryLine"),
            area=_required_str(f, AREA_FIELD, "BoundaryLine"),
            geometry=encode_geometry(f.geometry, LINE_TYPES, "BoundaryLine", f.name),
        )
        for f in features
    ]


def validate_feature_collection(collection: FeatureCollection) -> GeometryFileFeatures:
    """
    Validate the raw features of one geometry file into typed records.

    Storage areas precede 2-D areas in ``areas``; both share one name space.

    Raises
    ------
    FeatureParseError
        On the first feature that fails validation.
    """
    return GeometryFileFeatures(
        rivers=validate_rivers(collection.rivers),
        cross_sections=validate_cross_sections(collection.xs),
        banks=validate_banks(collection.banks),
        areas=(
            validate_areas(collection.storage_areas, is_2d=False)
            + validate_areas(collection.two_d_areas, is_2d=True)
        ),
        connections=validate_connections(collection.connections),
        breaklines=validate_breaklines(collection.breaklines),
        bc_lines=validate_bc_lines(collection.bc_lines),
    )
