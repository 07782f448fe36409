# -*- coding: utf-8 -*-
"""
Feature Graph Ingestion
=======================

Writes the features of one geometry file in foreign-key dependency order:

    rivers -> cross_sections -> banks
    areas  -> bc_lines
    connections, breaklines   (depend on the geometry file only)

Surrogate identifiers are threaded between stages through name-keyed maps
owned by one FeatureGraphIngestor, i.e. by one geometry file of one run.
Any failed write, parse or parent lookup raises and leaves the enclosing
transaction to roll back.

Example Usage:
    ingestor = FeatureGraphIngestor(tx, geometry_file_id, features)
    counts = ingestor.run()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from .backends.base import TransactionContext
from .config import DEFAULT_SRID
from .errors import FeatureLookupError
from .features import FeatureCollection, GeometryFileFeatures, validate_feature_collection
from .queries import (
    UPSERT_AREA,
    UPSERT_BANK,
    UPSERT_BC_LINE,
    UPSERT_BREAKLINE,
    UPSERT_CONNECTION,
    UPSERT_CROSS_SECTION,
    UPSERT_RIVER,
)
from .upserts import run_upsert

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stage:
    """One ingestion pass and the passes whose identifiers it consumes."""
    name: str
    depends_on: Tuple[str, ...]
    method: str


STAGES: List[Stage] = [
    Stage("rivers", (), "_ingest_rivers"),
    Stage("cross_sections", ("rivers",), "_ingest_cross_sections"),
    Stage("banks", ("cross_sections",), "_ingest_banks"),
    Stage("areas", (), "_ingest_areas"),
    Stage("connections", (), "_ingest_connections"),
    Stage("breaklines", (), "_ingest_breaklines"),
    Stage("bc_lines", ("areas",), "_ingest_bc_lines"),
]


def check_stage_order(stages: List[Stage]) -> None:
    """Raise ValueError if a stage runs before a stage it depends on."""
    seen = set()
    for stage in stages:
        missing = [d for d in stage.depends_on if d not in seen]
        if missing:
            raise ValueError(f"stage {stage.name!r} runs before {missing}")
        seen.add(stage.name)


check_stage_order(STAGES)


class FeatureGraphIngestor:
    """
    Upserts the validated features of one geometry file.

    Parameters
    ----------
    tx : TransactionContext
        Open transaction of the current run.
    geometry_file_id : int
        Surrogate identifier of the geometry file the features belong to.
    features : GeometryFileFeatures
        Validated features of that file.
    srid : int, optional
        SRID geometries are stored with.
    """

    def __init__(
        self,
        tx: TransactionContext,
        geometry_file_id: int,
        features: GeometryFileFeatures,
        srid: int = DEFAULT_SRID,
    ):
        self.tx = tx
        self.geometry_file_id = geometry_file_id
        self.features = features
        self.srid = srid
        # Scoped to this geometry file; never shared across files or runs
        self.river_ids: Dict[str, int] = {}
        self.xs_ids: Dict[str, int] = {}
        self.area_ids: Dict[str, int] = {}

    def run(self) -> Dict[str, int]:
        """Run every stage in order; return the number of rows written per stage."""
        counts = {}
        for stage in STAGES:
            step: Callable[[], int] = getattr(self, stage.method)
            counts[stage.name] = step()
            logger.debug(
                f"Geometry file {self.geometry_file_id}: "
                f"{counts[stage.name]} {stage.name} upserted"
            )
        return counts

    def _upsert(self, statement, params, key):
        return run_upsert(self.tx, statement, params, key, self.srid)

    def _ingest_rivers(self) -> int:
        for river in self.features.rivers:
            self.river_ids[river.name] = self._upsert(
                UPSERT_RIVER,
                [self.geometry_file_id, river.river_name, river.reach_name, river.geometry],
                river.name,
            )
        return len(self.features.rivers)

    def _ingest_cross_sections(self) -> int:
        for xs in self.features.cross_sections:
            river_id = self.river_ids.get(xs.river_reach)
            if river_id is None:
                raise FeatureLookupError(
                    f"river/reach {xs.river_reach!r} was not ingested", "CrossSection", xs.name
                )
            self.xs_ids[xs.xs_key] = self._upsert(
                UPSERT_CROSS_SECTION,
                [river_id, xs.station, xs.profile_match, xs.geometry],
                xs.xs_key,
            )
        return len(self.features.cross_sections)

    def _ingest_banks(self) -> int:
        for bank in self.features.banks:
            xs_id = self.xs_ids.get(bank.xs_key)
            if xs_id is None:
                raise FeatureLookupError(
                    f"cross-section {bank.xs_key!r} was not ingested", "Bank", bank.name
                )
            self._upsert(
                UPSERT_BANK,
                [xs_id, bank.station, bank.geometry],
                f"{bank.xs_key}/{bank.name}",
            )
        return len(self.features.banks)

    def _ingest_areas(self) -> int:
        for area in self.features.areas:
            self.area_ids[area.name] = self._upsert(
                UPSERT_AREA,
                [self.geometry_file_id, area.name, area.is_2d, area.geometry],
                area.name,
            )
        return len(self.features.areas)

    def _ingest_connections(self) -> int:
        # Areas are stored by name, not resolved to area ids
        for conn in self.features.connections:
            self._upsert(
                UPSERT_CONNECTION,
                [self.geometry_file_id, conn.name, conn.up_area, conn.dn_area, conn.geometry],
                conn.name,
            )
        return len(self.features.connections)

    def _ingest_breaklines(self) -> int:
        for bl in self.features.breaklines:
            self._upsert(
                UPSERT_BREAKLINE,
                [self.geometry_file_id, bl.name, bl.geometry],
                bl.name,
            )
        return len(self.features.breaklines)

    def _ingest_bc_lines(self) -> int:
        for bcl in self.features.bc_lines:
            area_id = self.area_ids.get(bcl.area)
            if area_id is None:
                raise FeatureLookupError(
                    f"area {bcl.area!r} was not ingested", "BoundaryLine", bcl.name
                )
            self._upsert(UPSERT_BC_LINE, [area_id, bcl.name, bcl.geometry], bcl.name)
        return len(self.features.bc_lines)


def ingest_feature_collection(
    tx: TransactionContext,
    geometry_file_id: int,
    collection: FeatureCollection,
    srid: int = DEFAULT_SRID,
) -> Dict[str, int]:
    """
    Validate and upsert the raw features of one geometry file.

    Returns
    -------
    dict
        Rows written per stage.

    Raises
    ------
    FeatureParseError
        If any feature fails validation (nothing is written for the file).
    FeatureLookupError
        If a feature references a parent missing from this file.
    ConstraintError
        If the store rejects a write.
    """
    features = validate_feature_collection(collection)
    return FeatureGraphIngestor(tx, geometry_file_id, features, srid).run()
