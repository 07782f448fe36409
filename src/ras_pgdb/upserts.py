# -*- coding: utf-8 -*-
"""
Model and geometry-file row upserts, plus the shared upsert runner used by
the feature ingestor.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional, Sequence

from .backends.base import TransactionContext
from .config import DEFAULT_SRID
from .errors import ConstraintError, FeatureParseError
from .model import GeometryFileInfo, ModelMetadata, model_name_from_path
from .queries import UPSERT_GEOMETRY_FILE, UPSERT_MODEL, UpsertStatement

logger = logging.getLogger(__name__)


@dataclass
class ETLMetadata:
    """Ingestion provenance stored with the model row."""
    model_name: str
    source_path: str
    destination_path: str = ""
    projection_source_path: str = ""


def run_upsert(
    tx: TransactionContext,
    statement: UpsertStatement,
    params: Sequence[Any],
    key: Any,
    srid: int = DEFAULT_SRID,
) -> Optional[int]:
    """
    Execute one upsert, returning the row identifier when the statement
    declares one.

    Raises
    ------
    ConstraintError
        If the store rejects the write; the driver message is kept as is.
    """
    sql = statement.render(tx, srid)
    try:
        if statement.returning:
            row_id = tx.fetch_value(sql, params)
            if row_id is None:
                raise ConstraintError("upsert returned no identifier", statement.entity, key)
            return row_id
        tx.execute(sql, params)
        return None
    except tx.driver_errors as e:
        raise ConstraintError(str(e), statement.entity, key) from e


def upsert_model(
    tx: TransactionContext,
    collection_id: int,
    source_path: str,
    model_type: str,
    metadata: ModelMetadata,
    etl_metadata: Optional[ETLMetadata] = None,
) -> int:
    """
    Write or update the model row keyed by its source path.

    Returns
    -------
    int
        The model's surrogate identifier.
    """
    model_name = model_name_from_path(source_path)
    if etl_metadata is None:
        etl_metadata = ETLMetadata(model_name=model_name, source_path=source_path)

    try:
        model_meta = json.dumps(metadata.to_dict())
        etl_meta = json.dumps(asdict(etl_metadata))
    except (TypeError, ValueError) as e:
        raise FeatureParseError(f"metadata is not JSON-serializable: {e}", "Model", source_path) from e

    model_id = run_upsert(
        tx,
        UPSERT_MODEL,
        [collection_id, model_name, model_type, source_path, model_meta, etl_meta],
        key=source_path,
    )
    logger.info(f"Model {model_name!r} upserted as {model_id}")
    return model_id


def parse_program_version(geometry_file: GeometryFileInfo) -> Optional[float]:
    """
    Numeric program version of a geometry file; None when blank, so the
    numeric column receives NULL instead of an empty string.
    """
    version = geometry_file.program_version
    if version is None or (isinstance(version, str) and not version.strip()):
        return None
    try:
        return float(version)
    except (TypeError, ValueError) as e:
        raise FeatureParseError(
            f"program version {version!r} is not numeric", "GeometryFile", geometry_file.path
        ) from e


def upsert_geometry_file(
    tx: TransactionContext,
    model_id: int,
    geometry_file: GeometryFileInfo,
) -> int:
    """
    Write or update one geometry-file row keyed by its path.

    Returns
    -------
    int
        The geometry file's surrogate identifier.
    """
    geometry_file_id = run_upsert(
        tx,
        UPSERT_GEOMETRY_FILE,
        [
            model_id,
            geometry_file.path,
            geometry_file.file_ext,
            geometry_file.title,
            parse_program_version(geometry_file),
            geometry_file.description,
        ],
        key=geometry_file.path,
    )
    logger.debug(f"Geometry file {geometry_file.path} upserted as {geometry_file_id}")
    return geometry_file_id
