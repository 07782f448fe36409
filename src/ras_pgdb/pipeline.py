# -*- coding: utf-8 -*-
"""
RAS Model Ingestion Pipeline
============================

Entry points that materialize one parsed model into the database, each
inside a single transaction:

- ingest_model_metadata: resolve the model's collection and upsert the
  model row. The collection must already exist.
- ingest_model_geometry: resolve the existing model row and upsert every
  geometry file with its feature graph. Models without geospatial data
  commit without writing anything.

A run moves through BEGIN -> RESOLVING -> WRITING -> COMMITTED. Any error
rolls the whole transaction back (ROLLED_BACK); there is no partial commit.

Example Usage:
    from ras_pgdb import IngestionPipeline, IngestConfig, LocalFileStore, get_backend
    from ras_pgdb.extract import load_extracted_model

    config = IngestConfig.from_env()
    pipeline = IngestionPipeline(
        get_backend(config.database_url),
        load_extracted_model,
        LocalFileStore(config.file_store_root),
        config,
    )
    pipeline.ingest_model_metadata("models/ras/Muncie/Muncie.prj")
    report = pipeline.ingest_model_geometry("models/ras/Muncie/Muncie.prj")
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Generator, Optional

from .backends.base import BaseBackend, TransactionContext
from .config import IngestConfig
from .errors import RasPgdbError
from .ingest import ingest_feature_collection
from .model import FileStore, GeospatialData, ModelLoader, RasModel
from .resolver import resolve_collection, resolve_model_id
from .upserts import ETLMetadata, upsert_geometry_file, upsert_model

logger = logging.getLogger(__name__)


class RunState(Enum):
    """States of one ingestion run."""
    BEGIN = "BEGIN"
    RESOLVING = "RESOLVING"
    WRITING = "WRITING"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"


@dataclass
class IngestionReport:
    """Outcome of a committed ingestion run."""
    source_path: str
    state: RunState = RunState.BEGIN
    model_id: Optional[int] = None
    geospatial: Optional[bool] = None
    geometry_files: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def advance(self, state: RunState) -> None:
        if self.state == RunState.WRITING and state == RunState.RESOLVING:
            raise RuntimeError("an ingestion run cannot return to RESOLVING")
        logger.debug(f"{self.source_path}: {self.state.value} -> {state.value}")
        self.state = state

    @property
    def total_features(self) -> int:
        return sum(sum(c.values()) for c in self.geometry_files.values())


class IngestionPipeline:
    """
    Transaction orchestrator for model metadata and geometry ingestion.

    Parameters
    ----------
    backend : BaseBackend
        Backend handing out transactions.
    model_loader : callable
        Model parser: ``model_loader(source_path, file_store) -> RasModel``.
    file_store : FileStore
        Storage the model parser reads model files from.
    config : IngestConfig, optional
        Storage bucket, destination CRS and SRID. Defaults to IngestConfig().
    """

    def __init__(
        self,
        backend: BaseBackend,
        model_loader: ModelLoader,
        file_store: FileStore,
        config: Optional[IngestConfig] = None,
    ):
        self.backend = backend
        self.model_loader = model_loader
        self.file_store = file_store
        self.config = config or IngestConfig()

    @contextmanager
    def _run(self, report: IngestionReport) -> Generator[TransactionContext, None, None]:
        logger.info(f"Begin ingestion of {report.source_path}")
        opened = False
        try:
            with self.backend.transaction() as tx:
                opened = True
                yield tx
            report.advance(RunState.COMMITTED)
        except Exception as e:
            if not opened:
                # No transaction was started; the run stays in BEGIN
                logger.error(f"Ingestion of {report.source_path} could not start: {e}")
                raise
            report.advance(RunState.ROLLED_BACK)
            logger.error(f"Ingestion of {report.source_path} rolled back: {e}")
            raise

    def load_model(self, source_path: str) -> RasModel:
        """Build the parsed model for a source path."""
        try:
            return self.model_loader(source_path, self.file_store)
        except RasPgdbError:
            raise
        except Exception as e:
            raise RasPgdbError(f"could not build parsed model: {e}", "Model", source_path) from e

    def _geospatial_data(self, model: RasModel, source_path: str) -> GeospatialData:
        try:
            return model.geospatial_data(self.config.destination_crs)
        except RasPgdbError:
            raise
        except Exception as e:
            raise RasPgdbError(f"could not extract geospatial data: {e}", "Model", source_path) from e

    def is_geospatial(self, source_path: str) -> bool:
        """Report whether a model carries geospatial data. Reads no rows."""
        return self.load_model(source_path).is_geospatial()

    def ingest_model_metadata(
        self,
        source_path: str,
        etl_metadata: Optional[ETLMetadata] = None,
    ) -> IngestionReport:
        """
        Create or update the model row for a source path.

        Raises
        ------
        NotFoundError
            If no single collection matches the model's storage URI.
        RasPgdbError
            If the model cannot be parsed or the row cannot be written.
        """
        report = IngestionReport(source_path)
        with self._run(report) as tx:
            report.advance(RunState.RESOLVING)
            collection_id = resolve_collection(tx, self.config.storage_uri(source_path))
            model = self.load_model(source_path)

            report.advance(RunState.WRITING)
            report.model_id = upsert_model(
                tx, collection_id, source_path, model.type, model.metadata, etl_metadata
            )
            tx.commit()
        return report

    def ingest_model_geometry(self, source_path: str) -> IngestionReport:
        """
        Create or update every geometry file and feature of an ingested model.

        Raises
        ------
        NotFoundError
            If the model row does not exist yet.
        FeatureParseError, FeatureLookupError, ConstraintError
            On the first invalid feature, unresolved parent or rejected write.
        """
        report = IngestionReport(source_path)
        with self._run(report) as tx:
            report.advance(RunState.RESOLVING)
            report.model_id = resolve_model_id(tx, source_path)
            model = self.load_model(source_path)
            report.geospatial = model.is_geospatial()

            if not report.geospatial:
                logger.info(f"{source_path} has no geospatial data; nothing to write")
                tx.commit()
                return report

            geodata = self._geospatial_data(model, source_path)

            for geometry_file in model.metadata.geom_files:
                report.advance(RunState.WRITING)
                geometry_file_id = upsert_geometry_file(tx, report.model_id, geometry_file)
                counts = ingest_feature_collection(
                    tx,
                    geometry_file_id,
                    geodata.for_file(geometry_file),
                    self.config.srid,
                )
                report.geometry_files[geometry_file.path] = counts
                logger.info(f"Geometry file {geometry_file.path}: {counts}")

            tx.commit()
        return report
