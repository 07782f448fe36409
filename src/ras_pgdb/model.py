# -*- coding: utf-8 -*-
"""
Parsed Model Contract
=====================

The ingestion core does not read model files. It consumes a parsed model
produced by a model parser: a callable taking the model's source path and
a file store, returning an object that satisfies ``RasModel``.

    loader(source_path, file_store) -> RasModel

A parsed model exposes:
- ``type``                     model-type tag written to the model row
- ``metadata``                 ModelMetadata (geometry-file descriptors + attributes)
- ``is_geospatial()``          geospatial-capability flag
- ``geospatial_data(crs)``     GeospatialData, one FeatureCollection per
                               geometry file keyed by the file's base name
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Protocol

from .features import FeatureCollection


@dataclass
class GeometryFileInfo:
    """Descriptor of one geometry file belonging to a model."""
    path: str
    file_ext: str = ""
    title: str = ""
    program_version: str = ""
    description: str = ""

    @property
    def file_name(self) -> str:
        return PurePosixPath(self.path).name


@dataclass
class ModelMetadata:
    """Metadata record of a parsed model."""
    geom_files: List[GeometryFileInfo] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable form stored in the model row."""
        data = dict(self.attributes)
        data["geom_files"] = [asdict(g) for g in self.geom_files]
        return data


@dataclass
class GeospatialData:
    """Feature collections of every geometry file, keyed by file base name."""
    features: Dict[str, FeatureCollection] = field(default_factory=dict)

    def for_file(self, geometry_file: GeometryFileInfo) -> FeatureCollection:
        return self.features.get(geometry_file.file_name, FeatureCollection())


class RasModel(Protocol):
    """A parsed model as produced by a model parser."""

    type: str
    metadata: ModelMetadata

    def is_geospatial(self) -> bool: ...

    def geospatial_data(self, destination_crs: str) -> GeospatialData: ...


class FileStore(Protocol):
    """Read access to the storage holding model files."""

    def exists(self, path: str) -> bool: ...

    def read_bytes(self, path: str) -> bytes: ...

    def local_path(self, path: str) -> Path: ...


class LocalFileStore:
    """File store rooted at a local directory."""

    def __init__(self, root: str = "."):
        self.root = Path(root)

    def local_path(self, path: str) -> Path:
        return self.root / path.lstrip("/")

    def exists(self, path: str) -> bool:
        return self.local_path(path).exists()

    def read_bytes(self, path: str) -> bytes:
        return self.local_path(path).read_bytes()


ModelLoader = Callable[[str, FileStore], RasModel]


def model_name_from_path(source_path: str) -> str:
    """Model name: the source file's base name without its extension."""
    return PurePosixPath(source_path).stem
