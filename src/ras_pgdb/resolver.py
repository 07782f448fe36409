# -*- coding: utf-8 -*-
"""
Natural-key lookups run before any write of an ingestion run.
"""

from __future__ import annotations

import logging

from .backends.base import TransactionContext
from .errors import NotFoundError, RasPgdbError
from .queries import GET_COLLECTION_IDS_SQL, GET_MODEL_ID_SQL

logger = logging.getLogger(__name__)


def resolve_collection(tx: TransactionContext, storage_uri: str) -> int:
    """
    Find the collection whose storage prefix the model's URI starts with.

    Exactly one collection must match; ambiguity is an error rather than a
    choice between candidates.

    Raises
    ------
    NotFoundError
        If no collection, or more than one, matches.
    """
    try:
        rows = tx.fetch_all(GET_COLLECTION_IDS_SQL, [storage_uri])
    except tx.driver_errors as e:
        raise RasPgdbError(f"collection lookup failed: {e}", "Collection", storage_uri) from e

    if not rows:
        raise NotFoundError("no collection prefix matches", "Collection", storage_uri)
    if len(rows) > 1:
        ids = [r[0] for r in rows]
        raise NotFoundError(
            f"ambiguous: collections {ids} all match", "Collection", storage_uri
        )
    collection_id = rows[0][0]
    logger.debug(f"Collection {collection_id} resolved for {storage_uri}")
    return collection_id


def resolve_model_id(tx: TransactionContext, source_path: str) -> int:
    """
    Find the model row recorded for a source path.

    Raises
    ------
    NotFoundError
        If the model has not been ingested yet.
    """
    try:
        model_id = tx.fetch_value(GET_MODEL_ID_SQL, [source_path])
    except tx.driver_errors as e:
        raise RasPgdbError(f"model lookup failed: {e}", "Model", source_path) from e

    if model_id is None:
        raise NotFoundError(
            "model row does not exist; ingest model metadata first", "Model", source_path
        )
    return model_id
