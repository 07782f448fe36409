# -*- coding: utf-8 -*-
"""
RAS Ingestion Errors
====================

Every failure raised by the ingestion pipeline derives from RasPgdbError
and names the entity and natural key it concerns, so a failed run can be
diagnosed from the message alone.

    NotFoundError       collection or model row absent when it must exist
    FeatureParseError   feature fails validation (station, river/reach field)
    FeatureLookupError  child feature references a parent not ingested
    ConstraintError     store rejected a write (driver message kept verbatim)
    TransactionError    begin/commit failure
"""

from __future__ import annotations

from typing import Any, Optional


class RasPgdbError(Exception):
    """Base exception for RAS geometry ingestion errors."""

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        key: Any = None,
    ):
        self.entity = entity
        self.key = key
        if entity is not None:
            message = f"{entity} {key!r}: {message}"
        super().__init__(message)


class NotFoundError(RasPgdbError):
    """A row required to exist before ingestion was not found."""

    pass


class FeatureParseError(RasPgdbError):
    """A feature carries a malformed name or attribute."""

    pass


class FeatureLookupError(RasPgdbError, LookupError):
    """A feature references a parent that was not ingested earlier in the run."""

    pass


class ConstraintError(RasPgdbError):
    """The store rejected a write."""

    pass


class TransactionError(RasPgdbError):
    """A transaction could not be started, used or committed."""

    pass
