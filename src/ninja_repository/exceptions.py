"""Domain exceptions for the repository layer.

Only caller and mapping mistakes are raised as domain exceptions. Failures
reported by the MongoDB driver are never wrapped: they reach the caller as the
original ``pymongo.errors.PyMongoError`` subclass, re-exported here as
:data:`StoreError` so callers can catch them without importing PyMongo.
"""

from __future__ import annotations

from pymongo.errors import PyMongoError

StoreError = PyMongoError


class RepositoryError(Exception):
    """Base exception for all repository-layer errors.

    Attributes:
        document_type: Name of the document type involved.
        operation: The repository operation that failed (e.g. ``"insert"``, ``"update_fields"``).
        detail: A description of what went wrong.
    """

    def __init__(
        self,
        *,
        document_type: str,
        operation: str,
        detail: str,
        cause: Exception | None = None,
    ) -> None:
        self.document_type = document_type
        self.operation = operation
        self.detail = detail
        msg = f"[{document_type}] {operation} failed: {detail}"
        super().__init__(msg)
        if cause is not None:
            self.__cause__ = cause


class ArgumentError(RepositoryError, ValueError):
    """Raised when a required input is missing, empty or out of range."""


class MappingError(RepositoryError, LookupError):
    """Raised when a document type has no usable identity mapping."""
