"""Batching engine: bounded bulk-write requests and aggregated results.

Large collections are split into contiguous batches of at most
:data:`BATCH_SIZE` documents.  Each batch becomes one list of PyMongo write
models, submitted by the repository as a single unordered ``bulk_write``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any, TypeVar

from pymongo import InsertOne, ReplaceOne

from ninja_repository.exceptions import ArgumentError
from ninja_repository.identity import IdentityResolver
from ninja_repository.schema import DocumentMapping

T = TypeVar("T")

BATCH_SIZE = 2000


def partition(documents: Iterable[T], size: int = BATCH_SIZE) -> Iterator[list[T]]:
    """Return an iterator of contiguous, order-preserving batches of at most *size* items.

    Lazy: the input is consumed as batches are requested.  Empty input yields
    no batches.  An invalid *size* raises :class:`ArgumentError` immediately,
    before any item is read.
    """
    if size < 1:
        raise ArgumentError(
            document_type="<batch>",
            operation="partition",
            detail=f"Batch size must be >= 1, got {size}.",
        )
    return _batches(documents, size)


def _batches(documents: Iterable[T], size: int) -> Iterator[list[T]]:
    batch: list[T] = []
    for item in documents:
        batch.append(item)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch


def to_insert_models(batch: Iterable[Any], mapping: DocumentMapping) -> list[InsertOne]:
    """One ``InsertOne`` per document, in input order."""
    return [InsertOne(mapping.to_storage(doc)) for doc in batch]


def to_replace_models(
    batch: Iterable[Any],
    mapping: DocumentMapping,
    resolver: IdentityResolver,
    *,
    is_upsert: bool,
) -> list[ReplaceOne]:
    """One ``ReplaceOne`` per document, filtered on its identity value."""
    models = []
    for doc in batch:
        id_filter = resolver.identity_filter(mapping.document_type, resolver.identity_value(doc))
        models.append(ReplaceOne(id_filter, mapping.to_storage(doc), upsert=is_upsert))
    return models


@dataclass(frozen=True)
class BulkResult:
    """Write counters summed over every batch of one logical call."""

    inserted_count: int = 0
    matched_count: int = 0
    modified_count: int = 0
    upserted_count: int = 0
    deleted_count: int = 0
    batches: int = 0

    @classmethod
    def from_write_result(cls, result: Any) -> BulkResult:
        """Convert a PyMongo ``BulkWriteResult`` for a single batch."""
        return cls(
            inserted_count=result.inserted_count,
            matched_count=result.matched_count,
            modified_count=result.modified_count,
            upserted_count=result.upserted_count,
            deleted_count=result.deleted_count,
            batches=1,
        )

    def __add__(self, other: BulkResult) -> BulkResult:
        if not isinstance(other, BulkResult):
            return NotImplemented
        return BulkResult(
            inserted_count=self.inserted_count + other.inserted_count,
            matched_count=self.matched_count + other.matched_count,
            modified_count=self.modified_count + other.modified_count,
            upserted_count=self.upserted_count + other.upserted_count,
            deleted_count=self.deleted_count + other.deleted_count,
            batches=self.batches + other.batches,
        )
