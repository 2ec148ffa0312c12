"""Generic MongoDB document repositories.

:class:`Repository` runs on a PyMongo database and blocks; :class:`AsyncRepository`
runs on a Motor database and returns coroutines.  Both share one core that
plans every request (filters, sort keys, write models, update definitions), so
the two surfaces differ only at the driver call.

Driver failures are logged and re-raised unchanged.  Boolean results mean
"at least one document was affected", never "no error occurred".
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any, Generic, NamedTuple, TypeVar

from pydantic import BaseModel
from pymongo import InsertOne, ReplaceOne
from pymongo.errors import PyMongoError

from ninja_repository.batching import BulkResult, partition, to_insert_models, to_replace_models
from ninja_repository.codec import prepare_for_storage
from ninja_repository.exceptions import ArgumentError
from ninja_repository.identity import IdentityResolver
from ninja_repository.schema import DocumentMapping, DocumentRegistry
from ninja_repository.sorting import SortSpec, to_sort_keys
from ninja_repository.updates import FieldAssignment, UpdateSpec, build_update_definition

logger = logging.getLogger(__name__)

TDocument = TypeVar("TDocument", bound=BaseModel)

Predicate = Mapping[str, Any]
SortArg = Sequence[SortSpec | str] | None


class Page(NamedTuple):
    """One page of results plus a total count; unpacks as ``(items, total)``."""

    items: list[Any]
    total: int


@contextmanager
def _store_call(collection_name: str, operation: str) -> Iterator[None]:
    """Log driver failures for *operation* and let them propagate untouched."""
    try:
        yield
    except PyMongoError as exc:
        logger.error("Mongo %s failed for %s: %s", operation, collection_name, type(exc).__name__)
        raise


def _validate_skip(skip: int, type_name: str) -> int:
    if skip < 0:
        raise ArgumentError(document_type=type_name, operation="paginate", detail=f"skip must be >= 0, got {skip}")
    return skip


def _validate_take(take: int, type_name: str) -> int:
    if take < 1:
        raise ArgumentError(document_type=type_name, operation="paginate", detail=f"take must be >= 1, got {take}")
    return take


class _RepositoryCore(Generic[TDocument]):
    """State and request planning shared by both repository surfaces."""

    def __init__(
        self,
        document_type: type[TDocument],
        database: Any,
        *,
        registry: DocumentRegistry | None = None,
        collection_name: str | None = None,
    ) -> None:
        if database is None:
            raise ArgumentError(
                document_type=getattr(document_type, "__name__", repr(document_type)),
                operation="create_repository",
                detail="A database handle is required.",
            )
        self._resolver = IdentityResolver(registry)
        self._mapping = self._resolver.registry.get(document_type)
        self._collection_name = collection_name or self._mapping.collection_name
        self._collection = database[self._collection_name]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._mapping.type_name}, collection={self._collection_name!r})"

    @property
    def document_type(self) -> type[TDocument]:
        return self._mapping.document_type  # type: ignore[return-value]

    @property
    def mapping(self) -> DocumentMapping:
        return self._mapping

    @property
    def collection(self) -> Any:
        return self._collection

    @property
    def collection_name(self) -> str:
        return self._collection_name

    def update_spec(self) -> UpdateSpec:
        """Start an empty :class:`UpdateSpec` for this repository's document type."""
        return UpdateSpec(self._mapping)

    # -- Request planning -----------------------------------------------------

    def _error(self, operation: str, detail: str) -> ArgumentError:
        return ArgumentError(document_type=self._mapping.type_name, operation=operation, detail=detail)

    def _filter(self, predicate: Predicate | None) -> dict[str, Any]:
        return prepare_for_storage(predicate) if predicate is not None else {}

    def _required_filter(self, predicate: Predicate | None, operation: str) -> dict[str, Any]:
        if predicate is None:
            raise self._error(operation, "A predicate is required.")
        return prepare_for_storage(predicate)

    def _key_filter(self, key: Any, operation: str) -> dict[str, Any]:
        if key is None:
            raise self._error(operation, "Identity value must not be None.")
        return self._resolver.identity_filter(self.document_type, key)

    def _document_filter(self, document: TDocument | None) -> dict[str, Any]:
        return self._resolver.identity_filter(self.document_type, self._resolver.identity_value(document))

    def _dump(self, document: TDocument | None, operation: str) -> dict[str, Any]:
        if document is None:
            raise self._error(operation, "Document must not be None.")
        return self._mapping.to_storage(document)

    def _hydrate(self, raw: Mapping[str, Any] | None) -> TDocument | None:
        if raw is None:
            return None
        return self._mapping.from_storage(dict(raw))

    def _cursor(
        self,
        predicate: Predicate | None,
        sort: SortArg = None,
        skip: int | None = None,
        take: int | None = None,
    ) -> Any:
        """Build a PyMongo or Motor cursor; both share the fluent cursor API."""
        cursor = self._collection.find(self._filter(predicate))
        if sort:
            cursor = cursor.sort(to_sort_keys(self._mapping, sort))
        if skip:
            cursor = cursor.skip(skip)
        if take is not None:
            cursor = cursor.limit(take)
        return cursor

    def _page_bounds(self, skip: int, take: int) -> tuple[int, int]:
        name = self._mapping.type_name
        return _validate_skip(skip, name), _validate_take(take, name)

    def _documents(self, documents: Iterable[TDocument] | None, operation: str) -> Iterable[TDocument]:
        if documents is None:
            raise self._error(operation, "Documents must not be None.")
        return documents

    def _insert_batches(self, documents: Iterable[TDocument] | None) -> Iterator[list[InsertOne]]:
        for batch in partition(self._documents(documents, "insert_many")):
            yield to_insert_models(batch, self._mapping)

    def _upsert_batches(self, documents: Iterable[TDocument] | None) -> Iterator[list[ReplaceOne]]:
        for batch in partition(self._documents(documents, "upsert_many")):
            yield to_replace_models(batch, self._mapping, self._resolver, is_upsert=True)

    def _update_models(self, documents: Iterable[TDocument] | None) -> list[ReplaceOne]:
        # Not partitioned: callers of update_many are expected to bound their input.
        documents = self._documents(documents, "update_many")
        return to_replace_models(documents, self._mapping, self._resolver, is_upsert=False)

    def _update_definition(
        self,
        assignments: Sequence[FieldAssignment | UpdateSpec],
        where: Predicate | None,
        operation: str,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        flat: list[FieldAssignment] = []
        for item in assignments:
            if isinstance(item, UpdateSpec):
                if item.mapping.document_type is not self._mapping.document_type:
                    raise self._error(operation, f"UpdateSpec was built for {item.mapping.type_name}.")
                flat.extend(item.assignments)
            else:
                field, value = item
                flat.append((field, value))
        return build_update_definition(self._mapping, flat, where, operation=operation)

    def _log_batch(self, operation: str, number: int, models: list[Any]) -> None:
        logger.debug("%s on %s: batch %d, %d document(s)", operation, self._collection_name, number, len(models))

    def _log_bulk(self, operation: str, total: BulkResult) -> None:
        logger.debug(
            "%s on %s: %d batch(es), inserted=%d modified=%d upserted=%d",
            operation,
            self._collection_name,
            total.batches,
            total.inserted_count,
            total.modified_count,
            total.upserted_count,
        )


class Repository(_RepositoryCore[TDocument]):
    """Blocking repository backed by a PyMongo ``Database``.

    Example::

        repo = Repository(Invoice, client["billing"])
        repo.insert_many(invoices)
        page, total = repo.get_page({"status": "open"}, skip=0, take=50,
                                    sort=[("due", SortDirection.ASCENDING)])
    """

    def any(self, predicate: Predicate | None = None) -> bool:
        """True iff at least one (matching) document exists."""
        with _store_call(self._collection_name, "any"):
            return self._collection.count_documents(self._filter(predicate), limit=1) > 0

    def count(self, predicate: Predicate | None = None) -> int:
        """Estimated collection size without a predicate, exact match count with one."""
        with _store_call(self._collection_name, "count"):
            if predicate is None:
                return self._collection.estimated_document_count()
            return self._collection.count_documents(self._filter(predicate))

    def insert(self, document: TDocument) -> TDocument:
        """Insert one document and return the same, unchanged, instance."""
        data = self._dump(document, "insert")
        with _store_call(self._collection_name, "insert"):
            self._collection.insert_one(data)
        return document

    def insert_many(self, documents: Iterable[TDocument]) -> bool:
        """Insert in batches; true iff any document was inserted."""
        return self.bulk_insert(documents).inserted_count > 0

    def bulk_insert(self, documents: Iterable[TDocument]) -> BulkResult:
        """Insert in sequential unordered batches and return the summed counters."""
        total = BulkResult()
        for number, models in enumerate(self._insert_batches(documents), start=1):
            self._log_batch("insert_many", number, models)
            with _store_call(self._collection_name, "insert_many"):
                result = self._collection.bulk_write(models, ordered=False)
            total += BulkResult.from_write_result(result)
        self._log_bulk("insert_many", total)
        return total

    def get_all(self, sort: SortArg = None) -> list[TDocument]:
        with _store_call(self._collection_name, "get_all"):
            return [self._hydrate(doc) for doc in self._cursor(None, sort)]

    def get_all_page(self, skip: int, take: int, sort: SortArg = None) -> Page:
        """One page of all documents; ``total`` is the estimated collection size."""
        skip, take = self._page_bounds(skip, take)
        with _store_call(self._collection_name, "get_all_page"):
            total = self._collection.estimated_document_count()
            items = [self._hydrate(doc) for doc in self._cursor(None, sort, skip, take)]
        return Page(items, total)

    def get(self, predicate: Predicate, sort: SortArg = None) -> list[TDocument]:
        filter_ = self._required_filter(predicate, "get")
        with _store_call(self._collection_name, "get"):
            return [self._hydrate(doc) for doc in self._cursor(filter_, sort)]

    def get_page(self, predicate: Predicate, skip: int, take: int, sort: SortArg = None) -> Page:
        """One page of matching documents; ``total`` is the exact match count."""
        filter_ = self._required_filter(predicate, "get_page")
        skip, take = self._page_bounds(skip, take)
        with _store_call(self._collection_name, "get_page"):
            total = self._collection.count_documents(filter_)
            items = [self._hydrate(doc) for doc in self._cursor(filter_, sort, skip, take)]
        return Page(items, total)

    def find(self, key: Any) -> TDocument | None:
        """Return the document whose identity equals *key*, or ``None``."""
        filter_ = self._key_filter(key, "find")
        with _store_call(self._collection_name, "find"):
            return self._hydrate(self._collection.find_one(filter_))

    def first_or_default(self, predicate: Predicate | None = None) -> TDocument | None:
        with _store_call(self._collection_name, "first_or_default"):
            return self._hydrate(self._collection.find_one(self._filter(predicate)))

    def upsert(self, document: TDocument) -> bool:
        """Replace by identity, inserting when absent; true iff an existing document changed."""
        filter_ = self._document_filter(document)
        with _store_call(self._collection_name, "upsert"):
            result = self._collection.replace_one(filter_, self._dump(document, "upsert"), upsert=True)
        return result.modified_count > 0

    def upsert_many(self, documents: Iterable[TDocument]) -> bool:
        """Upsert in batches; true iff any document was inserted by upsert."""
        return self.bulk_upsert(documents).upserted_count > 0

    def bulk_upsert(self, documents: Iterable[TDocument]) -> BulkResult:
        total = BulkResult()
        for number, models in enumerate(self._upsert_batches(documents), start=1):
            self._log_batch("upsert_many", number, models)
            with _store_call(self._collection_name, "upsert_many"):
                result = self._collection.bulk_write(models, ordered=False)
            total += BulkResult.from_write_result(result)
        self._log_bulk("upsert_many", total)
        return total

    def update(self, document: TDocument) -> bool:
        """Replace by identity without inserting; true iff modified."""
        filter_ = self._document_filter(document)
        with _store_call(self._collection_name, "update"):
            result = self._collection.replace_one(filter_, self._dump(document, "update"))
        return result.modified_count > 0

    def update_many(self, documents: Iterable[TDocument]) -> bool:
        """Replace every document by identity in one bulk write; true iff any modified."""
        models = self._update_models(documents)
        if not models:
            return False
        with _store_call(self._collection_name, "update_many"):
            result = self._collection.bulk_write(models)
        return result.modified_count > 0

    def update_field(self, field: str, value: Any, where: Predicate | None = None) -> bool:
        """Set one field on every (matching) document."""
        return self.update_fields((field, value), where=where)

    def update_fields(self, *assignments: FieldAssignment | UpdateSpec, where: Predicate | None = None) -> bool:
        """Set several fields at once on every (matching) document.

        Raises:
            ArgumentError: If no assignment is given.
        """
        filter_, update = self._update_definition(assignments, where, "update_fields")
        with _store_call(self._collection_name, "update_fields"):
            result = self._collection.update_many(filter_, update)
        return result.modified_count > 0

    def delete(self, key: Any) -> bool:
        filter_ = self._key_filter(key, "delete")
        with _store_call(self._collection_name, "delete"):
            return self._collection.delete_one(filter_).deleted_count > 0

    def delete_document(self, document: TDocument) -> bool:
        filter_ = self._document_filter(document)
        with _store_call(self._collection_name, "delete_document"):
            return self._collection.delete_one(filter_).deleted_count > 0

    def delete_where(self, predicate: Predicate) -> bool:
        """Delete every matching document; true iff at least one was removed."""
        filter_ = self._required_filter(predicate, "delete_where")
        with _store_call(self._collection_name, "delete_where"):
            return self._collection.delete_many(filter_).deleted_count > 0


class AsyncRepository(_RepositoryCore[TDocument]):
    """Non-blocking repository backed by a Motor ``AsyncIOMotorDatabase``.

    Same operations and results as :class:`Repository`; every method is a
    coroutine that suspends only on the driver call.  Batches of one call are
    awaited one after another.
    """

    async def any(self, predicate: Predicate | None = None) -> bool:
        with _store_call(self._collection_name, "any"):
            return await self._collection.count_documents(self._filter(predicate), limit=1) > 0

    async def count(self, predicate: Predicate | None = None) -> int:
        with _store_call(self._collection_name, "count"):
            if predicate is None:
                return await self._collection.estimated_document_count()
            return await self._collection.count_documents(self._filter(predicate))

    async def insert(self, document: TDocument) -> TDocument:
        data = self._dump(document, "insert")
        with _store_call(self._collection_name, "insert"):
            await self._collection.insert_one(data)
        return document

    async def insert_many(self, documents: Iterable[TDocument]) -> bool:
        return (await self.bulk_insert(documents)).inserted_count > 0

    async def bulk_insert(self, documents: Iterable[TDocument]) -> BulkResult:
        total = BulkResult()
        for number, models in enumerate(self._insert_batches(documents), start=1):
            self._log_batch("insert_many", number, models)
            with _store_call(self._collection_name, "insert_many"):
                result = await self._collection.bulk_write(models, ordered=False)
            total += BulkResult.from_write_result(result)
        self._log_bulk("insert_many", total)
        return total

    async def get_all(self, sort: SortArg = None) -> list[TDocument]:
        with _store_call(self._collection_name, "get_all"):
            return [self._hydrate(doc) async for doc in self._cursor(None, sort)]

    async def get_all_page(self, skip: int, take: int, sort: SortArg = None) -> Page:
        skip, take = self._page_bounds(skip, take)
        with _store_call(self._collection_name, "get_all_page"):
            total = await self._collection.estimated_document_count()
            items = [self._hydrate(doc) async for doc in self._cursor(None, sort, skip, take)]
        return Page(items, total)

    async def get(self, predicate: Predicate, sort: SortArg = None) -> list[TDocument]:
        filter_ = self._required_filter(predicate, "get")
        with _store_call(self._collection_name, "get"):
            return [self._hydrate(doc) async for doc in self._cursor(filter_, sort)]

    async def get_page(self, predicate: Predicate, skip: int, take: int, sort: SortArg = None) -> Page:
        filter_ = self._required_filter(predicate, "get_page")
        skip, take = self._page_bounds(skip, take)
        with _store_call(self._collection_name, "get_page"):
            total = await self._collection.count_documents(filter_)
            items = [self._hydrate(doc) async for doc in self._cursor(filter_, sort, skip, take)]
        return Page(items, total)

    async def find(self, key: Any) -> TDocument | None:
        filter_ = self._key_filter(key, "find")
        with _store_call(self._collection_name, "find"):
            return self._hydrate(await self._collection.find_one(filter_))

    async def first_or_default(self, predicate: Predicate | None = None) -> TDocument | None:
        with _store_call(self._collection_name, "first_or_default"):
            return self._hydrate(await self._collection.find_one(self._filter(predicate)))

    async def upsert(self, document: TDocument) -> bool:
        filter_ = self._document_filter(document)
        with _store_call(self._collection_name, "upsert"):
            result = await self._collection.replace_one(filter_, self._dump(document, "upsert"), upsert=True)
        return result.modified_count > 0

    async def upsert_many(self, documents: Iterable[TDocument]) -> bool:
        return (await self.bulk_upsert(documents)).upserted_count > 0

    async def bulk_upsert(self, documents: Iterable[TDocument]) -> BulkResult:
        total = BulkResult()
        for number, models in enumerate(self._upsert_batches(documents), start=1):
            self._log_batch("upsert_many", number, models)
            with _store_call(self._collection_name, "upsert_many"):
                result = await self._collection.bulk_write(models, ordered=False)
            total += BulkResult.from_write_result(result)
        self._log_bulk("upsert_many", total)
        return total

    async def update(self, document: TDocument) -> bool:
        filter_ = self._document_filter(document)
        with _store_call(self._collection_name, "update"):
            result = await self._collection.replace_one(filter_, self._dump(document, "update"))
        return result.modified_count > 0

    async def update_many(self, documents: Iterable[TDocument]) -> bool:
        models = self._update_models(documents)
        if not models:
            return False
        with _store_call(self._collection_name, "update_many"):
            result = await self._collection.bulk_write(models)
        return result.modified_count > 0

    async def update_field(self, field: str, value: Any, where: Predicate | None = None) -> bool:
        return await self.update_fields((field, value), where=where)

    async def update_fields(self, *assignments: FieldAssignment | UpdateSpec, where: Predicate | None = None) -> bool:
        filter_, update = self._update_definition(assignments, where, "update_fields")
        with _store_call(self._collection_name, "update_fields"):
            result = await self._collection.update_many(filter_, update)
        return result.modified_count > 0

    async def delete(self, key: Any) -> bool:
        filter_ = self._key_filter(key, "delete")
        with _store_call(self._collection_name, "delete"):
            return (await self._collection.delete_one(filter_)).deleted_count > 0

    async def delete_document(self, document: TDocument) -> bool:
        filter_ = self._document_filter(document)
        with _store_call(self._collection_name, "delete_document"):
            return (await self._collection.delete_one(filter_)).deleted_count > 0

    async def delete_where(self, predicate: Predicate) -> bool:
        filter_ = self._required_filter(predicate, "delete_where")
        with _store_call(self._collection_name, "delete_where"):
            return (await self._collection.delete_many(filter_)).deleted_count > 0
