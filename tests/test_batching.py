"""Tests for the batching engine."""

from __future__ import annotations

import itertools
import math

import pytest
from documents import Customer, Invoice, make_invoices
from ninja_repository.batching import (
    BATCH_SIZE,
    BulkResult,
    partition,
    to_insert_models,
    to_replace_models,
)
from ninja_repository.exceptions import ArgumentError
from ninja_repository.identity import IdentityResolver
from ninja_repository.schema import DocumentRegistry
from pymongo import InsertOne, ReplaceOne

# ---------------------------------------------------------------------------
# partition
# ---------------------------------------------------------------------------


def test_batch_size_is_2000():
    assert BATCH_SIZE == 2000


@pytest.mark.parametrize("n", [0, 1, 1999, 2000, 2001, 4000, 4001])
def test_partition_default_size(n: int):
    items = list(range(n))
    batches = list(partition(items))
    assert len(batches) == math.ceil(n / BATCH_SIZE)
    assert all(1 <= len(b) <= BATCH_SIZE for b in batches)
    assert list(itertools.chain.from_iterable(batches)) == items


@pytest.mark.parametrize(("n", "size", "expected"), [(10, 3, [3, 3, 3, 1]), (9, 3, [3, 3, 3]), (2, 5, [2])])
def test_partition_custom_size(n: int, size: int, expected: list[int]):
    assert [len(b) for b in partition(range(n), size)] == expected


def test_partition_empty_input_yields_nothing():
    assert list(partition([])) == []


def test_partition_is_lazy():
    batches = partition(itertools.count(), 3)
    assert next(batches) == [0, 1, 2]
    assert next(batches) == [3, 4, 5]


def test_partition_batches_are_independent_lists():
    first, second = partition([1, 2, 3, 4], 2)
    first.append(99)
    assert second == [3, 4]


def test_partition_rejects_non_positive_size():
    with pytest.raises(ArgumentError, match="Batch size must be >= 1"):
        list(partition([1], 0))


def test_partition_validates_size_before_reading_input():
    def never_read():
        raise AssertionError("input was consumed")
        yield

    with pytest.raises(ArgumentError):
        partition(never_read(), 0)


# ---------------------------------------------------------------------------
# Write models
# ---------------------------------------------------------------------------


def test_to_insert_models_preserves_order(registry: DocumentRegistry):
    docs = make_invoices(3)
    models = to_insert_models(docs, registry.get(Invoice))
    assert models == [InsertOne(registry.get(Invoice).to_storage(d)) for d in docs]


def test_to_replace_models_filters_on_identity(registry: DocumentRegistry):
    resolver = IdentityResolver(registry)
    docs = [Customer(code="c-1", name="A"), Customer(code="c-2", name="B")]
    models = to_replace_models(docs, registry.get(Customer), resolver, is_upsert=True)
    assert models == [
        ReplaceOne({"code": "c-1"}, {"code": "c-1", "name": "A", "tier": 1}, upsert=True),
        ReplaceOne({"code": "c-2"}, {"code": "c-2", "name": "B", "tier": 1}, upsert=True),
    ]


def test_to_replace_models_carries_upsert_flag_uniformly(registry: DocumentRegistry):
    resolver = IdentityResolver(registry)
    models = to_replace_models(make_invoices(4), registry.get(Invoice), resolver, is_upsert=False)
    assert [m._upsert for m in models] == [False] * 4
    assert [m._filter for m in models] == [{"_id": f"inv-{i:05d}"} for i in range(4)]


# ---------------------------------------------------------------------------
# BulkResult
# ---------------------------------------------------------------------------


class _WriteResult:
    inserted_count = 3
    matched_count = 2
    modified_count = 1
    upserted_count = 4
    deleted_count = 0


def test_bulk_result_from_write_result():
    result = BulkResult.from_write_result(_WriteResult())
    assert result == BulkResult(
        inserted_count=3, matched_count=2, modified_count=1, upserted_count=4, deleted_count=0, batches=1
    )


def test_bulk_results_sum_across_batches():
    total = BulkResult()
    for _ in range(3):
        previous = total
        total += BulkResult.from_write_result(_WriteResult())
        assert total.inserted_count >= previous.inserted_count
    assert total.inserted_count == 9
    assert total.upserted_count == 12
    assert total.batches == 3


def test_bulk_result_add_rejects_other_types():
    with pytest.raises(TypeError):
        BulkResult() + 1  # type: ignore[operator]
