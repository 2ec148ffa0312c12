"""Shared fixtures for ninja-repository tests."""

from __future__ import annotations

import pytest
from documents import Customer, Invoice, Payment
from fakes import AsyncFakeDatabase, FakeDatabase
from ninja_repository.repository import AsyncRepository, Repository
from ninja_repository.schema import DocumentRegistry


@pytest.fixture
def registry() -> DocumentRegistry:
    reg = DocumentRegistry()
    reg.register(Invoice, collection_name="invoices")
    reg.register(Customer)
    reg.register(Payment, collection_name="payments")
    return reg


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def invoices(registry: DocumentRegistry, database: FakeDatabase) -> Repository[Invoice]:
    return Repository(Invoice, database, registry=registry)


@pytest.fixture
def customers(registry: DocumentRegistry, database: FakeDatabase) -> Repository[Customer]:
    return Repository(Customer, database, registry=registry)


@pytest.fixture
def payments(registry: DocumentRegistry, database: FakeDatabase) -> Repository[Payment]:
    return Repository(Payment, database, registry=registry)


@pytest.fixture
def async_invoices(registry: DocumentRegistry, database: FakeDatabase) -> AsyncRepository[Invoice]:
    return AsyncRepository(Invoice, AsyncFakeDatabase(database), registry=registry)


@pytest.fixture
def async_customers(registry: DocumentRegistry, database: FakeDatabase) -> AsyncRepository[Customer]:
    return AsyncRepository(Customer, AsyncFakeDatabase(database), registry=registry)
