"""Ninja Repository: generic MongoDB document repositories for Ninja Stack."""

from ninja_repository.batching import BATCH_SIZE, BulkResult, partition
from ninja_repository.codec import prepare_for_storage, restore_from_storage
from ninja_repository.connections import ConnectionManager, ConnectionProfile, InvalidConnectionURL
from ninja_repository.exceptions import ArgumentError, MappingError, RepositoryError, StoreError
from ninja_repository.factory import RepositoryFactory
from ninja_repository.identity import Identifiable, IdentityResolver
from ninja_repository.repository import AsyncRepository, Page, Repository
from ninja_repository.schema import DocumentMapping, DocumentRegistry, IdentityField, default_registry, document
from ninja_repository.sorting import SortDirection
from ninja_repository.updates import UpdateSpec, build_update_definition

__all__ = [
    "ArgumentError",
    "AsyncRepository",
    "BATCH_SIZE",
    "BulkResult",
    "ConnectionManager",
    "ConnectionProfile",
    "DocumentMapping",
    "DocumentRegistry",
    "Identifiable",
    "IdentityField",
    "IdentityResolver",
    "InvalidConnectionURL",
    "MappingError",
    "Page",
    "Repository",
    "RepositoryError",
    "RepositoryFactory",
    "SortDirection",
    "StoreError",
    "UpdateSpec",
    "build_update_definition",
    "default_registry",
    "document",
    "partition",
    "prepare_for_storage",
    "restore_from_storage",
]
