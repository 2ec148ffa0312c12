"""Repository factory: one cached repository per document type and profile."""

from __future__ import annotations

from typing import Any

from ninja_repository.connections import ConnectionManager
from ninja_repository.repository import AsyncRepository, Repository
from ninja_repository.schema import DocumentRegistry, default_registry


class RepositoryFactory:
    """Builds repositories for registered document types.

    Databases come from the :class:`ConnectionManager`; collection names come
    from the :class:`DocumentRegistry`.  Custom repositories registered via
    :meth:`register` take precedence.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        registry: DocumentRegistry | None = None,
    ) -> None:
        self._connection_manager = connection_manager
        self._registry = registry if registry is not None else default_registry
        self._repositories: dict[tuple[type, str], Repository[Any]] = {}
        self._async_repositories: dict[tuple[type, str], AsyncRepository[Any]] = {}
        self._overrides: dict[type, Repository[Any] | AsyncRepository[Any]] = {}

    def register(self, document_type: type, repository: Repository[Any] | AsyncRepository[Any]) -> None:
        """Register a custom repository override for a document type."""
        self._overrides[document_type] = repository

    def get_repository(self, document_type: type, profile_name: str = "default") -> Repository[Any]:
        """Return the blocking repository for *document_type*."""
        override = self._overrides.get(document_type)
        if isinstance(override, Repository):
            return override
        key = (document_type, profile_name)
        if key not in self._repositories:
            database = self._connection_manager.get_database(profile_name)
            self._repositories[key] = Repository(document_type, database, registry=self._registry)
        return self._repositories[key]

    def get_async_repository(self, document_type: type, profile_name: str = "default") -> AsyncRepository[Any]:
        """Return the non-blocking repository for *document_type*."""
        override = self._overrides.get(document_type)
        if isinstance(override, AsyncRepository):
            return override
        key = (document_type, profile_name)
        if key not in self._async_repositories:
            database = self._connection_manager.get_async_database(profile_name)
            self._async_repositories[key] = AsyncRepository(document_type, database, registry=self._registry)
        return self._async_repositories[key]
