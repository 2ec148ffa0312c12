"""Identity resolution: which attribute is the primary key, and its value."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ninja_repository.codec import prepare_for_storage
from ninja_repository.exceptions import ArgumentError
from ninja_repository.schema import DocumentRegistry, default_registry


@runtime_checkable
class Identifiable(Protocol):
    """Documents that expose their own identity value."""

    def identity_of(self) -> Any: ...


class IdentityResolver:
    """Answers identity questions for registered document types.

    Backed by a :class:`DocumentRegistry`; an unregistered type raises
    :class:`~ninja_repository.exceptions.MappingError`.
    """

    def __init__(self, registry: DocumentRegistry | None = None) -> None:
        self._registry = registry if registry is not None else default_registry

    @property
    def registry(self) -> DocumentRegistry:
        return self._registry

    def field_name(self, document_type: type) -> str:
        """Return the stored element name of *document_type*'s identity attribute."""
        return self._registry.get(document_type).id_element

    def identity_value(self, document: Any) -> Any:
        """Return the identity value of *document*.

        Raises:
            ArgumentError: If *document* is ``None`` or its identity is unset.
            MappingError: If the document's type is not registered.
        """
        if document is None:
            raise ArgumentError(
                document_type="<none>",
                operation="identity_value",
                detail="Document must not be None.",
            )
        if isinstance(document, Identifiable):
            value = document.identity_of()
        else:
            mapping = self._registry.get(type(document))
            value = getattr(document, mapping.id_attribute, None)
        if value is None:
            raise ArgumentError(
                document_type=type(document).__name__,
                operation="identity_value",
                detail="Document has no identity value.",
            )
        return value

    def identity_filter(self, document_type: type, value: Any) -> dict[str, Any]:
        """Build the equality filter selecting the document with identity *value*."""
        return {self.field_name(document_type): prepare_for_storage(value)}
