"""Update definitions: compose field assignments into one ``$set`` update."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ninja_repository.codec import prepare_for_storage
from ninja_repository.exceptions import ArgumentError
from ninja_repository.schema import DocumentMapping

FieldAssignment = tuple[str, Any]

# Filter matching every document in a collection.
MATCH_ALL: Mapping[str, Any] = {}


class UpdateSpec:
    """Immutable, fluent partial-update specification for one document type.

    Each :meth:`set` returns a new spec; the receiver is left untouched::

        spec = UpdateSpec(mapping).set("status", "paid").set("total", 120)
        repo.update_fields(spec, where={"customer": "c-1"})

    Field names are checked against the model's declared fields.  Setting the
    same field twice keeps the last value.
    """

    __slots__ = ("_mapping", "_assignments")

    def __init__(self, mapping: DocumentMapping, assignments: tuple[FieldAssignment, ...] = ()) -> None:
        self._mapping = mapping
        self._assignments = assignments

    @property
    def mapping(self) -> DocumentMapping:
        return self._mapping

    @property
    def assignments(self) -> tuple[FieldAssignment, ...]:
        return self._assignments

    def set(self, field: str, value: Any) -> UpdateSpec:
        """Return a new spec that also sets *field* to *value*."""
        self._mapping.resolve_field(field, strict=True)
        return UpdateSpec(self._mapping, self._assignments + ((field, value),))

    def to_update(self) -> dict[str, Any]:
        """Render the MongoDB update document.

        Raises:
            ArgumentError: If no assignment was made.
        """
        return {"$set": _merge_assignments(self._mapping, self._assignments, "update_fields")}

    def __len__(self) -> int:
        return len(self._assignments)

    def __bool__(self) -> bool:
        return bool(self._assignments)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UpdateSpec):
            return NotImplemented
        return self._mapping == other._mapping and self._assignments == other._assignments

    def __hash__(self) -> int:
        return hash((self._mapping.document_type, self._assignments))

    def __repr__(self) -> str:
        return f"UpdateSpec({self._mapping.type_name}, {list(self._assignments)!r})"


def _merge_assignments(
    mapping: DocumentMapping,
    assignments: Iterable[FieldAssignment],
    operation: str,
) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for field, value in assignments:
        fields[mapping.resolve_field(field, strict=True)] = prepare_for_storage(value)
    if not fields:
        raise ArgumentError(
            document_type=mapping.type_name,
            operation=operation,
            detail="At least one field assignment is required.",
        )
    return fields


def build_update_definition(
    mapping: DocumentMapping,
    assignments: Iterable[FieldAssignment] | UpdateSpec,
    predicate: Mapping[str, Any] | None = None,
    *,
    operation: str = "update_fields",
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return the ``(filter, update)`` pair for an ``update_many`` call.

    The filter matches every document when *predicate* is ``None``.  Values in
    both the filter and the update are converted to BSON-native types.

    Raises:
        ArgumentError: If *assignments* is empty or names an undeclared field.
    """
    if isinstance(assignments, UpdateSpec):
        if assignments.mapping.document_type is not mapping.document_type:
            raise ArgumentError(
                document_type=mapping.type_name,
                operation=operation,
                detail=f"UpdateSpec was built for {assignments.mapping.type_name}.",
            )
        assignments = assignments.assignments
    update = {"$set": _merge_assignments(mapping, assignments, operation)}
    filter_ = prepare_for_storage(predicate) if predicate is not None else dict(MATCH_ALL)
    return filter_, update
