"""Sort specifications and their translation to PyMongo sort keys."""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

import pymongo

from ninja_repository.schema import DocumentMapping


class SortDirection(str, Enum):
    """Direction of one sort key."""

    ASCENDING = "asc"
    DESCENDING = "desc"


SortSpec = tuple[str, SortDirection]

_PYMONGO_DIRECTIONS = {
    SortDirection.ASCENDING: pymongo.ASCENDING,
    SortDirection.DESCENDING: pymongo.DESCENDING,
}


def to_sort_keys(mapping: DocumentMapping, sort: Sequence[SortSpec | str]) -> list[tuple[str, int]]:
    """Translate *sort* into the key list accepted by ``Cursor.sort``.

    The first spec is the primary key; later specs break ties.  A bare field
    name sorts ascending.  Directions may be given as :class:`SortDirection`
    members or their string values.
    """
    keys: list[tuple[str, int]] = []
    for spec in sort:
        if isinstance(spec, str):
            field, direction = spec, SortDirection.ASCENDING
        else:
            field, direction = spec
        keys.append((mapping.resolve_field(field), _PYMONGO_DIRECTIONS[SortDirection(direction)]))
    return keys
