"""BSON value conversion for documents, update values and filters.

``model_dump`` in python mode keeps values BSON cannot encode (``date``,
``Decimal``, ``UUID``, enums, sets).  :func:`prepare_for_storage` maps them
onto BSON-native types on the way in; :func:`restore_from_storage` undoes the
lossy cases on the way out so pydantic can validate the result.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from bson import Binary, Decimal128
from bson.binary import UUID_SUBTYPE
from pydantic import BaseModel


def prepare_for_storage(value: Any) -> Any:
    """Return *value* with every nested element converted to a BSON-native type.

    ========================  ==========================================
    Python                    Stored as
    ========================  ==========================================
    ``BaseModel``             ``model_dump(by_alias=True)``, converted
    ``date`` (not datetime)   ``datetime`` at midnight
    ``time``                  ISO-8601 string
    ``timedelta``             seconds as ``float``
    ``Decimal``               ``Decimal128``
    ``UUID``                  ``Binary`` subtype 4
    ``Enum``                  its value, converted
    tuple / set / frozenset   list
    ========================  ==========================================

    Anything else is returned unchanged and left to the driver.
    """
    if isinstance(value, BaseModel):
        return prepare_for_storage(value.model_dump(by_alias=True))
    if isinstance(value, Mapping):
        return {str(k): prepare_for_storage(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [prepare_for_storage(v) for v in value]
    if isinstance(value, Enum):
        return prepare_for_storage(value.value)
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, time):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, UUID):
        return Binary.from_uuid(value)
    return value


def restore_from_storage(value: Any) -> Any:
    """Convert driver-only types in a stored document back to Python types."""
    if isinstance(value, Mapping):
        return {k: restore_from_storage(v) for k, v in value.items()}
    if isinstance(value, list):
        return [restore_from_storage(v) for v in value]
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, Binary) and value.subtype == UUID_SUBTYPE:
        return value.as_uuid()
    return value
