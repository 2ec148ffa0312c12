"""Document mappings and the process-wide document registry.

A :class:`DocumentMapping` records, for one pydantic document type, which
attribute is its identity, the element name that attribute is stored under,
and the collection that holds the documents.  Mappings are registered once at
start-up and queried by the repository core.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.fields import FieldInfo

from ninja_repository.codec import prepare_for_storage, restore_from_storage
from ninja_repository.exceptions import ArgumentError, MappingError

TModel = TypeVar("TModel", bound=BaseModel)

# Element name MongoDB reserves for the primary key.
MONGO_ID = "_id"


def IdentityField(*args: Any, **kwargs: Any) -> Any:  # noqa: N802 - mirrors pydantic.Field
    """Declare a model field as the document's identity attribute.

    Accepts the same arguments as :func:`pydantic.Field` and tags the field
    with ``primary_key`` so :meth:`DocumentRegistry.register` finds it::

        class Invoice(BaseModel):
            number: str = IdentityField()
            total: float = 0.0
    """
    extra = kwargs.pop("json_schema_extra", None)
    merged: dict[str, Any] = dict(extra) if isinstance(extra, dict) else {}
    merged["primary_key"] = True
    return Field(*args, json_schema_extra=merged, **kwargs)


def _is_primary_key(info: FieldInfo) -> bool:
    extra = info.json_schema_extra
    return isinstance(extra, dict) and extra.get("primary_key") is True


def _element_name(name: str, info: FieldInfo) -> str:
    """Return the key a field is stored under when dumped by alias."""
    return info.serialization_alias or info.alias or name


class DocumentMapping(BaseModel):
    """Storage mapping for one document type."""

    document_type: type[BaseModel] = Field(description="The pydantic model class.")
    id_attribute: str = Field(min_length=1, description="Python attribute holding the identity value.")
    id_element: str = Field(min_length=1, description="Stored element name of the identity attribute.")
    collection_name: str = Field(min_length=1, description="Collection the documents live in.")

    model_config = ConfigDict(frozen=True)

    @field_validator("collection_name")
    @classmethod
    def validate_collection_name(cls, v: str) -> str:
        """Reject names MongoDB refuses for collections."""
        if "$" in v or "\x00" in v or v.startswith("system."):
            raise ValueError(f"Collection name {v!r} is not allowed.")
        return v

    @property
    def type_name(self) -> str:
        return self.document_type.__name__

    def resolve_field(self, field: str, *, strict: bool = False) -> str:
        """Translate an attribute path into the stored element path.

        Only the first segment of a dotted path is translated; nested segments
        are passed through.  Element names that are already aliases are
        accepted as-is.  With ``strict=True`` a first segment that is neither a
        declared attribute nor an alias raises :class:`ArgumentError`.
        """
        if not field:
            raise ArgumentError(
                document_type=self.type_name,
                operation="resolve_field",
                detail="Field name must not be empty.",
            )
        head, sep, rest = field.partition(".")
        fields = self.document_type.model_fields
        if head in fields:
            return _element_name(head, fields[head]) + sep + rest
        if head in {_element_name(name, info) for name, info in fields.items()}:
            return field
        if strict:
            raise ArgumentError(
                document_type=self.type_name,
                operation="resolve_field",
                detail=f"{head!r} is not a declared field of {self.type_name}.",
            )
        return field

    def to_storage(self, document: BaseModel) -> dict[str, Any]:
        """Dump *document* into a fresh, BSON-encodable dict keyed by element names."""
        return prepare_for_storage(document.model_dump(by_alias=True))

    def from_storage(self, raw: dict[str, Any]) -> Any:
        """Hydrate a stored document into the mapped model type.

        A server-generated ``_id`` is dropped when the model does not map it.
        """
        data = restore_from_storage(dict(raw))
        if self.id_element != MONGO_ID and MONGO_ID in data:
            mapped = {_element_name(n, i) for n, i in self.document_type.model_fields.items()}
            if MONGO_ID not in mapped:
                data.pop(MONGO_ID)
        return self.document_type.model_validate(data)


class DocumentRegistry:
    """Maps document types to their :class:`DocumentMapping`.

    Populated at start-up, read by every repository afterwards.  Identity
    discovery at registration time, in order:

    1. an explicit ``id_field`` argument;
    2. the single field declared with :func:`IdentityField`;
    3. a field stored as ``_id`` (by alias), else a field named ``id``.
    """

    def __init__(self) -> None:
        self._mappings: dict[type, DocumentMapping] = {}

    def register(
        self,
        document_type: type[BaseModel],
        *,
        id_field: str | None = None,
        collection_name: str | None = None,
    ) -> DocumentMapping:
        """Register *document_type* and return its mapping.

        Registering the same type again replaces the previous mapping.
        """
        if not (isinstance(document_type, type) and issubclass(document_type, BaseModel)):
            raise MappingError(
                document_type=getattr(document_type, "__name__", repr(document_type)),
                operation="register",
                detail="Document types must be pydantic BaseModel subclasses.",
            )
        id_attribute = _discover_identity(document_type, id_field)
        info = document_type.model_fields[id_attribute]
        mapping = DocumentMapping(
            document_type=document_type,
            id_attribute=id_attribute,
            id_element=_element_name(id_attribute, info),
            collection_name=collection_name or document_type.__name__,
        )
        self._mappings[document_type] = mapping
        return mapping

    def get(self, document_type: type) -> DocumentMapping:
        """Return the mapping for *document_type* or raise :class:`MappingError`."""
        mapping = self._mappings.get(document_type)
        if mapping is None:
            raise MappingError(
                document_type=getattr(document_type, "__name__", repr(document_type)),
                operation="get_mapping",
                detail="No identity attribute is registered for this type.",
            )
        return mapping

    def unregister(self, document_type: type) -> None:
        self._mappings.pop(document_type, None)

    def clear(self) -> None:
        self._mappings.clear()

    def __contains__(self, document_type: object) -> bool:
        return document_type in self._mappings

    def __len__(self) -> int:
        return len(self._mappings)


def _discover_identity(document_type: type[BaseModel], id_field: str | None) -> str:
    name = document_type.__name__
    fields = document_type.model_fields

    if id_field is not None:
        if id_field not in fields:
            raise MappingError(
                document_type=name,
                operation="register",
                detail=f"Identity field {id_field!r} is not a declared field.",
            )
        return id_field

    tagged = [f for f, info in fields.items() if _is_primary_key(info)]
    if len(tagged) > 1:
        raise MappingError(
            document_type=name,
            operation="register",
            detail=f"Multiple identity fields declared: {tagged}",
        )
    if tagged:
        return tagged[0]

    for f, info in fields.items():
        if _element_name(f, info) == MONGO_ID:
            return f
    if "id" in fields:
        return "id"

    raise MappingError(
        document_type=name,
        operation="register",
        detail="Document type must declare exactly one identity field.",
    )


default_registry = DocumentRegistry()


def document(
    cls: type[TModel] | None = None,
    *,
    id_field: str | None = None,
    collection_name: str | None = None,
    registry: DocumentRegistry | None = None,
) -> Any:
    """Class decorator registering a model with a :class:`DocumentRegistry`.

    Usable bare (``@document``) or with options
    (``@document(collection_name="invoices")``).
    """
    target = registry if registry is not None else default_registry

    def wrap(model: type[TModel]) -> type[TModel]:
        target.register(model, id_field=id_field, collection_name=collection_name)
        return model

    if cls is not None:
        return wrap(cls)
    return wrap
