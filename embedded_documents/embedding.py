"""Declaration layer: ``embeds_many`` / ``embeds_one``.

Both helpers are used as field defaults in a ``Document`` body::

    class Field(Document):
        tag: str | None = None
        subfields: Collection = embeds_many()

Each returns a pydantic ``FieldInfo`` carrying an :class:`Embedding`
marker. When the owning class is created the marker is bound to the
attribute name and compiled into a :class:`DocumentType`; the resulting
``{name: DocumentType}`` table is what casting and bulk assignment
consult. The same markers drive ``embedded_column`` on SQLAlchemy models.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import Field, GetCoreSchemaHandler
from pydantic_core import CoreSchema

from embedded_documents.casting import (
    ContextualCast,
    DocumentCast,
    DocumentType,
    TypeRegistry,
    infer_class_name,
)
from embedded_documents.collecting import Collecting
from embedded_documents.errors import UnknownAttributeError, UnresolvedNameError


@dataclass(eq=False)
class Embedding:
    """Unbound declaration of one embedded attribute."""

    many: bool
    document_class: type | str | None = None
    cast_type: Any = None
    collection: type[Collecting] | str | None = None
    registry: TypeRegistry | None = None

    def __get_pydantic_core_schema__(self, source_type: Any, handler: GetCoreSchemaHandler) -> CoreSchema:
        return handler(source_type)

    def bind(
        self,
        owner: type,
        name: str,
        *,
        base: type,
        registry: TypeRegistry | None = None,
    ) -> DocumentType:
        """Compile this declaration for attribute ``name`` of ``owner``.

        An explicit cast type disables class inference; otherwise the
        element class is the declared one or is inferred from ``name``.
        """
        if self.cast_type is not None:
            cast_type = self._lookup_cast_type(owner, registry)
        else:
            cast_type = DocumentCast(
                self.document_class or infer_class_name(name), owner=owner, base=base
            )

        return DocumentType(
            cast_type,
            many=self.many,
            collection_class=self.collection,
            owner=owner,
            embedding=self,
        )

    def _lookup_cast_type(self, owner: type, registry: TypeRegistry | None) -> Any:
        cast_type = self.cast_type

        if isinstance(cast_type, str):
            registry = self.registry or registry
            if registry is None:
                raise UnresolvedNameError(
                    f"Cast type {cast_type!r} on {owner.__name__} needs a type registry"
                )
            cast_type = registry.lookup(cast_type)

        if isinstance(cast_type, ContextualCast) and cast_type.context is None:
            cast_type = cast_type.with_context(owner)

        return cast_type


def embeds_many(
    document_class: type | str | None = None,
    *,
    cast_type: Any = None,
    collection: type[Collecting] | str | None = None,
    registry: TypeRegistry | None = None,
) -> Any:
    """Declare an attribute holding a collection of embedded documents.

    Args:
        document_class: Element class or class name; inferred from the
            attribute name when omitted
        cast_type: Cast type instance or registered cast type name
        collection: Collection class or name (default ``Collection``)
        registry: Registry for named cast types

    Returns:
        Field default for the attribute
    """
    return _embedded_field(
        Embedding(
            many=True,
            document_class=document_class,
            cast_type=cast_type,
            collection=collection,
            registry=registry,
        )
    )


def embeds_one(
    document_class: type | str | None = None,
    *,
    cast_type: Any = None,
    registry: TypeRegistry | None = None,
) -> Any:
    """Declare an attribute holding a single embedded document."""
    return _embedded_field(
        Embedding(many=False, document_class=document_class, cast_type=cast_type, registry=registry)
    )


def _embedded_field(embedding: Embedding) -> Any:
    field = Field(default=None, validate_default=True)
    field.metadata.append(embedding)
    return field


def find_embedding(metadata: list[Any]) -> Embedding | None:
    for item in metadata:
        if isinstance(item, Embedding):
            return item
    return None


def bind_embeddings(
    owner: type,
    fields: Mapping[str, Any],
    inherited: Mapping[str, DocumentType],
    *,
    base: type,
    registry: TypeRegistry | None,
) -> dict[str, DocumentType]:
    """Build the ``{name: DocumentType}`` table for a document class.

    Bindings inherited unchanged from a parent class are reused.
    """
    table: dict[str, DocumentType] = {}
    for name, field_info in fields.items():
        embedding = find_embedding(field_info.metadata)
        if embedding is None:
            continue
        parent = inherited.get(name)
        if parent is not None and parent.embedding is embedding:
            table[name] = parent
        else:
            table[name] = embedding.bind(owner, name, base=base, registry=registry)
    return table


def assign_nested_attributes(
    holder: Any,
    embeddings: Mapping[str, DocumentType],
    name: str,
    payload: Any,
) -> None:
    """Bulk-assign ``payload`` onto the embedded attribute ``name`` of ``holder``.

    Many embeddings reconcile the payload against their collection; single
    embeddings update the current document or, when there is none, cast
    the payload into a new one.

    Raises:
        UnknownAttributeError: If name is not an embedded attribute.
    """
    document_type = embeddings.get(name)
    if document_type is None:
        raise UnknownAttributeError(f"{type(holder).__name__} has no embedded attribute {name!r}")

    current = getattr(holder, name)

    if current is None:
        if not document_type.many:
            setattr(holder, name, payload)
            return
        setattr(holder, name, document_type.cast(None))
        current = getattr(holder, name)

    current.attributes_assign(payload)
