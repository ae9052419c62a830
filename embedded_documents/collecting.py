"""Embedded collections and bulk attribute reconciliation.

``Collecting`` is the base for pluggable collection containers; subclass it
to customize a container and pass the subclass to ``embeds_many``.
``Collection`` is the default.
"""

import json
import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from pydantic import GetCoreSchemaHandler, ValidationError
from pydantic_core import core_schema, to_jsonable_python

from embedded_documents.errors import (
    IdentityNotFoundError,
    IndexOutOfRangeError,
    ShapeError,
    TypeMismatchError,
)
from embedded_documents.mass_assignment import sanitize_for_mass_assignment
from embedded_documents.utils.logging import structured_logger

_POSITION_KEY = re.compile(r"-?\d+")


def _is_list_payload(payload: Any) -> bool:
    return isinstance(payload, Sequence) and not isinstance(payload, (str, bytes, bytearray))


def fetch_id(attributes: Mapping[str, Any]) -> tuple[Any, Mapping[str, Any]]:
    """Split the identity out of one payload entry.

    Blank ids (``None`` or ``""``, as sent by empty form fields) count as
    absent and are dropped from the returned attributes.

    Returns:
        Tuple of (id or None, attributes to assign)
    """
    document_id = attributes.get("id")
    if document_id is None or document_id == "":
        return None, {key: value for key, value in attributes.items() if key != "id"}
    return document_id, attributes


def _serialize(document: Any) -> Any:
    as_json = getattr(document, "as_json", None)
    if callable(as_json):
        return as_json()
    return to_jsonable_python(document)


class Collecting:
    """Ordered, type-homogeneous container of embedded documents."""

    def __init__(self, documents: Iterable[Any] = (), document_class: type | None = None) -> None:
        documents = list(documents)

        if document_class is None and documents:
            document_class = type(documents[0])

        self.document_class = document_class
        self._check_types(documents)
        self._documents = documents

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.is_instance_schema(
            cls,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda collection: collection.as_json()
            ),
        )

    @property
    def documents(self) -> list[Any]:
        """Live backing list."""
        return self._documents

    def to_list(self) -> list[Any]:
        return list(self._documents)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __getitem__(self, index: int) -> Any:
        return self._documents[index]

    def __contains__(self, document: object) -> bool:
        return document in self._documents

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Collecting):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.document_class is other.document_class
            and self._documents == other._documents
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._documents!r})"

    def _check_types(self, documents: list[Any]) -> None:
        if self.document_class is None:
            return
        if not all(isinstance(document, self.document_class) for document in documents):
            raise TypeMismatchError(
                f"Expected arguments to be of class {self.document_class.__name__}"
            )

    # Lookup and construction

    def find(self, document_id: Any) -> Any | None:
        """Return the first document whose id equals ``document_id``.

        The id is cast through the document class's ``id`` attribute first,
        so ``"7"`` finds the document with integer id 7.
        """
        cast_id = getattr(self.document_class, "cast_id", None)
        if cast_id is not None:
            try:
                document_id = cast_id(document_id)
            except ValidationError:
                return None

        for document in self._documents:
            if getattr(document, "id", None) == document_id:
                return document
        return None

    def build(self, attributes: Any = None) -> Any:
        """Build and append new documents.

        Args:
            attributes: Attribute mapping for one document, or a list of
                mappings for several

        Returns:
            The new document, or a list of new documents in input order

        Raises:
            ShapeError: If attributes is neither a mapping nor a list
            TypeMismatchError: If the collection has no document class yet
        """
        if attributes is None:
            attributes = {}

        if isinstance(attributes, Mapping):
            if self.document_class is None:
                raise TypeMismatchError(
                    f"{type(self).__name__} has no document class to build from"
                )
            document = self.document_class(attributes)
            self.push(document)
            return document

        if _is_list_payload(attributes):
            return [self.build(document_attributes) for document_attributes in attributes]

        raise ShapeError(
            f"Expected attributes to be a mapping or a list, but got {type(attributes).__name__}"
        )

    def push(self, *documents: Any) -> "Collecting":
        """Append documents, flattening nested lists one level.

        Every argument is type checked before the collection is touched.
        """
        flattened: list[Any] = []
        for document in documents:
            if isinstance(document, (list, tuple)):
                flattened.extend(document)
            else:
                flattened.append(document)

        if not flattened:
            return self

        if self.document_class is None:
            self.document_class = type(flattened[0])

        self._check_types(flattened)
        self._documents.extend(flattened)
        return self

    append = push

    def __lshift__(self, document: Any) -> "Collecting":
        return self.push(document)

    # Lifecycle

    def save(self) -> bool:
        """Save every document; True iff all of them saved.

        Every document is attempted even after a failure, so each invalid
        document collects its own errors.
        """
        results = [self._call(document, "save") for document in self._documents]
        return all(results)

    def valid(self) -> bool:
        """Validate every document; True iff all of them are valid."""
        results = [self._call(document, "valid") for document in self._documents]
        return all(results)

    @staticmethod
    def _call(document: Any, method: str) -> bool:
        # Plain objects carried by custom cast types have no lifecycle
        bound = getattr(document, method, None)
        if bound is None:
            return True
        return bool(bound())

    def as_json(self) -> list[Any]:
        return [_serialize(document) for document in self._documents]

    def to_json(self) -> str:
        return json.dumps(self.as_json())

    # Reconciliation

    def attributes_assign(self, payload: Any) -> None:
        """Reconcile a bulk payload against the embedded documents.

        A mapping payload is keyed by position: each entry updates the
        document matched by its ``id``, or else the document at the
        position given by its key. A list payload updates the document
        matched by each entry's ``id``, or else builds a new one. Nothing
        is ever removed.

        Shape errors, unknown ids and bad positions are detected before
        any document is touched. A casting failure inside one entry can
        still leave earlier entries applied.

        Raises:
            ForbiddenAttributesError: If payload is unpermitted Parameters
            ShapeError: If payload or one of its entries has the wrong shape
            IdentityNotFoundError: If an entry's id matches no document
            IndexOutOfRangeError: If a positional key has no document
        """
        payload = sanitize_for_mass_assignment(payload)

        if isinstance(payload, Mapping):
            self._assign_indexed(payload)
        elif _is_list_payload(payload):
            self._assign_listed(payload)
        else:
            raise ShapeError(
                f"Expected attributes to be a mapping or a list, but got {type(payload).__name__}"
            )

    def _assign_indexed(self, payload: Mapping[Any, Any]) -> None:
        entries = list(payload.items())
        self._check_entries(attributes for _, attributes in entries)

        plan = []
        for key, attributes in entries:
            document_id, attributes = fetch_id(attributes)
            if document_id is not None:
                target = self._find_or_raise(document_id)
            else:
                target = self._at_position(key)
            plan.append((target, attributes))

        for target, attributes in plan:
            target.attributes_assign(attributes)

        structured_logger.log_reconciliation(self, "indexed", updated=len(plan), built=0)

    def _assign_listed(self, payload: Sequence[Any]) -> None:
        self._check_entries(payload)

        plan = []
        for attributes in payload:
            document_id, attributes = fetch_id(attributes)
            target = self._find_or_raise(document_id) if document_id is not None else None
            plan.append((target, attributes))

        built = 0
        for target, attributes in plan:
            if target is None:
                target = self.build({})
                built += 1
            target.attributes_assign(attributes)

        structured_logger.log_reconciliation(self, "listed", updated=len(plan) - built, built=built)

    @staticmethod
    def _check_entries(entries: Iterable[Any]) -> None:
        for attributes in entries:
            if not isinstance(attributes, Mapping):
                raise ShapeError(
                    f"Expected each entry to be a mapping, but got {type(attributes).__name__}"
                )

    def _find_or_raise(self, document_id: Any) -> Any:
        document = self.find(document_id)
        if document is None:
            raise IdentityNotFoundError(document_id)
        return document

    def _at_position(self, key: Any) -> Any:
        if isinstance(key, int) and not isinstance(key, bool):
            position = key
        elif isinstance(key, str) and _POSITION_KEY.fullmatch(key):
            position = int(key)
        else:
            raise ShapeError(f"Expected a positional key, but got {key!r}")

        if not 0 <= position < len(self._documents):
            raise IndexOutOfRangeError(position, len(self._documents))
        return self._documents[position]


class Collection(Collecting):
    """Default embedded collection."""

    pass
