"""JSON column type storing an embedded document graph."""

from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy import JSON
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import MappedColumn, mapped_column
from sqlalchemy.types import TypeDecorator

from embedded_documents.casting import DocumentType
from embedded_documents.document import Document
from embedded_documents.embedding import Embedding, find_embedding


class EmbeddedJSON(TypeDecorator[Any]):
    """JSON column whose values are cast through an embedding declaration.

    The column is unbound until :class:`EmbeddingMixin` binds it to its
    model attribute; unbound columns load raw JSON.
    """

    impl = JSON
    cache_ok = True

    def __init__(self, embedding: Embedding) -> None:
        super().__init__()
        self.embedding = embedding
        self.document_type: DocumentType | None = None

    def bind(self, owner: type, name: str) -> DocumentType:
        self.document_type = self.embedding.bind(
            owner, name, base=Document, registry=getattr(owner, "type_registry", None)
        )
        return self.document_type

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        as_json = getattr(value, "as_json", None)
        if callable(as_json):
            return as_json()
        return to_jsonable_python(value)

    def process_result_value(self, value: Any, dialect: Dialect) -> Any:
        if self.document_type is None:
            return value
        return self.document_type.cast(value)


def embedded_column(embedding: Any, **kwargs: Any) -> MappedColumn[Any]:
    """Map an embedded attribute onto a JSON column.

    Args:
        embedding: Result of ``embeds_many()`` / ``embeds_one()``
        kwargs: Passed through to ``mapped_column``

    Returns:
        Mapped column for a ``Mapped[...]`` annotation
    """
    if not isinstance(embedding, Embedding):
        declared = find_embedding(getattr(embedding, "metadata", []))
        if declared is None:
            raise TypeError(f"Expected embeds_many() or embeds_one(), but got {embedding!r}")
        embedding = declared
    kwargs.setdefault("nullable", True)
    return mapped_column(EmbeddedJSON(embedding), **kwargs)
