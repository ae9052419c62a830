"""SQLAlchemy declarative base and the embedding mixin.

Models store embedded documents in :class:`EmbeddedJSON` columns::

    class Record(EmbeddingMixin, Base):
        __tablename__ = "marc_records"

        id: Mapped[int] = mapped_column(primary_key=True)
        fields: Mapped[Collection] = embedded_column(embeds_many())

Raw values assigned to an embedded attribute are cast on set. Before each
flush (and before each commit, since in-place changes to an embedded graph
do not dirty the session) loaded embedded values are validated, saved and,
when their serialized form differs from the last snapshot, flagged
modified.
"""

import logging
from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy import event, inspect
from sqlalchemy.orm import DeclarativeBase, Session
from sqlalchemy.orm.attributes import flag_modified

from embedded_documents.casting import DocumentType
from embedded_documents.document import ValidationIssue
from embedded_documents.embedding import assign_nested_attributes as _assign_nested_attributes
from embedded_documents.errors import InvalidEmbeddedDocumentsError
from embedded_documents.db.types import EmbeddedJSON

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def _serialize(value: Any) -> Any:
    as_json = getattr(value, "as_json", None)
    if callable(as_json):
        return as_json()
    return to_jsonable_python(value)


def _cast_on_set(document_type: DocumentType) -> Any:
    def listener(target: Any, value: Any, oldvalue: Any, initiator: Any) -> Any:
        return document_type.cast(value)

    return listener


class EmbeddingMixin:
    """Embedded document support for declarative models."""

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        mapper = inspect(cls, raiseerr=False)
        if mapper is None:
            return

        embeddings: dict[str, DocumentType] = dict(getattr(cls, "__embeddings__", {}))
        for key, column in mapper.columns.items():
            column_type = column.type
            if not isinstance(column_type, EmbeddedJSON) or column_type.document_type is not None:
                continue
            embeddings[key] = column_type.bind(cls, key)
            event.listen(
                getattr(cls, key),
                "set",
                _cast_on_set(column_type.document_type),
                retval=True,
                propagate=True,
            )
        cls.__embeddings__ = embeddings

    def _loaded_embedded_keys(self) -> list[str]:
        # Unloaded (deferred or expired) columns are left alone
        return [key for key in type(self).__embeddings__ if key in self.__dict__]

    def take_embedded_snapshot(self) -> None:
        self._embedded_snapshot = {
            key: _serialize(self.__dict__[key]) for key in self._loaded_embedded_keys()
        }

    def changed_embedded_attributes(self) -> list[str]:
        """Embedded attributes whose serialized value differs from the snapshot."""
        snapshot = getattr(self, "_embedded_snapshot", {})
        return [
            key
            for key in self._loaded_embedded_keys()
            if key not in snapshot or snapshot[key] != _serialize(self.__dict__[key])
        ]

    def embedded_changed(self) -> bool:
        return bool(self.changed_embedded_attributes())

    def embedded_valid(self) -> bool:
        """Validate every loaded embedded value; issues go to ``embedded_errors``."""
        issues = []
        for key in self._loaded_embedded_keys():
            check = getattr(self.__dict__[key], "valid", None)
            if check is not None and not check():
                issues.append(ValidationIssue(attribute=key, message="is invalid"))
        self._embedded_errors = issues
        return not issues

    @property
    def embedded_errors(self) -> list[ValidationIssue]:
        return list(getattr(self, "_embedded_errors", []))

    def save_embedded(self) -> None:
        for key in self._loaded_embedded_keys():
            save = getattr(self.__dict__[key], "save", None)
            if save is not None:
                save()

    def assign_nested_attributes(self, name: str, payload: Any) -> None:
        """Bulk setter for the embedded attribute ``name``."""
        _assign_nested_attributes(self, type(self).__embeddings__, name, payload)


def _prepare_embedded(instance: EmbeddingMixin) -> None:
    if not instance.embedded_valid():
        issues = instance.embedded_errors
        log_data = {
            "model": type(instance).__name__,
            "issues": [str(issue) for issue in issues],
        }
        logger.warning(
            f"Flush aborted: {type(instance).__name__} has invalid embedded documents",
            extra={"structured": log_data},
        )
        raise InvalidEmbeddedDocumentsError(issues)

    instance.save_embedded()

    if inspect(instance).persistent:
        for key in instance.changed_embedded_attributes():
            flag_modified(instance, key)


def _embedding_instances(session: Session) -> list[EmbeddingMixin]:
    seen: set[int] = set()
    instances = []
    for instance in [*session.new, *session.identity_map.values()]:
        if not isinstance(instance, EmbeddingMixin) or instance in session.deleted:
            continue
        if id(instance) in seen:
            continue
        seen.add(id(instance))
        instances.append(instance)
    return instances


@event.listens_for(Session, "before_commit")
def _prepare_before_commit(session: Session) -> None:
    for instance in _embedding_instances(session):
        _prepare_embedded(instance)


@event.listens_for(Session, "before_flush")
def _prepare_before_flush(session: Session, flush_context: Any, instances: Any) -> None:
    for instance in _embedding_instances(session):
        _prepare_embedded(instance)


@event.listens_for(Session, "after_flush_postexec")
def _snapshot_after_flush(session: Session, flush_context: Any) -> None:
    for instance in _embedding_instances(session):
        instance.take_embedded_snapshot()


@event.listens_for(EmbeddingMixin, "load", propagate=True)
def _snapshot_on_load(target: EmbeddingMixin, context: Any) -> None:
    target.take_embedded_snapshot()


@event.listens_for(EmbeddingMixin, "refresh", propagate=True)
def _snapshot_on_refresh(target: EmbeddingMixin, context: Any, attrs: Any) -> None:
    target.take_embedded_snapshot()
