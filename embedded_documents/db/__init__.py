"""SQLAlchemy integration - re-exports for convenience."""

from embedded_documents.db.engine import create_engine_from_settings, create_session_factory
from embedded_documents.db.models import Base, EmbeddingMixin
from embedded_documents.db.types import EmbeddedJSON, embedded_column

__all__ = [
    "Base",
    "EmbeddingMixin",
    "EmbeddedJSON",
    "embedded_column",
    "create_engine_from_settings",
    "create_session_factory",
]
