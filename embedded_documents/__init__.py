"""Embedded documents - re-exports for convenience."""

from embedded_documents.casting import (
    CastType,
    ContextualCast,
    DocumentCast,
    DocumentType,
    TypeRegistry,
    ValueCast,
    infer_class_name,
    resolve_class,
)
from embedded_documents.collecting import Collecting, Collection
from embedded_documents.config import EmbeddingSettings, get_settings
from embedded_documents.document import (
    Document,
    ValidationIssue,
    matches,
    presence,
    validates,
)
from embedded_documents.embedding import Embedding, embeds_many, embeds_one
from embedded_documents.errors import (
    EmbeddingError,
    ForbiddenAttributesError,
    IdentityNotFoundError,
    IndexOutOfRangeError,
    InvalidEmbeddedDocumentsError,
    ShapeError,
    TypeMismatchError,
    UnknownAttributeError,
    UnresolvedNameError,
)
from embedded_documents.identity import (
    IdentityGenerator,
    MonotonicIdentity,
    SequentialIdentity,
    default_identity,
)
from embedded_documents.mass_assignment import Parameters, sanitize_for_mass_assignment

__all__ = [
    # Documents
    "Document",
    "ValidationIssue",
    "validates",
    "presence",
    "matches",
    # Declarations
    "Embedding",
    "embeds_many",
    "embeds_one",
    # Collections
    "Collecting",
    "Collection",
    # Casting
    "CastType",
    "ValueCast",
    "DocumentCast",
    "ContextualCast",
    "DocumentType",
    "TypeRegistry",
    "infer_class_name",
    "resolve_class",
    # Identity
    "IdentityGenerator",
    "MonotonicIdentity",
    "SequentialIdentity",
    "default_identity",
    # Mass assignment
    "Parameters",
    "sanitize_for_mass_assignment",
    # Configuration
    "EmbeddingSettings",
    "get_settings",
    # Errors
    "EmbeddingError",
    "ShapeError",
    "TypeMismatchError",
    "IdentityNotFoundError",
    "IndexOutOfRangeError",
    "UnknownAttributeError",
    "UnresolvedNameError",
    "ForbiddenAttributesError",
    "InvalidEmbeddedDocumentsError",
]
