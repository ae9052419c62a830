"""Error types raised by embedded documents, collections and casting.

Shape, type and identity errors are contract violations: they are raised
synchronously and never recovered internally. Validation failures are not
errors; ``valid()`` and ``save()`` report them as booleans.
"""

from typing import Any


class EmbeddingError(Exception):
    """Base class for all embedded document errors."""

    pass


class ShapeError(EmbeddingError, TypeError):
    """Payload is not a mapping or a list of mappings."""

    pass


class TypeMismatchError(EmbeddingError, TypeError):
    """Element is not an instance of the collection's document class."""

    pass


class IdentityNotFoundError(EmbeddingError, LookupError):
    """Payload entry references an id that matches no embedded document."""

    def __init__(self, document_id: Any) -> None:
        super().__init__(f"Couldn't find embedded document with id={document_id!r}")
        self.document_id = document_id


class IndexOutOfRangeError(EmbeddingError, IndexError):
    """Positional payload key has no corresponding embedded document."""

    def __init__(self, position: int, size: int) -> None:
        super().__init__(f"No embedded document at position {position} (collection size {size})")
        self.position = position
        self.size = size


class UnknownAttributeError(EmbeddingError, AttributeError):
    """Attribute name is not declared on the document."""

    pass


class UnresolvedNameError(EmbeddingError, LookupError):
    """Class, collection or cast type name could not be resolved."""

    pass


class ForbiddenAttributesError(EmbeddingError):
    """Unpermitted parameters reached mass assignment."""

    pass


class InvalidEmbeddedDocumentsError(EmbeddingError):
    """Flush aborted because embedded documents failed validation."""

    def __init__(self, issues: list[Any]) -> None:
        details = ", ".join(f"{issue.attribute} {issue.message}" for issue in issues)
        super().__init__(f"Embedded documents are invalid: {details}")
        self.issues = issues
