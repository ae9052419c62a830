"""Type-cast resolver: turns raw attribute values into embedded documents.

Cast types form a small closed set behind the ``CastType`` protocol:

* ``DocumentCast`` - instantiate a document class from an attribute mapping
* ``ValueCast`` - passthrough base for custom cast types
* ``ContextualCast`` - stateful cast type that attaches a context object
  to everything it produces

``DocumentType`` wraps one of these for a single embedded attribute and
adds the collection wrapping used by ``embeds_many``.
"""

import copy
import importlib
import sys
from collections.abc import Callable, Mapping
from functools import cached_property
from typing import Any, Protocol

import inflect
from pydantic import BaseModel

from embedded_documents.collecting import Collecting, Collection
from embedded_documents.errors import ShapeError, TypeMismatchError, UnresolvedNameError

_inflector = inflect.engine()


class CastType(Protocol):
    """Converts one raw value into a typed value."""

    def cast(self, value: Any) -> Any:
        ...


def infer_class_name(attr_name: str) -> str:
    """Derive a class name from an attribute name.

    The last word is singularized and every word is capitalized:
    ``subfields`` -> ``Subfield``, ``marc_fields`` -> ``MarcField``.
    """
    words = [word for word in attr_name.split("_") if word]
    if not words:
        raise UnresolvedNameError(f"Cannot infer a class name from {attr_name!r}")

    singular = _inflector.singular_noun(words[-1])
    if singular:
        words[-1] = singular

    return "".join(word[:1].upper() + word[1:] for word in words)


def _all_subclasses(cls: type) -> list[type]:
    """Recursively collect *all* subclasses of ``cls``."""
    subs: list[type] = []
    for sub in cls.__subclasses__():
        subs.append(sub)
        subs.extend(_all_subclasses(sub))
    return subs


def _lexical_scopes(owner: type) -> list[Any]:
    """Owner, its enclosing classes (innermost first), then its module."""
    scopes: list[Any] = [owner]
    module = sys.modules.get(owner.__module__)
    enclosing_names = owner.__qualname__.split(".")[:-1]

    if module is not None and "<locals>" not in enclosing_names:
        enclosing: list[Any] = []
        scope: Any = module
        for name in enclosing_names:
            scope = getattr(scope, name, None)
            if scope is None:
                break
            enclosing.append(scope)
        scopes.extend(reversed(enclosing))

    if module is not None:
        scopes.append(module)
    return scopes


def _walk(scope: Any, dotted: str) -> Any:
    for part in dotted.split("."):
        scope = getattr(scope, part, None)
        if scope is None:
            return None
    return scope


def resolve_class(name: str, owner: type | None, base: type) -> type:
    """Resolve a class name the way a class body would see it.

    ``module.path:Qual.Name`` is imported directly. Otherwise the name is
    looked up on the owner, its enclosing classes and its module, then
    ``module.path.Name`` is tried as an import. As a last resort the
    unique subclass of ``base`` with that ``__name__`` is used, which also
    finds classes declared inside functions.

    Raises:
        UnresolvedNameError: If nothing or more than one class matches.
    """
    if ":" in name:
        module_name, qualname = name.split(":", 1)
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            raise UnresolvedNameError(f"Cannot import module for {name!r}") from exc
        found = _walk(module, qualname)
        if isinstance(found, type):
            return found
        raise UnresolvedNameError(f"{name!r} does not name a class")

    if owner is not None:
        for scope in _lexical_scopes(owner):
            found = _walk(scope, name)
            if isinstance(found, type):
                return found

    if "." in name:
        module_name, class_name = name.rsplit(".", 1)
        try:
            found = getattr(importlib.import_module(module_name), class_name, None)
        except ImportError:
            found = None
        if isinstance(found, type):
            return found

    simple_name = name.rsplit(".", 1)[-1]
    candidates = list(
        dict.fromkeys(sub for sub in _all_subclasses(base) if sub.__name__ == simple_name)
    )
    if len(candidates) == 1:
        return candidates[0]
    if candidates:
        raise UnresolvedNameError(
            f"{name!r} is ambiguous: {', '.join(c.__qualname__ for c in candidates)}"
        )
    raise UnresolvedNameError(f"Cannot resolve class {name!r}")


class DocumentCast:
    """Default cast type: builds instances of one document class.

    The class may be given as a name; it is resolved relative to ``owner``
    on first use.
    """

    def __init__(self, document_class: type | str, *, owner: type | None = None, base: type = object) -> None:
        self._target = document_class
        self.owner = owner
        self.base = base

    @cached_property
    def document_class(self) -> type:
        if isinstance(self._target, type):
            return self._target
        return resolve_class(self._target, self.owner, self.base)

    def cast(self, value: Any) -> Any:
        if value is None:
            return None

        document_class = self.document_class
        if isinstance(value, document_class):
            return value
        if isinstance(value, Mapping):
            return document_class(value)
        if isinstance(value, BaseModel):
            raise TypeMismatchError(
                f"Expected {document_class.__name__}, but got {type(value).__name__}"
            )
        raise ShapeError(
            f"Expected attributes for {document_class.__name__} to be a mapping, "
            f"but got {type(value).__name__}"
        )

    def __repr__(self) -> str:
        target = self._target if isinstance(self._target, str) else self._target.__name__
        return f"DocumentCast({target!r})"


class ValueCast:
    """Passthrough cast type; subclass it to build custom cast types."""

    def cast(self, value: Any) -> Any:
        return value


def attach_context(value: Any, context: Any) -> None:
    bind_context = getattr(value, "bind_context", None)
    if callable(bind_context):
        bind_context(context)
    else:
        value.context = context


class ContextualCast(ValueCast):
    """Cast type carrying a context attached to every value it produces.

    A cast type declared without a context receives the declaring class
    when the embedding is bound.
    """

    def __init__(self, context: Any = None) -> None:
        self.context = context

    def with_context(self, context: Any) -> "ContextualCast":
        bound = copy.copy(self)
        bound.context = context
        return bound

    def cast(self, value: Any) -> Any:
        value = super().cast(value)
        if value is not None:
            attach_context(value, self.context)
        return value


class TypeRegistry:
    """Named custom cast types.

    Registries are plain objects handed to the classes that use them,
    either through ``embeds_many(registry=...)`` or a ``type_registry``
    class variable.
    """

    def __init__(self) -> None:
        self._factories: dict[str, Callable[[], Any]] = {}

    def register(self, name: str, factory: Callable[[], Any], *, override: bool = False) -> None:
        """Register a cast type factory under ``name``.

        Raises:
            ValueError: If name is taken and override is False.
        """
        if name in self._factories and not override:
            raise ValueError(f"Cast type {name!r} is already registered")
        self._factories[name] = factory

    def lookup(self, name: str) -> Any:
        """Instantiate the cast type registered under ``name``."""
        try:
            factory = self._factories[name]
        except KeyError:
            raise UnresolvedNameError(f"Unknown cast type {name!r}") from None
        return factory()

    def __contains__(self, name: object) -> bool:
        return name in self._factories


class DocumentType:
    """Caster for one embedded attribute.

    Single embeddings cast straight through ``cast_type``; many embeddings
    cast each element and wrap the result in ``collection_class``.
    """

    def __init__(
        self,
        cast_type: Any,
        *,
        many: bool = False,
        collection_class: type[Collecting] | str | None = None,
        owner: type | None = None,
        embedding: Any = None,
    ) -> None:
        self.cast_type = cast_type
        self.many = many
        self.owner = owner
        self.embedding = embedding
        self._collection_target = collection_class or (Collection if many else None)

    @cached_property
    def collection_class(self) -> type[Collecting] | None:
        target = self._collection_target
        if target is None or isinstance(target, type):
            return target
        return resolve_class(target, self.owner, Collecting)

    @property
    def document_class(self) -> type | None:
        """Declared element class, or None when the cast type declares none."""
        return getattr(self.cast_type, "document_class", None)

    def cast(self, value: Any) -> Any:
        if not self.many:
            return self.cast_type.cast(value)

        collection_class = self.collection_class
        if value is None:
            return collection_class([], document_class=self.document_class)
        if isinstance(value, collection_class) and self._holds_declared_class(value):
            return value
        if isinstance(value, Collecting):
            value = value.to_list()

        if isinstance(value, (list, tuple)):
            documents = [self.cast_type.cast(element) for element in value]
            return collection_class(documents, document_class=self.document_class)

        raise ShapeError(
            f"Expected a list of documents for {collection_class.__name__}, "
            f"but got {type(value).__name__}"
        )

    def _holds_declared_class(self, collection: Collecting) -> bool:
        declared = self.document_class
        if declared is None:
            return True
        held = collection.document_class
        return isinstance(held, type) and issubclass(held, declared)

    def __repr__(self) -> str:
        kind = "many" if self.many else "one"
        return f"DocumentType({kind}, {self.cast_type!r})"
