"""Document base model: typed attributes, identity, validity and save lifecycle."""

import json
import re
from collections.abc import Callable, Mapping
from functools import lru_cache
from typing import Any, ClassVar, Literal, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    PrivateAttr,
    TypeAdapter,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)

from embedded_documents.casting import DocumentType, TypeRegistry
from embedded_documents.config import get_settings
from embedded_documents.embedding import assign_nested_attributes as _assign_nested_attributes
from embedded_documents.embedding import bind_embeddings
from embedded_documents.errors import ShapeError, UnknownAttributeError
from embedded_documents.identity import IdentityGenerator, default_identity
from embedded_documents.mass_assignment import sanitize_for_mass_assignment
from embedded_documents.utils.logging import structured_logger

RuleT = TypeVar("RuleT", bound=Callable[..., Any])

NESTED_SUFFIX = "_attributes"


class ValidationIssue(BaseModel):
    """One failed validation rule."""

    model_config = ConfigDict(frozen=True)

    attribute: str
    message: str

    def __str__(self) -> str:
        return f"{self.attribute} {self.message}"


def validates(*attributes: str) -> Callable[[RuleT], RuleT]:
    """Mark a method as a validation rule.

    With attribute names the rule is called once per attribute as
    ``rule(self, value)``; without, it is called as ``rule(self)`` and its
    failures are reported against ``base``. A rule fails by raising
    ``ValueError``.
    """

    def decorator(func: RuleT) -> RuleT:
        func.__validates__ = attributes  # type: ignore[attr-defined]
        return func

    return decorator


def presence(value: Any) -> None:
    """Fail on None, blank strings and empty containers."""
    if value is None:
        raise ValueError("can't be blank")
    if isinstance(value, str) and not value.strip():
        raise ValueError("can't be blank")
    if isinstance(value, (list, tuple, dict, set)) and not value:
        raise ValueError("can't be blank")


def matches(pattern: str | re.Pattern[str]) -> Callable[[Any], None]:
    """Build a rule helper failing when the value does not match ``pattern``."""
    regex = re.compile(pattern)

    def check(value: Any) -> None:
        if value is None or not regex.search(str(value)):
            raise ValueError("is invalid")

    return check


@lru_cache(maxsize=None)
def _id_adapter(annotation: Any) -> TypeAdapter[Any]:
    return TypeAdapter(annotation)


class Document(BaseModel):
    """Base class for embeddable documents.

    Subclasses declare attributes as pydantic fields with defaults and
    embedded attributes with ``embeds_many`` / ``embeds_one``::

        class Subfield(Document):
            code: str | None = None
            value: str | None = None

            @validates("code")
            def _code_is_a_word(self, value):
                presence(value)
                matches(r"\\w")(value)

    Documents compare by class and attributes; ``errors`` and ``context``
    are not part of equality.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        arbitrary_types_allowed=True,
        extra="ignore",
    )

    __embeddings__: ClassVar[dict[str, DocumentType]] = {}
    __rules__: ClassVar[dict[str, Callable[..., Any]]] = {}

    # None defers to EmbeddingSettings.unknown_attributes
    unknown_attributes: ClassVar[Literal["ignore", "raise"] | None] = None
    identity: ClassVar[IdentityGenerator] = default_identity
    type_registry: ClassVar[TypeRegistry | None] = None

    id: int | None = None

    _errors: list[ValidationIssue] = PrivateAttr(default_factory=list)
    _context: Any = PrivateAttr(default=None)

    def __init__(self, attributes: Mapping[str, Any] | None = None, /, **data: Any) -> None:
        super().__init__()
        if attributes is not None:
            self.attributes_assign(attributes)
        if data:
            self.attributes_assign(data)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)

        inherited: dict[str, DocumentType] = {}
        rules: dict[str, Callable[..., Any]] = {}
        for klass in reversed(cls.__mro__[1:]):
            inherited.update(vars(klass).get("__embeddings__", {}))
        for klass in reversed(cls.__mro__):
            for name, member in vars(klass).items():
                if hasattr(member, "__validates__"):
                    rules[name] = member

        cls.__embeddings__ = bind_embeddings(
            cls,
            cls.model_fields,
            inherited,
            base=Document,
            registry=cls.type_registry,
        )
        cls.__rules__ = rules

    @field_validator("*", mode="wrap")
    @classmethod
    def _cast_embedded(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        document_type = cls.__embeddings__.get(info.field_name or "")
        if document_type is None:
            return handler(value)
        return document_type.cast(value)

    @classmethod
    def cast_id(cls, value: Any) -> Any:
        """Cast ``value`` the way the ``id`` attribute would."""
        return _id_adapter(cls.model_fields["id"].annotation).validate_python(value)

    # Attributes

    @property
    def attributes(self) -> dict[str, Any]:
        """Attribute values in declaration order."""
        return {name: getattr(self, name) for name in type(self).model_fields}

    def attributes_assign(self, attributes: Any) -> None:
        """Assign several attributes at once.

        ``<name>_attributes`` keys are routed to the bulk setter of the
        embedded attribute ``name``. The ``id`` of a persisted document is
        never reassigned.

        Raises:
            ForbiddenAttributesError: If attributes are unpermitted Parameters
            ShapeError: If attributes is not a mapping
            UnknownAttributeError: If a key is unknown and the policy is "raise"
        """
        attributes = sanitize_for_mass_assignment(attributes)
        if not isinstance(attributes, Mapping):
            raise ShapeError(
                f"Expected attributes for {type(self).__name__} to be a mapping, "
                f"but got {type(attributes).__name__}"
            )

        fields = type(self).model_fields
        for key, value in attributes.items():
            name = str(key)
            if name == "id" and self.persisted():
                continue
            if name in fields:
                setattr(self, name, value)
            elif name.endswith(NESTED_SUFFIX) and name[: -len(NESTED_SUFFIX)] in self.__embeddings__:
                self.assign_nested_attributes(name[: -len(NESTED_SUFFIX)], value)
            elif self._unknown_attributes_policy() == "raise":
                raise UnknownAttributeError(f"Unknown attribute {name!r} for {type(self).__name__}")

    def assign_nested_attributes(self, name: str, payload: Any) -> None:
        """Bulk setter for the embedded attribute ``name``."""
        _assign_nested_attributes(self, self.__embeddings__, name, payload)

    def _unknown_attributes_policy(self) -> str:
        return type(self).unknown_attributes or get_settings().unknown_attributes

    # Context

    @property
    def context(self) -> Any:
        return self._context

    def bind_context(self, context: Any) -> None:
        self._context = context

    # Validation

    @property
    def errors(self) -> list[ValidationIssue]:
        """Issues found by the last ``valid()`` call."""
        return list(self._errors)

    def valid(self) -> bool:
        """Run every rule and check embedded documents; never raises for failures."""
        issues: list[ValidationIssue] = []

        for rule in self.__rules__.values():
            targets = rule.__validates__
            if not targets:
                issues.extend(self._run_rule("base", rule))
                continue
            for attribute in targets:
                issues.extend(self._run_rule(attribute, rule, getattr(self, attribute)))

        for name in self.__embeddings__:
            value = getattr(self, name)
            check = getattr(value, "valid", None)
            if check is not None and not check():
                issues.append(ValidationIssue(attribute=name, message="is invalid"))

        self._errors = issues
        return not issues

    def _run_rule(self, attribute: str, rule: Callable[..., Any], *args: Any) -> list[ValidationIssue]:
        try:
            rule(self, *args)
        except ValueError as exc:
            return [ValidationIssue(attribute=attribute, message=str(exc))]
        return []

    # Lifecycle

    def persisted(self) -> bool:
        return self.id is not None

    def before_save(self) -> None:
        """Hook run before validation on every ``save()``."""

    def after_save(self) -> None:
        """Hook run after a successful save."""

    def save(self) -> bool:
        """Validate, assign an identity and save embedded documents.

        Returns:
            False with nothing changed when invalid, True otherwise

        Raises:
            Exception: Whatever a hook or embedded save raises; the previous
                ``id`` is restored first
        """
        self.before_save()

        if not self.valid():
            structured_logger.log_save(self, saved=False, issues=self._errors)
            return False

        previous_id = self.id
        try:
            if not self.persisted():
                self.id = self.identity.next_id()
            for name in self.__embeddings__:
                embedded = getattr(self, name)
                if embedded is not None and hasattr(embedded, "save"):
                    embedded.save()
            self.after_save()
        except Exception:
            self.id = previous_id
            raise

        structured_logger.log_save(self, saved=True)
        return True

    # Equality and serialization

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        return type(self) is type(other) and self.attributes == other.attributes

    def as_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def to_json(self) -> str:
        return json.dumps(self.as_json())
