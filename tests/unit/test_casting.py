"""Test cast types, class name inference and class resolution."""

import pytest

from embedded_documents import (
    Collecting,
    Collection,
    ContextualCast,
    Document,
    DocumentCast,
    DocumentType,
    ShapeError,
    TypeMismatchError,
    TypeRegistry,
    UnresolvedNameError,
    ValueCast,
    embeds_many,
    infer_class_name,
    resolve_class,
)
from tests.dummy import Field, Record, Subfield


class Crate(Collecting):
    pass


class Label:
    context = None


@pytest.mark.parametrize(
    ("attr_name", "class_name"),
    [
        ("subfields", "Subfield"),
        ("fields", "Field"),
        ("marc_fields", "MarcField"),
        ("entries", "Entry"),
        ("categories", "Category"),
        ("subfield", "Subfield"),
    ],
)
def test_infer_class_name(attr_name: str, class_name: str) -> None:
    """Test that attribute names singularize and camel-case into class names."""
    assert infer_class_name(attr_name) == class_name


def test_infer_class_name_rejects_empty_names() -> None:
    """Test that names without words cannot be inferred."""
    with pytest.raises(UnresolvedNameError):
        infer_class_name("_")


def test_resolve_nested_class_from_owner() -> None:
    """Test that a class nested in the owner resolves first."""
    assert resolve_class("Subfield", Field, Document) is Subfield


def test_resolve_class_from_owner_module() -> None:
    """Test that module globals of the owner are searched."""
    assert resolve_class("Field", Record, Document) is Field


def test_resolve_import_paths() -> None:
    """Test that qualified names are imported."""
    assert resolve_class("tests.dummy:Field.Subfield", None, Document) is Subfield
    assert resolve_class("tests.dummy.Field", None, Document) is Field


def test_resolve_falls_back_to_subclass_name() -> None:
    """Test that a unique subclass of the base resolves without an owner."""
    assert resolve_class("Crate", None, Collecting) is Crate


def test_resolve_unknown_name_raises() -> None:
    """Test that an unknown name is reported."""
    with pytest.raises(UnresolvedNameError):
        resolve_class("NoSuchDocument", Field, Document)


def test_resolve_ambiguous_name_raises() -> None:
    """Test that two same-named subclasses are not guessed between."""

    def make() -> type:
        class Duplicate(Document):
            pass

        return Duplicate

    first, second = make(), make()

    with pytest.raises(UnresolvedNameError, match="ambiguous"):
        resolve_class("Duplicate", None, Document)

    assert first is not second


def test_document_cast_shapes() -> None:
    """Test each input shape of the default cast type."""
    cast_type = DocumentCast(Subfield)
    subfield = Subfield(code="a")

    assert cast_type.cast(None) is None
    assert cast_type.cast(subfield) is subfield
    assert cast_type.cast({"code": "b"}) == Subfield(code="b")

    with pytest.raises(TypeMismatchError):
        cast_type.cast(Field(tag="245"))
    with pytest.raises(ShapeError):
        cast_type.cast("a")


def test_document_cast_resolves_names_lazily() -> None:
    """Test that a class name is only resolved on first cast."""
    cast_type = DocumentCast("NoSuchDocument", owner=Field, base=Document)

    assert cast_type.cast(None) is None
    with pytest.raises(UnresolvedNameError):
        cast_type.cast({})

    assert DocumentCast("Subfield", owner=Field, base=Document).document_class is Subfield


def test_many_document_type_casts() -> None:
    """Test that a many document type wraps cast elements in its collection."""
    document_type = DocumentType(DocumentCast(Subfield), many=True)

    empty = document_type.cast(None)
    assert empty == Collection(document_class=Subfield)

    collection = document_type.cast([{"code": "a"}, Subfield(code="b")])
    assert isinstance(collection, Collection)
    assert [subfield.code for subfield in collection] == ["a", "b"]

    assert document_type.cast(collection) is collection
    assert document_type.cast(({"code": "c"},))[0].code == "c"

    with pytest.raises(ShapeError):
        document_type.cast({"code": "a"})


def test_many_document_type_converts_other_collections() -> None:
    """Test that a foreign collection is rebuilt in the declared collection class."""
    document_type = DocumentType(DocumentCast(Subfield), many=True, collection_class=Crate)

    crate = document_type.cast(Collection([Subfield(code="a")]))

    assert type(crate) is Crate
    assert crate.document_class is Subfield


def test_collection_of_another_class_is_recast() -> None:
    """Test that a collection holding a different class is not passed through."""
    field = Field(tag="245")

    with pytest.raises(TypeMismatchError):
        field.subfields = Collection([Field(tag="100")])

    assert field.subfields.document_class is Subfield
    assert len(field.subfields) == 0


def test_collection_of_declared_class_is_passed_through() -> None:
    """Test that a collection of the declared class is kept as is."""
    document_type = DocumentType(DocumentCast(Subfield), many=True)
    undeclared = Collection()
    collection = Collection([Subfield(code="a")])

    assert document_type.cast(collection) is collection

    recast = document_type.cast(undeclared)
    assert recast is not undeclared
    assert recast.document_class is Subfield


def test_collection_class_names_resolve() -> None:
    """Test that a collection class may be given by name."""
    document_type = DocumentType(
        DocumentCast(Subfield), many=True, collection_class="Crate", owner=Label
    )

    assert document_type.collection_class is Crate


def test_one_document_type_casts_single_values() -> None:
    """Test that a single document type defers to its cast type."""
    document_type = DocumentType(DocumentCast(Subfield))

    assert document_type.cast({"code": "a"}) == Subfield(code="a")
    assert document_type.cast(None) is None


def test_type_registry() -> None:
    """Test registering and looking up named cast types."""
    registry = TypeRegistry()
    registry.register("value", ValueCast)

    assert "value" in registry
    assert isinstance(registry.lookup("value"), ValueCast)
    assert registry.lookup("value") is not registry.lookup("value")

    with pytest.raises(ValueError):
        registry.register("value", ValueCast)
    registry.register("value", ContextualCast, override=True)
    assert isinstance(registry.lookup("value"), ContextualCast)

    with pytest.raises(UnresolvedNameError):
        registry.lookup("missing")


def test_contextual_cast_attaches_context() -> None:
    """Test that a contextual cast type attaches its context to every value."""
    cast_type = ContextualCast(context="shelf")

    label = cast_type.cast(Label())
    subfield = cast_type.cast(Subfield(code="a"))

    assert label.context == "shelf"
    assert subfield.context == "shelf"
    assert cast_type.cast(None) is None


def test_with_context_copies() -> None:
    """Test that binding a context leaves the original cast type untouched."""
    cast_type = ContextualCast()

    bound = cast_type.with_context(Field)

    assert bound.context is Field
    assert cast_type.context is None


def test_named_cast_type_requires_registry() -> None:
    """Test that a named cast type cannot be declared without a registry."""
    with pytest.raises(UnresolvedNameError):

        class Orphan(Document):
            labels: Collection = embeds_many(cast_type="label")
