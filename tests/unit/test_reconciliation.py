"""Test bulk attribute reconciliation against embedded collections."""

import pytest
from pydantic import ValidationError

from embedded_documents import (
    Collection,
    ForbiddenAttributesError,
    IdentityNotFoundError,
    IndexOutOfRangeError,
    Parameters,
    ShapeError,
)
from tests.dummy import Field, Subfield


@pytest.fixture
def subfields() -> Collection:
    return Collection(
        [
            Subfield(id=7, code="a", value="Hamlet"),
            Subfield(id=8, code="b", value="a tragedy"),
            Subfield(id=9, code="c", value="William Shakespeare"),
        ]
    )


def test_list_entry_with_id_updates_only_that_document(subfields: Collection) -> None:
    """Test that an id-bearing list entry updates its document and builds nothing."""
    subfields.attributes_assign([{"id": 7, "value": "X"}])

    assert len(subfields) == 3
    assert [subfield.value for subfield in subfields] == ["X", "a tragedy", "William Shakespeare"]
    assert subfields[0].code == "a"


def test_string_id_matches_integer_id(subfields: Collection) -> None:
    """Test that form-encoded ids find their documents."""
    subfields.attributes_assign([{"id": "8", "value": "Y"}])

    assert subfields[1].value == "Y"
    assert subfields[1].id == 8


def test_indexed_entries_update_by_position(subfields: Collection) -> None:
    """Test that index keys select documents in the current order."""
    subfields.attributes_assign({"0": {"value": "A"}, "2": {"value": "B"}})

    assert [subfield.value for subfield in subfields] == ["A", "a tragedy", "B"]


def test_integer_index_keys(subfields: Collection) -> None:
    """Test that integer keys work like their string form."""
    subfields.attributes_assign({1: {"value": "Z"}})

    assert subfields[1].value == "Z"


def test_indexed_entry_id_wins_over_key(subfields: Collection) -> None:
    """Test that an id in an indexed entry overrides its position."""
    subfields.attributes_assign({"57": {"id": 9, "value": "Anonymous"}})

    assert subfields[2].value == "Anonymous"
    assert len(subfields) == 3


def test_list_entry_without_id_builds(subfields: Collection) -> None:
    """Test that an entry without id appends exactly one new document."""
    subfields.attributes_assign([{"code": "d", "value": "new"}])

    assert len(subfields) == 4
    assert subfields[3].value == "new"
    assert subfields[3].persisted() is False


def test_blank_id_counts_as_absent(subfields: Collection) -> None:
    """Test that an empty id from a form builds a new document."""
    subfields.attributes_assign([{"id": "", "code": "d"}, {"id": None, "code": "e"}])

    assert [subfield.code for subfield in subfields][3:] == ["d", "e"]
    assert subfields[3].id is None


def test_reconciliation_never_removes(subfields: Collection) -> None:
    """Test that destroy flags are not interpreted."""
    subfields.attributes_assign([{"id": 7, "_destroy": "1"}])

    assert len(subfields) == 3


def test_unknown_id_raises_before_any_update(subfields: Collection) -> None:
    """Test that an unknown id aborts the payload before earlier entries apply."""
    with pytest.raises(IdentityNotFoundError) as exc_info:
        subfields.attributes_assign([{"id": 7, "value": "changed"}, {"id": 99, "value": "x"}])

    assert exc_info.value.document_id == 99
    assert subfields[0].value == "Hamlet"
    assert len(subfields) == 3


def test_unknown_id_in_indexed_payload_raises(subfields: Collection) -> None:
    """Test that an indexed entry never creates a document for an unknown id."""
    with pytest.raises(IdentityNotFoundError):
        subfields.attributes_assign({"0": {"id": 42, "value": "x"}})


def test_out_of_range_index_raises_before_any_update(subfields: Collection) -> None:
    """Test that a position past the end aborts the payload."""
    with pytest.raises(IndexOutOfRangeError):
        subfields.attributes_assign({"0": {"value": "A"}, "5": {"value": "B"}})

    assert subfields[0].value == "Hamlet"


def test_negative_index_raises(subfields: Collection) -> None:
    """Test that negative positions do not count from the end."""
    with pytest.raises(IndexOutOfRangeError):
        subfields.attributes_assign({"-1": {"value": "A"}})


@pytest.mark.parametrize("key", ["first", 1.9, True, "1_0", " 1", None])
def test_non_integer_key_raises(subfields: Collection, key: object) -> None:
    """Test that indexed payload keys must be integers or digit strings."""
    with pytest.raises(ShapeError):
        subfields.attributes_assign({key: {"value": "Z"}})

    assert [subfield.value for subfield in subfields] == ["Hamlet", "a tragedy", "William Shakespeare"]


@pytest.mark.parametrize("payload", ["value=A", 42, None])
def test_payload_shape_is_checked(subfields: Collection, payload: object) -> None:
    """Test that payloads other than mappings and lists are rejected."""
    with pytest.raises(ShapeError):
        subfields.attributes_assign(payload)


def test_entry_shape_is_checked_before_building(subfields: Collection) -> None:
    """Test that a bad entry aborts a list payload before anything is built."""
    with pytest.raises(ShapeError):
        subfields.attributes_assign([{"code": "d"}, "e"])

    assert len(subfields) == 3


def test_cast_failure_leaves_earlier_entries_applied(subfields: Collection) -> None:
    """Test that a casting failure inside one entry does not undo earlier entries."""
    with pytest.raises(ValidationError):
        subfields.attributes_assign({"0": {"value": "A"}, "1": {"value": ["not", "text"]}})

    assert subfields[0].value == "A"
    assert subfields[1].value == "a tragedy"


def test_reconciling_permitted_parameters() -> None:
    """Test mass assignment with permitted parameters through the bulk setter."""
    field = Field(tag="200")
    field.subfields = [{"code": "a", "value": "Getting Real"}, {"code": "3", "value": "..."}]
    assert field.subfields.document_class is Subfield

    params = Parameters({"subfields_attributes": {"0": {"value": "Rework"}}})
    permitted = params.permit({"subfields_attributes": ["id", "value"]})
    field.assign_nested_attributes("subfields", permitted["subfields_attributes"])
    assert field.subfields[0].value == "Rework"

    assert field.subfields.save() is True
    assert all(subfield.id for subfield in field.subfields)

    first_id = field.subfields[0].id
    params = Parameters({"subfields_attributes": {"57": {"id": first_id, "value": "ShapeUp"}}})
    field.attributes_assign(params.permit({"subfields_attributes": ["id", "value"]}))
    assert field.subfields[0].value == "ShapeUp"

    params = Parameters({"57": {"id": first_id, "value": "..."}})
    with pytest.raises(ForbiddenAttributesError):
        field.assign_nested_attributes("subfields", params)
    assert field.subfields[0].value == "ShapeUp"


def test_unpermitted_nested_parameters_are_forbidden() -> None:
    """Test that nested parameters read from raw params stay unpermitted."""
    field = Field(tag="245", subfields=[{"code": "a"}])
    params = Parameters({"subfields_attributes": {"0": {"value": "Hamlet"}}})

    with pytest.raises(ForbiddenAttributesError):
        field.assign_nested_attributes("subfields", params["subfields_attributes"])
