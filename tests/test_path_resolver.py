"""Tests for dot-path parsing and structural-sharing updates."""

import copy

import pytest

from metadata_assistant.models.core import MISSING, NOT_FOUND, DocumentPath, NodeKind, kind_of
from metadata_assistant.models.errors import MalformedPathException, PathTypeConflictException
from metadata_assistant.services.path_resolver import PathResolver


@pytest.fixture
def resolver():
    return PathResolver()


@pytest.fixture
def document():
    return {
        "name": "A",
        "contributor": [{"name": "x", "affiliation": [{"name": "MIT"}]}],
        "keywords": ["a", "b", "c"],
        "count": 3,
    }


class TestParse:
    def test_fields_and_indices(self, resolver):
        assert resolver.parse("contributor.0.name") == DocumentPath(["contributor", 0, "name"])

    def test_single_segment(self, resolver):
        assert resolver.parse("name") == DocumentPath(["name"])

    def test_paths_equal_by_segments(self, resolver):
        assert resolver.parse("a.1") == resolver.parse(["a", 1])
        assert resolver.parse("a.1") != resolver.parse("a.01x")

    def test_string_form_round_trips(self, resolver):
        assert str(resolver.parse("contributor.0.name")) == "contributor.0.name"

    @pytest.mark.parametrize("text", ["", "   ", "a..b", ".a", "a.", "contributor[0]"])
    def test_malformed(self, resolver, text):
        with pytest.raises(MalformedPathException) as exc_info:
            resolver.parse(text)
        assert exc_info.value.error_code == "MALFORMED_PATH"

    def test_negative_index_sequence_rejected(self, resolver):
        with pytest.raises(MalformedPathException):
            resolver.parse(["a", -1])

    def test_parsed_path_passthrough(self, resolver):
        path = DocumentPath(["a"])
        assert resolver.parse(path) is path


class TestGet:
    def test_nested_value(self, resolver, document):
        assert resolver.get(document, "contributor.0.affiliation.0.name") == "MIT"

    def test_absent_field(self, resolver, document):
        assert resolver.get(document, "description") is NOT_FOUND

    def test_index_past_end(self, resolver, document):
        assert resolver.get(document, "keywords.3") is NOT_FOUND

    def test_descending_into_scalar(self, resolver, document):
        assert resolver.get(document, "name.first") is NOT_FOUND

    def test_index_into_object(self, resolver, document):
        assert resolver.get(document, "contributor.0.0") is NOT_FOUND

    def test_null_is_a_value(self, resolver):
        assert resolver.get({"a": None}, "a") is None
        assert resolver.exists({"a": None}, "a")

    def test_root(self, resolver, document):
        assert resolver.get(document, []) is document


class TestSet:
    def test_does_not_mutate_input(self, resolver, document):
        snapshot = copy.deepcopy(document)
        resolver.set(document, "contributor.0.name", "y")
        assert document == snapshot

    def test_structural_sharing(self, resolver, document):
        updated = resolver.set(document, "contributor.0.name", "y")
        assert updated["contributor"][0]["name"] == "y"
        assert updated is not document
        assert updated["contributor"] is not document["contributor"]
        assert updated["keywords"] is document["keywords"]
        assert updated["contributor"][0]["affiliation"] is document["contributor"][0]["affiliation"]

    def test_rewriting_existing_value_is_noop(self, resolver, document):
        for text in ["name", "contributor.0", "contributor.0.affiliation.0.name", "keywords.2", "count"]:
            path = resolver.parse(text)
            assert resolver.set(document, path, resolver.get(document, path)) == document

    def test_creates_missing_object(self, resolver):
        assert resolver.set({}, "a.b", 1) == {"a": {"b": 1}}

    def test_creates_missing_array_for_index(self, resolver):
        assert resolver.set({}, "a.0.b", 1) == {"a": [{"b": 1}]}

    def test_pads_array_with_null(self, resolver, document):
        updated = resolver.set(document, "keywords.5", "f")
        assert updated["keywords"] == ["a", "b", "c", None, None, "f"]

    def test_appends_at_length(self, resolver, document):
        assert resolver.set(document, "keywords.3", "d")["keywords"] == ["a", "b", "c", "d"]

    def test_type_conflict_index_into_object(self, resolver, document):
        with pytest.raises(PathTypeConflictException) as exc_info:
            resolver.set(document, "contributor.0.0", "x")
        assert exc_info.value.error_code == "PATH_TYPE_CONFLICT"

    def test_type_conflict_field_into_array(self, resolver, document):
        with pytest.raises(PathTypeConflictException):
            resolver.set(document, "keywords.first", "x")

    def test_type_conflict_through_scalar(self, resolver, document):
        with pytest.raises(PathTypeConflictException):
            resolver.set(document, "name.first", "x")

    def test_root_replaced(self, resolver, document):
        assert resolver.set(document, [], {"a": 1}) == {"a": 1}

    def test_rejects_non_json_value(self, resolver, document):
        with pytest.raises(TypeError):
            resolver.set(document, "name", object())


class TestRemove:
    def test_removes_object_field(self, resolver, document):
        updated = resolver.remove(document, "count")
        assert "count" not in updated
        assert "count" in document

    def test_array_slot_becomes_null(self, resolver, document):
        updated = resolver.remove(document, "keywords.1")
        assert updated["keywords"] == ["a", None, "c"]

    def test_absent_path_returns_same_document(self, resolver, document):
        assert resolver.remove(document, "missing.deep.path") is document
        assert resolver.remove(document, "keywords.10") is document

    def test_nested(self, resolver, document):
        updated = resolver.remove(document, "contributor.0.affiliation")
        assert updated["contributor"][0] == {"name": "x"}
        assert document["contributor"][0]["affiliation"] == [{"name": "MIT"}]

    def test_root_rejected(self, resolver, document):
        with pytest.raises(MalformedPathException):
            resolver.remove(document, [])

    def test_type_conflict(self, resolver, document):
        with pytest.raises(PathTypeConflictException):
            resolver.remove(document, "name.first")


class TestKinds:
    @pytest.mark.parametrize(
        "value,kind",
        [
            ({}, NodeKind.OBJECT),
            ([], NodeKind.ARRAY),
            ("s", NodeKind.STRING),
            (1, NodeKind.NUMBER),
            (1.5, NodeKind.NUMBER),
            (True, NodeKind.BOOLEAN),
            (None, NodeKind.NULL),
        ],
    )
    def test_kind_of(self, value, kind):
        assert kind_of(value) is kind

    def test_missing_is_falsy_singleton(self):
        assert not MISSING
        assert copy.deepcopy(MISSING) is MISSING
        assert NOT_FOUND is MISSING
