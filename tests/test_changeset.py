"""Tests for the pending-change collection."""

import copy

import pytest

from metadata_assistant.models.core import MISSING, NOT_FOUND, PendingChange
from metadata_assistant.models.errors import MalformedPathException
from metadata_assistant.services.changeset import ChangeSet


@pytest.fixture
def base():
    return {"name": "A", "contributor": ["x"]}


@pytest.fixture
def changeset():
    return ChangeSet()


def test_propose_existing_field(changeset, base):
    change = changeset.propose("name", "B", base)

    assert len(changeset) == 1
    assert change.to_wire() == {"path": "name", "oldValue": "A", "newValue": "B"}
    assert changeset.effective_document(base) == {"name": "B", "contributor": ["x"]}


def test_propose_array_index_creates_entry(changeset, base):
    changeset.propose("contributor.1", "y", base)
    assert changeset.effective_document(base) == {"name": "A", "contributor": ["x", "y"]}


def test_creation_has_no_old_value(changeset, base):
    change = changeset.propose("description", "New", base)
    assert change.is_creation
    assert change.old_value is MISSING
    assert change.to_wire() == {"path": "description", "newValue": "New"}


def test_deletion(changeset, base):
    change = changeset.propose("name", MISSING, base)
    assert change.is_deletion
    assert change.to_wire() == {"path": "name", "oldValue": "A"}
    assert changeset.effective_document(base) == {"contributor": ["x"]}


def test_one_entry_per_path_with_sticky_old_value(changeset, base):
    changeset.propose("name", "B", base)
    changeset.propose("name", "C", base)
    change = changeset.propose("name", "D", base)

    assert len(changeset) == 1
    assert change.old_value == "A"
    assert change.new_value == "D"


def test_propose_then_revert_restores_base(changeset, base):
    original = copy.deepcopy(base)
    for value in ["B", "C", "D"]:
        changeset.propose("name", value, base)
    changeset.propose("contributor.1", "y", base)

    assert [str(change.path) for change in changeset.revert("name")] == ["name"]
    assert [change.new_value for change in changeset.revert("contributor.1")] == ["y"]
    assert changeset.effective_document(base) == original


def test_revert_unknown_path_is_noop(changeset, base):
    changeset.propose("name", "B", base)
    assert changeset.revert("description") == []
    assert len(changeset) == 1


def test_effective_document_is_deterministic_and_pure(changeset, base):
    original = copy.deepcopy(base)
    changeset.propose("name", "B", base)
    changeset.propose("contributor.1", "y", base)

    first = changeset.effective_document(base)
    second = changeset.effective_document(base)
    assert first == second
    assert base == original


def test_old_value_sees_earlier_pending_changes(changeset, base):
    changeset.propose("contributor.1", "y", base)
    change = changeset.propose("contributor", ["z"], base)
    assert change.old_value == ["x", "y"]


def test_insertion_order_is_display_order(changeset, base):
    changeset.propose("name", "B", base)
    changeset.propose("description", "D", base)
    changeset.propose("name", "C", base)
    assert [str(change.path) for change in changeset] == ["name", "description"]


def test_base_can_change_between_folds(changeset, base):
    changeset.propose("name", "B", base)
    new_base = {"name": "Z", "contributor": [], "license": ["cc0"]}
    assert changeset.effective_document(new_base) == {"name": "B", "contributor": [], "license": ["cc0"]}


def test_find_by_path(changeset, base):
    changeset.propose("name", "B", base)
    assert isinstance(changeset.find_by_path("name"), PendingChange)
    assert changeset.find_by_path("contributor") is NOT_FOUND


def test_contains(changeset, base):
    changeset.propose("contributor.0", "q", base)
    assert "contributor.0" in changeset
    assert ["contributor", 0] in changeset
    assert "name" not in changeset
    assert "a..b" not in changeset


def test_with_provisional_leaves_original_untouched(changeset, base):
    changeset.propose("name", "B", base)
    provisional = changeset.with_provisional("description", "D", base)

    assert len(changeset) == 1
    assert len(provisional) == 2
    assert provisional.effective_document(base)["description"] == "D"


def test_clear(changeset, base):
    changeset.propose("name", "B", base)
    changeset.clear()
    assert len(changeset) == 0
    assert changeset.effective_document(base) == base


def test_malformed_path(changeset, base):
    with pytest.raises(MalformedPathException):
        changeset.propose("a..b", 1, base)
    assert len(changeset) == 0


def test_summary_lines(changeset, base):
    changeset.propose("name", "B", base)
    changeset.propose("contributor", MISSING, base)
    changeset.propose("description", "D", base)
    assert changeset.summary_lines() == [
        'name: "A" → "B"',
        'contributor: ["x"] → (removed)',
        'description: (none) → "D"',
    ]


def test_revert_parent_drops_changes_beneath_it(changeset):
    base = {"name": "A", "notes": "plain text"}
    changeset.propose("notes", {}, base)
    changeset.propose("notes.author", "x", base)
    changeset.propose("name", "B", base)

    removed = changeset.revert("notes")

    assert [str(change.path) for change in removed] == ["notes", "notes.author"]
    assert [str(change.path) for change in changeset] == ["name"]
    assert changeset.effective_document(base) == {"name": "B", "notes": "plain text"}


def test_revert_child_keeps_parent(changeset):
    base = {"notes": "plain text"}
    changeset.propose("notes", {}, base)
    changeset.propose("notes.author", "x", base)

    assert len(changeset.revert("notes.author")) == 1
    assert changeset.effective_document(base) == {"notes": {}}


def test_revert_does_not_touch_sibling_with_shared_prefix(changeset):
    base = {"keywords": ["a"], "keywordsExtra": "b"}
    changeset.propose("keywords", ["z"], base)
    changeset.propose("keywordsExtra", "c", base)

    changeset.revert("keywords")

    assert [str(change.path) for change in changeset] == ["keywordsExtra"]


def test_deleting_pending_creation_withdraws_it(changeset, base):
    changeset.propose("description", "New", base)
    changeset.propose("name", "B", base)

    changeset.propose("description", MISSING, base)

    assert "description" not in changeset
    assert changeset.summary_lines() == ['name: "A" → "B"']
    assert changeset.effective_document(base) == {"name": "B", "contributor": ["x"]}


def test_deleting_pending_change_of_existing_field_stages_deletion(changeset, base):
    changeset.propose("name", "B", base)
    change = changeset.propose("name", MISSING, base)

    assert change.is_deletion
    assert change.old_value == "A"
    assert changeset.effective_document(base) == {"contributor": ["x"]}
