"""Reorder within a node and move across nodes."""
import pytest

from curriculum.application.placement_service import PlacementService
from curriculum.domain.common.errors import ConceptNotFound, ConceptNotLinked, InvalidInput, NodeNotFound, StoreWriteFailed
from curriculum.domain.curriculum.models import Concept
from curriculum.domain.curriculum.resequencer import Resequencer
from curriculum.persistence.ordinals import NodeItemGroup
from curriculum.persistence.repositories.sqlite.sqlite_curriculum_store import SqliteCurriculumStore


@pytest.fixture
def two_nodes(nodes, items):
    nodes.create_node("Sekcija A", code="A")
    nodes.create_node("Sekcija B", code="B")
    for label in ("X", "Y", "Z"):
        items.create_item("A", label)
    for label in ("P", "Q"):
        items.create_item("B", label)


def test_reorder_then_move_scenario(two_nodes, placement, labels, assert_aligned):
    placement.reorder_item("y", 1)
    assert labels("A") == ["Y", "X", "Z"]

    result = placement.move_item("y", "B", 1)

    assert labels("B") == ["Y", "P", "Q"]
    assert labels("A") == ["X", "Z"]
    assert result["concept"].curriculum_node_code == "B"
    assert result["concept"].curriculum_item_ordinal == 1
    assert result["concept"].section_code == "B"
    assert result["concept"].section_title == "Sekcija B"
    assert result["item"].label == "Y"
    assert_aligned("A")
    assert_aligned("B")


def test_reorder_to_same_position_writes_nothing(two_nodes, placement, audit_log):
    before = len(audit_log.list_entries("concept", "x"))
    result = placement.reorder_item("x", 1)
    assert result["concept"].curriculum_item_ordinal == 1
    assert len(audit_log.list_entries("concept", "x")) == before


def test_reorder_clamps_to_end(two_nodes, placement, labels, store):
    placement.reorder_item("x", 99)
    assert labels("A") == ["Y", "Z", "X"]
    assert store.get_concept("x").curriculum_item_ordinal == 3


def test_reorder_requires_linked_concept(placement, store):
    store.insert_concept(Concept(id="l-1", slug="legacy", section_code="A", term_lt="Senas"))
    with pytest.raises(ConceptNotLinked):
        placement.reorder_item("legacy", 1)


def test_move_appends_by_default(two_nodes, placement, labels):
    placement.move_item("x", "B")
    assert labels("B") == ["P", "Q", "X"]
    assert labels("A") == ["Y", "Z"]


def test_move_keeps_both_groups_contiguous(two_nodes, placement, store, assert_aligned):
    size_a, size_b = len(store.list_items("A")), len(store.list_items("B"))
    placement.move_item("z", "B", 2)
    assert len(store.list_items("A")) == size_a - 1
    assert len(store.list_items("B")) == size_b + 1
    assert_aligned("A")
    assert_aligned("B")


def test_move_within_same_node_reorders(two_nodes, placement, labels):
    placement.move_item("z", "A", 1)
    assert labels("A") == ["Z", "X", "Y"]


def test_move_attaches_legacy_concept(two_nodes, placement, store, labels):
    store.insert_concept(Concept(id="l-1", slug="legacy", section_code="old", term_lt="Senas"))
    result = placement.move_item("legacy", "B", 1)
    assert labels("B") == ["Senas", "P", "Q"]
    assert result["concept"].section_code == "B"
    assert result["concept"].curriculum_item_label == "Senas"


def test_move_validates_target_and_concept(two_nodes, placement):
    with pytest.raises(NodeNotFound):
        placement.move_item("x", "missing")
    with pytest.raises(ConceptNotFound):
        placement.move_item("missing", "B")


def test_reorder_requires_target(two_nodes, placement):
    with pytest.raises(InvalidInput):
        placement.reorder_item("x", None)


def test_move_within_same_node_appends_by_default(two_nodes, placement, labels):
    placement.move_item("x", "A")
    assert labels("A") == ["Y", "Z", "X"]


# ------------------------------------------------------------------
# Partial failures
# ------------------------------------------------------------------
class FailingOnceConceptStore(SqliteCurriculumStore):
    """Refuses the first concept update that matches ``fails``."""

    def __init__(self, db_path, fails):
        super().__init__(db_path)
        self.fails = fails
        self.refused = 0

    def update_concept(self, slug, fields):
        if not self.refused and self.fails(slug, fields):
            self.refused += 1
            raise StoreWriteFailed("concept update refused")
        super().update_concept(slug, fields)


def test_lagging_concept_is_repaired_by_next_pass(two_nodes, db_path, auditor, store, labels, assert_aligned):
    failing = FailingOnceConceptStore(db_path, lambda slug, fields: fields == {"curriculum_item_ordinal": 1})
    with pytest.raises(StoreWriteFailed):
        PlacementService(failing, auditor).reorder_item("z", 1)

    assert store.get_item("A", 1).label == "Z"
    assert store.get_concept("z").curriculum_item_ordinal != 1

    group = NodeItemGroup(store, "A")
    Resequencer().resequence(group)

    assert labels("A") == ["Z", "X", "Y"]
    assert store.get_concept("z").curriculum_item_ordinal == 1
    assert_aligned("A")
    assert Resequencer().resequence(group) == 0


def test_reorder_after_failed_mirror_converges(two_nodes, db_path, auditor, placement, store, labels, assert_aligned):
    failing = FailingOnceConceptStore(db_path, lambda slug, fields: fields == {"curriculum_item_ordinal": 1})
    with pytest.raises(StoreWriteFailed):
        PlacementService(failing, auditor).reorder_item("z", 1)

    placement.reorder_item("x", 1)

    assert labels("A") == ["X", "Z", "Y"]
    assert [store.get_concept(s).curriculum_item_ordinal for s in ("x", "z", "y")] == [1, 2, 3]
    assert_aligned("A")


def test_concept_without_item_is_detached(two_nodes, store, labels, assert_aligned):
    store.insert_concept(
        Concept(
            id="o-1",
            slug="dinges",
            section_code="A",
            term_lt="Dingęs",
            curriculum_node_code="A",
            curriculum_item_ordinal=7,
            curriculum_item_label="Dingęs",
        )
    )
    store.delete_item("A", 2)

    Resequencer().resequence(NodeItemGroup(store, "A"))

    assert labels("A") == ["X", "Z"]
    assert store.get_concept("dinges").curriculum_node_code is None
    assert store.get_concept("dinges").curriculum_item_ordinal is None
    assert store.get_concept("y").curriculum_node_code is None
    assert_aligned("A")


def test_failed_relink_removes_target_item(two_nodes, db_path, auditor, store, labels, assert_aligned):
    failing = FailingOnceConceptStore(db_path, lambda slug, fields: fields.get("curriculum_node_code") == "B")
    with pytest.raises(StoreWriteFailed):
        PlacementService(failing, auditor).move_item("y", "B", 1)

    assert labels("B") == ["P", "Q"]
    assert labels("A") == ["X", "Z"]
    assert store.get_concept("y").is_linked is False
    assert_aligned("A")
    assert_aligned("B")
