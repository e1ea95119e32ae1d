"""Bulk item creation: guardrails, dry run, per-node compensation."""
import pytest

from curriculum.application.batch_service import BatchService
from curriculum.domain.common.errors import BatchTooLarge, StoreWriteFailed
from curriculum.domain.curriculum.models import CurriculumItem
from curriculum.persistence.repositories.sqlite.sqlite_curriculum_store import SqliteCurriculumStore


@pytest.fixture
def tree(nodes, items):
    nodes.create_node("Biologija", code="bio")
    nodes.create_node("Ląstelė", code="cell", parent_code="bio")
    nodes.create_node("Chemija", code="chem")
    items.create_item("cell", "Branduolys")


def test_rejects_more_than_fifty(batch):
    with pytest.raises(BatchTooLarge) as exc:
        batch.batch_create_items([{"node_code": "bio", "label": f"L{i}"} for i in range(51)])
    assert exc.value.code == "BATCH_TOO_LARGE"
    assert exc.value.status_code == 400


def test_creates_after_existing_items(tree, batch, store, labels, assert_aligned):
    result = batch.batch_create_items(
        [
            {"node_code": "cell", "label": "Membrana"},
            {"node_code": "cell", "label": "Citoplazma", "term_en": "Cytoplasm"},
            {"node_code": "chem", "label": "Atomas"},
        ],
        actor="ed",
    )

    assert result["summary"] == {"requested": 3, "created": 3, "skipped": 0, "failed": 0, "dry_run": False}
    assert [c["ordinal"] for c in result["created"]] == [2, 3, 1]
    assert labels("cell") == ["Branduolys", "Membrana", "Citoplazma"]
    assert store.get_concept("citoplazma").term_en == "Cytoplasm"
    assert store.get_concept("citoplazma").section_code == "bio"
    assert store.get_concept("citoplazma").description_lt == "Aprašymas bus papildytas vėliau."
    assert_aligned("cell")
    assert_aligned("chem")


def test_gaps_are_compacted_before_appending(tree, batch, store, labels, assert_aligned):
    store.insert_item(CurriculumItem(node_code="cell", ordinal=5, label="Pasiklydęs"))

    preview = batch.batch_create_items([{"node_code": "cell", "label": "Vakuolė"}], dry_run=True)
    assert preview["created"][0]["ordinal"] == 3
    assert [i.ordinal for i in store.list_items("cell")] == [1, 5]

    result = batch.batch_create_items([{"node_code": "cell", "label": "Vakuolė"}])
    assert result["created"][0]["ordinal"] == 3
    assert labels("cell") == ["Branduolys", "Pasiklydęs", "Vakuolė"]
    assert store.get_concept("vakuole").curriculum_item_ordinal == 3
    assert_aligned("cell")


def test_dry_run_writes_nothing(tree, batch, store):
    result = batch.batch_create_items([{"node_code": "chem", "label": "Atomas"}], dry_run=True)
    assert result["summary"]["dry_run"] is True
    assert result["created"] == [
        {"index": 0, "slug": "atomas", "term_lt": "Atomas", "node_code": "chem", "ordinal": 1, "label": "Atomas"}
    ]
    assert store.list_items("chem") == []
    assert store.get_concept("atomas") is None


def test_duplicates_are_skipped(tree, batch):
    result = batch.batch_create_items(
        [
            {"node_code": "cell", "label": "branduolys"},
            {"node_code": "bio", "label": "Mitozė"},
            {"node_code": "cell", "label": "MITOZĖ"},
        ]
    )
    codes = [s["code"] for s in result["skipped"]]
    assert codes == ["CONCEPT_ALREADY_EXISTS", "DUPLICATE_IN_BATCH"]
    assert result["skipped"][0]["slug"] == "branduolys"
    assert result["summary"]["created"] == 1


def test_existing_slug_is_skipped_and_batch_slugs_are_suffixed(tree, batch):
    result = batch.batch_create_items(
        [
            {"node_code": "chem", "label": "Kitas", "slug": "branduolys"},
            {"node_code": "chem", "label": "Jonas", "slug": "jonai"},
            {"node_code": "chem", "label": "Jonai", "slug": "jonai"},
        ]
    )
    assert [s["code"] for s in result["skipped"]] == ["SLUG_EXISTS"]
    assert [c["slug"] for c in result["created"]] == ["jonai", "jonai-1"]


def test_unknown_node_and_blank_label_fail(tree, batch):
    result = batch.batch_create_items(
        [
            {"node_code": "missing", "label": "A"},
            {"node_code": "missing", "label": "B"},
            {"node_code": "chem", "label": "  "},
            {"label": "C"},
        ]
    )
    assert [f["code"] for f in result["failed"]] == [
        "NODE_NOT_FOUND",
        "NODE_NOT_FOUND",
        "INVALID_INPUT",
        "INVALID_INPUT",
    ]
    assert result["summary"]["created"] == 0


class FailingForNodeStore(SqliteCurriculumStore):
    def __init__(self, db_path, failing_node):
        super().__init__(db_path)
        self.failing_node = failing_node

    def insert_concept(self, concept):
        if concept.curriculum_node_code == self.failing_node and concept.term_lt == "Blogas":
            raise StoreWriteFailed("concept insert refused")
        super().insert_concept(concept)


def test_failing_node_rolls_back_only_itself(tree, db_path, auditor, store, labels, assert_aligned):
    svc = BatchService(FailingForNodeStore(db_path, "chem"), auditor)
    result = svc.batch_create_items(
        [
            {"node_code": "chem", "label": "Geras"},
            {"node_code": "cell", "label": "Ribosoma"},
            {"node_code": "chem", "label": "Blogas"},
        ]
    )

    assert result["summary"]["created"] == 1
    assert sorted(f["index"] for f in result["failed"]) == [0, 2]
    assert {f["code"] for f in result["failed"]} == {"STORE_WRITE_FAILED"}
    assert store.list_items("chem") == []
    assert store.get_concept("geras") is None
    assert labels("cell") == ["Branduolys", "Ribosoma"]
    assert_aligned("cell")
