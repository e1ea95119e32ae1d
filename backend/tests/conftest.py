"""Shared fixtures: a fresh SQLite file per test, wired to the real services."""
import pytest

from curriculum.application.auditing import Auditor
from curriculum.application.batch_service import BatchService
from curriculum.application.item_service import ItemService
from curriculum.application.node_service import NodeService
from curriculum.application.placement_service import PlacementService
from curriculum.persistence.db import init_db
from curriculum.persistence.repositories.sqlite.sqlite_audit_log import SqliteAuditLog
from curriculum.persistence.repositories.sqlite.sqlite_curriculum_store import SqliteCurriculumStore


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "curriculum.db")
    init_db(path)
    return path


@pytest.fixture
def store(db_path):
    return SqliteCurriculumStore(db_path)


@pytest.fixture
def audit_log(db_path):
    return SqliteAuditLog(db_path)


@pytest.fixture
def auditor(audit_log):
    return Auditor(audit_log)


@pytest.fixture
def items(store, auditor):
    return ItemService(store, auditor)


@pytest.fixture
def nodes(store, items, auditor):
    return NodeService(store, items, auditor)


@pytest.fixture
def placement(store, auditor):
    return PlacementService(store, auditor)


@pytest.fixture
def batch(store, auditor):
    return BatchService(store, auditor)


@pytest.fixture
def labels(store):
    """Item labels of a node in ordinal order."""
    def _labels(node_code):
        return [i.label for i in store.list_items(node_code)]
    return _labels


@pytest.fixture
def assert_aligned(store):
    """Items are 1..N and every concept points at the item with its label."""
    def _check(node_code):
        node_items = store.list_items(node_code)
        assert [i.ordinal for i in node_items] == list(range(1, len(node_items) + 1))
        concepts = {c.curriculum_item_ordinal: c for c in store.list_concepts_for_nodes([node_code])}
        for item in node_items:
            if item.ordinal in concepts:
                assert concepts[item.ordinal].curriculum_item_label == item.label
        assert set(concepts) <= {i.ordinal for i in node_items}
    return _check
