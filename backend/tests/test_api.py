"""API tests using FastAPI TestClient."""
import pytest
from fastapi.testclient import TestClient

from curriculum import container
from curriculum.api.auth import create_access_token
from curriculum.core import config
from curriculum.domain.common.errors import StoreReadFailed
from curriculum.main import app

CACHED_GETTERS = (
    container.get_store,
    container.get_audit_log,
    container.get_auditor,
    container.get_resequencer,
    container.get_item_service,
    container.get_node_service,
    container.get_placement_service,
    container.get_batch_service,
)


def _clear_container():
    for getter in CACHED_GETTERS:
        getter.cache_clear()


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DATABASE_PATH", str(tmp_path / "api.db"))
    _clear_container()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    _clear_container()


@pytest.fixture
def editor():
    return {"Authorization": f"Bearer {create_access_token('editor-1', 'editor')}"}


def _seed(client, editor):
    for code, title in (("A", "Sekcija A"), ("B", "Sekcija B")):
        assert client.post("/admin/curriculum/nodes", json={"title": title, "code": code}, headers=editor).status_code == 201
    for node, labels in (("A", ["X", "Y", "Z"]), ("B", ["P", "Q"])):
        for label in labels:
            resp = client.post(f"/admin/curriculum/nodes/{node}/items", json={"label": label}, headers=editor)
            assert resp.status_code == 201


def _labels(client, node):
    return [e["item"]["label"] for e in client.get(f"/admin/curriculum/nodes/{node}/items").json()]


# ------------------------------------------------------------------
# Health + auth
# ------------------------------------------------------------------
def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_mutations_require_token(client):
    resp = client.post("/admin/curriculum/nodes", json={"title": "A"})
    assert resp.status_code == 401


def test_viewer_cannot_mutate(client):
    headers = {"Authorization": f"Bearer {create_access_token('viewer-1', 'viewer')}"}
    resp = client.post("/admin/curriculum/nodes", json={"title": "A"}, headers=headers)
    assert resp.status_code == 403


def test_garbage_token_is_rejected(client):
    resp = client.post("/admin/curriculum/nodes", json={"title": "A"}, headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


# ------------------------------------------------------------------
# Nodes
# ------------------------------------------------------------------
def test_node_crud(client, editor):
    created = client.post("/admin/curriculum/nodes", json={"title": "Algebra"}, headers=editor)
    assert created.status_code == 201
    assert created.json()["code"] == "algebra"

    client.post("/admin/curriculum/nodes", json={"title": "Lygtys", "parent_code": "algebra"}, headers=editor)
    tree = client.get("/admin/curriculum/tree").json()
    assert tree[0]["children"][0]["code"] == "algebra-lygtys"

    patched = client.patch("/admin/curriculum/nodes/algebra", json={"summary": "Pagrindai"}, headers=editor)
    assert patched.json()["summary"] == "Pagrindai"
    assert patched.json()["title"] == "Algebra"

    deleted = client.delete("/admin/curriculum/nodes/algebra", headers=editor)
    assert deleted.json()["deleted"]["code"] == "algebra"
    assert client.get("/admin/curriculum/nodes").json() == []


def test_unknown_parent_maps_to_404(client, editor):
    resp = client.post("/admin/curriculum/nodes", json={"title": "X", "parent_code": "nope"}, headers=editor)
    assert resp.status_code == 404
    assert resp.json() == {
        "error": {
            "message": "Parent node 'nope' was not found.",
            "code": "PARENT_NOT_FOUND",
            "details": {"parentCode": "nope"},
        }
    }


# ------------------------------------------------------------------
# Items + placement
# ------------------------------------------------------------------
def test_reorder_and_move(client, editor):
    _seed(client, editor)

    resp = client.post("/admin/concepts/y/reorder", json={"ordinal": 1}, headers=editor)
    assert resp.status_code == 200
    assert resp.json()["item"]["ordinal"] == 1
    assert _labels(client, "A") == ["Y", "X", "Z"]

    missing = client.post("/admin/concepts/y/reorder", json={}, headers=editor)
    assert missing.status_code == 422
    assert _labels(client, "A") == ["Y", "X", "Z"]

    resp = client.post("/admin/concepts/y/move", json={"node_code": "B", "ordinal": 1}, headers=editor)
    assert resp.json()["concept"]["curriculum_node_code"] == "B"
    assert _labels(client, "B") == ["Y", "P", "Q"]
    assert _labels(client, "A") == ["X", "Z"]


def test_duplicate_concept_is_409(client, editor):
    _seed(client, editor)
    resp = client.post("/admin/curriculum/nodes/A/items", json={"label": "x"}, headers=editor)
    assert resp.status_code == 409
    body = resp.json()["error"]
    assert body["code"] == "CONCEPT_ALREADY_EXISTS"
    assert body["details"]["slug"] == "x"


def test_content_edit_and_history(client, editor):
    _seed(client, editor)
    resp = client.patch("/admin/concepts/x", json={"term_en": "Ex", "status": "published", "label": "X1"}, headers=editor)
    assert resp.status_code == 200
    assert resp.json()["concept"]["status"] == "published"
    item = resp.json()["item"]
    assert (item["node_code"], item["ordinal"], item["label"]) == ("A", 1, "X1")
    assert resp.json()["concept"]["curriculum_item_label"] == "X1"

    rejected = client.patch("/admin/concepts/x", json={"label": ""}, headers=editor)
    assert rejected.status_code == 400

    history = client.get("/admin/concepts/x/history").json()
    assert history[0]["actor"] == "editor-1"
    assert history[0]["after"]["term_en"] == "Ex"


def test_delete_and_batch_delete(client, editor):
    _seed(client, editor)
    assert client.delete("/admin/concepts/x", headers=editor).json()["item"]["label"] == "X"
    assert _labels(client, "A") == ["Y", "Z"]

    result = client.post("/admin/concepts/batch-delete", json={"slugs": ["y", "nope"]}, headers=editor).json()
    assert result["deleted"] == ["y"]
    assert result["failed"][0]["code"] == "CONCEPT_NOT_FOUND"
    assert _labels(client, "A") == ["Z"]


def test_batch_create(client, editor):
    _seed(client, editor)
    body = {"items": [{"node_code": "B", "label": "R"}, {"node_code": "B", "label": "p"}], "dry_run": False}
    result = client.post("/admin/curriculum/items/batch", json=body, headers=editor).json()
    assert result["summary"]["created"] == 1
    assert result["skipped"][0]["code"] == "CONCEPT_ALREADY_EXISTS"
    assert _labels(client, "B") == ["P", "Q", "R"]

    too_many = {"items": [{"node_code": "B", "label": f"L{i}"} for i in range(51)]}
    resp = client.post("/admin/curriculum/items/batch", json=too_many, headers=editor)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "BATCH_TOO_LARGE"


# ------------------------------------------------------------------
# Server-side errors
# ------------------------------------------------------------------
class BrokenItemService:
    def get_concept(self, slug):
        raise StoreReadFailed("Store read failed: disk I/O error")


def test_store_failures_hide_details(client, monkeypatch):
    monkeypatch.setattr("curriculum.main.EXPOSE_ERROR_DETAILS", False)
    app.dependency_overrides[container.get_item_service] = lambda: BrokenItemService()
    resp = client.get("/admin/concepts/x")
    assert resp.status_code == 500
    assert resp.json() == {"error": {"message": "Internal server error.", "code": "STORE_READ_FAILED"}}
