"""Curriculum tree API: nodes, their items, and bulk item creation."""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from curriculum.api.auth import get_editor
from curriculum.api.serializers import serialize_placement
from curriculum.application.batch_service import BatchService
from curriculum.application.item_service import ItemService
from curriculum.application.node_service import NodeService
from curriculum.container import get_batch_service, get_item_service, get_node_service

router = APIRouter(prefix="/admin/curriculum", tags=["curriculum"])


# ------------------------------------------------------------------
# Pydantic schemas
# ------------------------------------------------------------------
class NodeCreateBody(BaseModel):
    title: str
    summary: Optional[str] = None
    parent_code: Optional[str] = None
    ordinal: Optional[int] = None
    code: Optional[str] = None


class NodeUpdateBody(BaseModel):
    title: Optional[str] = None
    summary: Optional[str] = None
    parent_code: Optional[str] = None
    ordinal: Optional[int] = None


class ItemCreateBody(BaseModel):
    label: str
    ordinal: Optional[int] = None
    slug: Optional[str] = None
    term_lt: Optional[str] = None
    term_en: Optional[str] = None
    description_lt: Optional[str] = None
    description_en: Optional[str] = None
    source_ref: Optional[str] = None
    is_required: bool = True
    status: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class BatchItem(BaseModel):
    node_code: Optional[str] = None
    label: Optional[str] = None
    slug: Optional[str] = None
    term_lt: Optional[str] = None
    term_en: Optional[str] = None
    description_lt: Optional[str] = None
    description_en: Optional[str] = None
    source_ref: Optional[str] = None
    is_required: bool = True
    metadata: Dict[str, Any] = Field(default_factory=dict)


class BatchCreateBody(BaseModel):
    items: List[BatchItem]
    dry_run: bool = False


# ------------------------------------------------------------------
# Node endpoints
# ------------------------------------------------------------------
@router.get("/tree")
def get_tree(svc: NodeService = Depends(get_node_service)):
    return svc.get_tree()


@router.get("/nodes")
def list_nodes(parent_code: Optional[str] = None, svc: NodeService = Depends(get_node_service)):
    return [n.to_dict() for n in svc.list_children(parent_code)]


@router.get("/nodes/{code}")
def get_node(code: str, svc: NodeService = Depends(get_node_service)):
    return svc.get_node(code).to_dict()


@router.post("/nodes", status_code=status.HTTP_201_CREATED)
def create_node(
    body: NodeCreateBody,
    svc: NodeService = Depends(get_node_service),
    actor: str = Depends(get_editor),
):
    node = svc.create_node(
        title=body.title,
        summary=body.summary,
        parent_code=body.parent_code,
        ordinal=body.ordinal,
        code=body.code,
        actor=actor,
    )
    return node.to_dict()


@router.patch("/nodes/{code}")
def update_node(
    code: str,
    body: NodeUpdateBody,
    svc: NodeService = Depends(get_node_service),
    actor: str = Depends(get_editor),
):
    return svc.update_node(code, body.model_dump(exclude_unset=True), actor=actor).to_dict()


@router.delete("/nodes/{code}")
def delete_node(
    code: str,
    svc: NodeService = Depends(get_node_service),
    actor: str = Depends(get_editor),
):
    return {"deleted": svc.delete_node(code, actor=actor).to_dict()}


# ------------------------------------------------------------------
# Item endpoints
# ------------------------------------------------------------------
@router.get("/nodes/{code}/items")
def list_items(code: str, svc: ItemService = Depends(get_item_service)):
    return [serialize_placement(entry) for entry in svc.list_items(code)]


@router.post("/nodes/{code}/items", status_code=status.HTTP_201_CREATED)
def create_item(
    code: str,
    body: ItemCreateBody,
    svc: ItemService = Depends(get_item_service),
    actor: str = Depends(get_editor),
):
    fields = body.model_dump(exclude={"label", "ordinal"}, exclude_none=True)
    result = svc.create_item(code, body.label, fields, target_ordinal=body.ordinal, actor=actor)
    return serialize_placement(result)


@router.post("/items/batch")
def batch_create_items(
    body: BatchCreateBody,
    svc: BatchService = Depends(get_batch_service),
    actor: str = Depends(get_editor),
):
    items = [i.model_dump(exclude_none=True) for i in body.items]
    return svc.batch_create_items(items, dry_run=body.dry_run, actor=actor)
