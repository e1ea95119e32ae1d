"""Concept endpoints: content edits, deletion, reorder/move and history."""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from curriculum.api.auth import get_editor
from curriculum.api.serializers import serialize_placement
from curriculum.application.item_service import ItemService
from curriculum.application.placement_service import PlacementService
from curriculum.container import get_item_service, get_placement_service

router = APIRouter(prefix="/admin/concepts", tags=["concepts"])


# ------------------------------------------------------------------
# Pydantic schemas
# ------------------------------------------------------------------
class ConceptContentBody(BaseModel):
    term_lt: Optional[str] = None
    term_en: Optional[str] = None
    description_lt: Optional[str] = None
    description_en: Optional[str] = None
    source_ref: Optional[str] = None
    is_required: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None
    status: Optional[str] = None
    label: Optional[str] = None


class BatchDeleteBody(BaseModel):
    slugs: List[str]


class ReorderBody(BaseModel):
    ordinal: int


class MoveBody(BaseModel):
    node_code: str
    ordinal: Optional[int] = None


# ------------------------------------------------------------------
# Concept endpoints
# ------------------------------------------------------------------
@router.get("")
def list_concepts(
    section_code: Optional[str] = None,
    status: Optional[str] = None,
    svc: ItemService = Depends(get_item_service),
):
    return [c.to_dict() for c in svc.list_concepts(section_code=section_code, status=status)]


@router.get("/{slug}")
def get_concept(slug: str, svc: ItemService = Depends(get_item_service)):
    return svc.get_concept(slug).to_dict()


@router.patch("/{slug}")
def update_concept(
    slug: str,
    body: ConceptContentBody,
    svc: ItemService = Depends(get_item_service),
    actor: str = Depends(get_editor),
):
    return serialize_placement(svc.update_item(slug, body.model_dump(exclude_unset=True), actor=actor))


@router.delete("/{slug}")
def delete_concept(
    slug: str,
    svc: ItemService = Depends(get_item_service),
    actor: str = Depends(get_editor),
):
    return serialize_placement(svc.delete_item_by_slug(slug, actor=actor))


@router.post("/batch-delete")
def batch_delete(
    body: BatchDeleteBody,
    svc: ItemService = Depends(get_item_service),
    actor: str = Depends(get_editor),
):
    return svc.delete_items_by_slug(body.slugs, actor=actor)


@router.post("/{slug}/reorder")
def reorder_concept(
    slug: str,
    body: ReorderBody,
    svc: PlacementService = Depends(get_placement_service),
    actor: str = Depends(get_editor),
):
    return serialize_placement(svc.reorder_item(slug, body.ordinal, actor=actor))


@router.post("/{slug}/move")
def move_concept(
    slug: str,
    body: MoveBody,
    svc: PlacementService = Depends(get_placement_service),
    actor: str = Depends(get_editor),
):
    return serialize_placement(svc.move_item(slug, body.node_code, body.ordinal, actor=actor))


# ------------------------------------------------------------------
# History
# ------------------------------------------------------------------
@router.get("/{slug}/history")
def concept_history(slug: str, limit: int = 20, svc: ItemService = Depends(get_item_service)):
    return svc.history(slug, limit=limit)
