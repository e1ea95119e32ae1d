"""Item/concept lifecycle: create, content edits and deletion.

An item row and its concept row are written separately. When the second
write fails the first is undone (compensation) and the original error
propagates.
"""
from __future__ import annotations
import uuid
from typing import Any, Dict, Iterable, List, Optional

from curriculum.application.auditing import CONCEPT_ENTITY, ITEM_ENTITY, Auditor, item_entity_id
from curriculum.application.support import compensate, section_context
from curriculum.core.logging import get_logger
from curriculum.domain.common.errors import (
    ConceptNotFound,
    CurriculumError,
    DuplicateConcept,
    InvalidInput,
    NodeNotFound,
    StoreError,
)
from curriculum.domain.curriculum import rules
from curriculum.domain.curriculum.models import Concept, CurriculumItem
from curriculum.domain.curriculum.resequencer import Resequencer, clamp_ordinal
from curriculum.domain.curriculum.slugs import unique_concept_slug
from curriculum.persistence.interfaces.curriculum_store import CurriculumStore
from curriculum.persistence.ordinals import NodeItemGroup

logger = get_logger(__name__)

DEFAULT_METADATA = {"status": "draft", "createdVia": "curriculum-tree"}
DEFAULT_DESCRIPTION_LT = "Aprašymas bus papildytas vėliau."

# Plain-text concept columns a content edit may set
TEXT_FIELDS = ("term_en", "description_lt", "description_en", "source_ref")


class ItemService:
    def __init__(self, store: CurriculumStore, auditor: Auditor, resequencer: Optional[Resequencer] = None):
        self._store = store
        self._auditor = auditor
        self._resequencer = resequencer or Resequencer()

    # ------------------------------------------------------------------
    # READ
    # ------------------------------------------------------------------
    def get_concept(self, slug: str) -> Concept:
        concept = self._store.get_concept(slug)
        if not concept:
            raise ConceptNotFound(slug)
        return concept

    def list_items(self, node_code: str) -> List[Dict[str, Any]]:
        """Items of a node with their attached concept (or None)."""
        if not self._store.get_node(node_code):
            raise NodeNotFound(node_code)
        concepts = {c.curriculum_item_ordinal: c for c in self._store.list_concepts_for_nodes([node_code])}
        return [
            {"item": item, "concept": concepts.get(item.ordinal)}
            for item in self._store.list_items(node_code)
        ]

    def list_concepts(self, section_code: Optional[str] = None, status: Optional[str] = None) -> List[Concept]:
        if status is not None and status not in rules.VALID_STATUSES:
            raise InvalidInput(f"'{status}' is not a valid status.")
        concepts = self._store.list_concepts(section_code)
        if status:
            concepts = [c for c in concepts if c.status == status]
        return concepts

    def history(self, slug: str, limit: int = 20) -> List[Dict[str, Any]]:
        concept = self.get_concept(slug)
        return self._auditor.history(CONCEPT_ENTITY, concept.slug, limit=limit)

    # ------------------------------------------------------------------
    # CREATE
    # ------------------------------------------------------------------
    def create_item(
        self,
        node_code: str,
        label: str,
        concept_fields: Optional[Dict[str, Any]] = None,
        target_ordinal: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not self._store.get_node(node_code):
            raise NodeNotFound(node_code)
        label = rules.validate_label(label).unwrap(InvalidInput)
        requested = rules.validate_ordinal(target_ordinal).unwrap(InvalidInput)
        fields = dict(concept_fields or {})
        if "metadata" in fields and fields["metadata"] is not None and not isinstance(fields["metadata"], dict):
            raise InvalidInput("Concept 'metadata' must be an object.")

        term_lt = rules.clean_text(fields.get("term_lt")) or label
        context = section_context(self._store, node_code)
        existing = self._store.find_concept_by_section_and_term(context.section_code, term_lt)
        if existing:
            raise DuplicateConcept(existing)

        slug = unique_concept_slug(
            rules.clean_text(fields.get("slug")) or term_lt,
            self._store.concept_slug_exists,
        )

        group = NodeItemGroup(self._store, node_code)
        self._resequencer.resequence(group)
        size = len(group.read())
        position = clamp_ordinal(requested, size + 1)
        opened = position <= size
        if opened:
            self._resequencer.open_slot(group, position)

        item = CurriculumItem(node_code=node_code, ordinal=position, label=label)
        try:
            self._store.insert_item(item)
        except StoreError:
            if opened:
                compensate(
                    "close_opened_slot",
                    lambda: self._resequencer.close_slot(group, position),
                    node_code=node_code,
                    ordinal=position,
                )
            raise

        metadata = {**DEFAULT_METADATA, **(fields.get("metadata") or {})}
        if fields.get("status") in rules.VALID_STATUSES:
            metadata["status"] = fields["status"]
        concept = Concept(
            id=str(uuid.uuid4()),
            slug=slug,
            term_lt=term_lt,
            term_en=rules.clean_text(fields.get("term_en")),
            description_lt=rules.clean_text(fields.get("description_lt")) or DEFAULT_DESCRIPTION_LT,
            description_en=rules.clean_text(fields.get("description_en")),
            source_ref=rules.clean_text(fields.get("source_ref")),
            is_required=bool(fields.get("is_required", True)),
            metadata=metadata,
            curriculum_node_code=node_code,
            curriculum_item_ordinal=position,
            curriculum_item_label=label,
            **context.to_fields(),
        )
        try:
            self._store.insert_concept(concept)
        except StoreError:
            compensate(
                "delete_item_without_concept",
                lambda: self._store.delete_item(node_code, position),
                node_code=node_code,
                ordinal=position,
                slug=slug,
            )
            if opened:
                compensate(
                    "close_opened_slot",
                    lambda: self._resequencer.close_slot(group, position),
                    node_code=node_code,
                    ordinal=position,
                )
            raise

        stored_item = self._store.get_item(node_code, position) or item
        stored_concept = self._store.get_concept(slug) or concept
        self._auditor.record(
            ITEM_ENTITY, item_entity_id(node_code, position), None, stored_item.to_dict(), actor, "created"
        )
        self._auditor.record(CONCEPT_ENTITY, slug, None, stored_concept.to_dict(), actor, "created")
        logger.info("item_created", node_code=node_code, ordinal=position, slug=slug)
        return {"concept": stored_concept, "item": stored_item}

    # ------------------------------------------------------------------
    # UPDATE (content only)
    # ------------------------------------------------------------------
    def update_item(self, slug: str, patch: Dict[str, Any], actor: Optional[str] = None) -> Dict[str, Any]:
        """Content edit; returns the concept and its paired item after any label change."""
        concept = self.get_concept(slug)
        patch = rules.validate_content_patch(dict(patch)).unwrap(InvalidInput)

        fields: Dict[str, Any] = {}
        for key in TEXT_FIELDS:
            if key in patch:
                fields[key] = rules.clean_text(patch[key])
        if "is_required" in patch:
            fields["is_required"] = bool(patch["is_required"])
        if "metadata" in patch or "status" in patch:
            metadata = dict(concept.metadata)
            metadata.update(patch.get("metadata") or {})
            if "status" in patch:
                metadata["status"] = patch["status"]
            fields["metadata"] = metadata

        new_term = None
        if "term_lt" in patch:
            term = rules.clean_text(patch["term_lt"])
            if term != concept.term_lt:
                other = self._store.find_concept_by_section_and_term(concept.section_code, term)
                if other and other.slug != concept.slug:
                    raise DuplicateConcept(other)
                fields["term_lt"] = term
                new_term = term

        label = rules.clean_text(patch["label"]) if "label" in patch else None
        if concept.is_linked:
            node_code, ordinal = concept.curriculum_node_code, concept.curriculum_item_ordinal
            if label is None and new_term:
                item = self._store.get_item(node_code, ordinal)
                if item and item.label == concept.term_lt:
                    label = new_term
            if label is not None:
                self._store.update_item(node_code, ordinal, {"label": label})
                fields["curriculum_item_label"] = label

        if fields:
            self._store.update_concept(slug, fields)
        updated = self.get_concept(slug)
        self._auditor.record(CONCEPT_ENTITY, slug, concept.to_dict(), updated.to_dict(), actor, "content updated")
        logger.info("concept_updated", slug=slug, fields=sorted(fields))
        item = None
        if updated.is_linked:
            item = self._store.get_item(updated.curriculum_node_code, updated.curriculum_item_ordinal)
        return {"concept": updated, "item": item}

    # ------------------------------------------------------------------
    # DELETE
    # ------------------------------------------------------------------
    def delete_linked(self, concept: Concept, actor: Optional[str] = None) -> Optional[CurriculumItem]:
        """Delete a concept, then the item it is attached to. No resequencing."""
        item = None
        if concept.is_linked:
            item = self._store.get_item(concept.curriculum_node_code, concept.curriculum_item_ordinal)
        self._store.delete_concept(concept.slug)
        if item:
            self._store.delete_item(item.node_code, item.ordinal)
            self._auditor.record(
                ITEM_ENTITY, item_entity_id(item.node_code, item.ordinal), item.to_dict(), None, actor, "deleted"
            )
        self._auditor.record(CONCEPT_ENTITY, concept.slug, concept.to_dict(), None, actor, "deleted")
        logger.info(
            "concept_deleted",
            slug=concept.slug,
            node_code=concept.curriculum_node_code,
            ordinal=concept.curriculum_item_ordinal,
        )
        return item

    def delete_item_by_slug(self, slug: str, actor: Optional[str] = None) -> Dict[str, Any]:
        concept = self.get_concept(slug)
        item = self.delete_linked(concept, actor)
        if concept.is_linked:
            self._resequencer.close_slot(
                NodeItemGroup(self._store, concept.curriculum_node_code),
                concept.curriculum_item_ordinal,
            )
        return {"concept": concept, "item": item}

    def delete_items_by_slug(self, slugs: Iterable[str], actor: Optional[str] = None) -> Dict[str, Any]:
        """Delete many concepts; every touched node is compacted once at the end."""
        deleted: List[str] = []
        failed: List[Dict[str, Any]] = []
        touched: List[str] = []

        for slug in dict.fromkeys(slugs):
            try:
                concept = self.get_concept(slug)
                self.delete_linked(concept, actor)
            except CurriculumError as e:
                failed.append({"slug": slug, "code": e.code, "message": e.message})
                continue
            deleted.append(slug)
            if concept.is_linked and concept.curriculum_node_code not in touched:
                touched.append(concept.curriculum_node_code)

        for node_code in touched:
            try:
                self._resequencer.resequence(NodeItemGroup(self._store, node_code))
            except CurriculumError as e:
                failed.append({"node_code": node_code, "code": e.code, "message": e.message})

        return {"deleted": deleted, "failed": failed}
