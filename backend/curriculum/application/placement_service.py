"""Reorder within a node and move across nodes.

Item ordinals change only through the item groups, which mirror every write
onto the attached concept.
"""
from __future__ import annotations
from typing import Any, Dict, Optional

from curriculum.application.auditing import CONCEPT_ENTITY, Auditor
from curriculum.application.support import compensate, section_context
from curriculum.core.logging import get_logger
from curriculum.domain.common.errors import ConceptNotFound, ConceptNotLinked, InvalidInput, NodeNotFound, StoreError
from curriculum.domain.curriculum import rules
from curriculum.domain.curriculum.models import Concept, CurriculumItem
from curriculum.domain.curriculum.resequencer import Resequencer, clamp_ordinal
from curriculum.persistence.interfaces.curriculum_store import CurriculumStore
from curriculum.persistence.ordinals import NodeItemGroup

logger = get_logger(__name__)


class PlacementService:
    def __init__(self, store: CurriculumStore, auditor: Auditor, resequencer: Optional[Resequencer] = None):
        self._store = store
        self._auditor = auditor
        self._resequencer = resequencer or Resequencer()

    def _concept(self, slug: str) -> Concept:
        concept = self._store.get_concept(slug)
        if not concept:
            raise ConceptNotFound(slug)
        return concept

    def _placement(self, slug: str) -> Dict[str, Any]:
        concept = self._concept(slug)
        item = None
        if concept.is_linked:
            item = self._store.get_item(concept.curriculum_node_code, concept.curriculum_item_ordinal)
        return {"concept": concept, "item": item}

    def reorder_item(self, slug: str, new_ordinal: int, actor: Optional[str] = None) -> Dict[str, Any]:
        before = self._concept(slug)
        if not before.is_linked:
            raise ConceptNotLinked(slug)
        if new_ordinal is None:
            raise InvalidInput("A target ordinal is required to reorder an item.")
        requested = rules.validate_ordinal(new_ordinal).unwrap(InvalidInput)

        group = NodeItemGroup(self._store, before.curriculum_node_code)
        self._resequencer.resequence(group)
        concept = self._concept(slug)
        if not concept.is_linked:
            raise ConceptNotLinked(slug)
        if requested == concept.curriculum_item_ordinal:
            return self._placement(slug)

        self._resequencer.move(group, concept.curriculum_item_ordinal, requested)
        self._resequencer.resequence(group)

        result = self._placement(slug)
        after = result["concept"]
        self._auditor.record(CONCEPT_ENTITY, slug, before.to_dict(), after.to_dict(), actor, "reordered")
        logger.info(
            "item_reordered",
            slug=slug,
            node_code=after.curriculum_node_code,
            from_ordinal=before.curriculum_item_ordinal,
            ordinal=after.curriculum_item_ordinal,
        )
        return result

    def move_item(
        self,
        slug: str,
        target_node_code: str,
        target_ordinal: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not self._store.get_node(target_node_code):
            raise NodeNotFound(target_node_code)
        concept = self._concept(slug)
        requested = rules.validate_ordinal(target_ordinal).unwrap(InvalidInput)

        if concept.is_linked and concept.curriculum_node_code == target_node_code:
            if requested is None:
                requested = len(self._store.list_items(target_node_code))
            return self.reorder_item(slug, requested, actor)

        label = concept.curriculum_item_label or concept.term_lt
        if concept.is_linked:
            source_code = concept.curriculum_node_code
            source_ordinal = concept.curriculum_item_ordinal
            source_item = self._store.get_item(source_code, source_ordinal)
            if source_item:
                label = source_item.label
            self._store.update_concept(slug, {"curriculum_node_code": None, "curriculum_item_ordinal": None})
            if source_item:
                self._store.delete_item(source_code, source_ordinal)
            self._resequencer.close_slot(NodeItemGroup(self._store, source_code), source_ordinal)

        target = NodeItemGroup(self._store, target_node_code)
        self._resequencer.resequence(target)
        size = len(target.read())
        position = clamp_ordinal(requested, size + 1)
        opened = position <= size
        if opened:
            self._resequencer.open_slot(target, position)

        try:
            self._store.insert_item(CurriculumItem(node_code=target_node_code, ordinal=position, label=label))
        except StoreError:
            if opened:
                compensate(
                    "close_opened_slot",
                    lambda: self._resequencer.close_slot(target, position),
                    node_code=target_node_code,
                    ordinal=position,
                    slug=slug,
                )
            raise

        context = section_context(self._store, target_node_code)
        try:
            self._store.update_concept(
                slug,
                {
                    **context.to_fields(),
                    "curriculum_node_code": target_node_code,
                    "curriculum_item_ordinal": position,
                    "curriculum_item_label": label,
                },
            )
        except StoreError:
            compensate(
                "delete_target_item",
                lambda: self._store.delete_item(target_node_code, position),
                node_code=target_node_code,
                ordinal=position,
                slug=slug,
            )
            compensate(
                "close_opened_slot",
                lambda: self._resequencer.close_slot(target, position),
                node_code=target_node_code,
                ordinal=position,
                slug=slug,
            )
            logger.error("concept_left_unlinked", slug=slug, from_node=concept.curriculum_node_code)
            raise
        self._resequencer.resequence(target)

        result = self._placement(slug)
        self._auditor.record(CONCEPT_ENTITY, slug, concept.to_dict(), result["concept"].to_dict(), actor, "moved")
        logger.info(
            "item_moved",
            slug=slug,
            from_node=concept.curriculum_node_code,
            node_code=target_node_code,
            ordinal=result["concept"].curriculum_item_ordinal,
        )
        return result
