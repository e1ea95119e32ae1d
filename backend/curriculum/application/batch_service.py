"""Bulk item creation with pre-validation and per-node compensation.

Every entry is classified before anything is written:

* ``failed``  - the entry cannot be created (unknown node, blank label);
* ``skipped`` - it would duplicate an existing or an earlier batch concept;
* ``created`` - planned; written unless ``dry_run``.

Writes are grouped by node. A failing node rolls back its own rows only.
"""
from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from curriculum.application.auditing import CONCEPT_ENTITY, ITEM_ENTITY, Auditor, item_entity_id
from curriculum.application.item_service import DEFAULT_DESCRIPTION_LT, DEFAULT_METADATA
from curriculum.application.support import compensate, section_context
from curriculum.core.config import MAX_BATCH_SIZE, MAX_SLUG_LENGTH
from curriculum.core.logging import get_logger
from curriculum.domain.common.errors import BatchTooLarge, NodeNotFound, StoreError
from curriculum.domain.curriculum import rules
from curriculum.domain.curriculum.models import Concept, CurriculumItem, SectionContext
from curriculum.domain.curriculum.resequencer import Resequencer
from curriculum.domain.curriculum.slugs import CONCEPT_SLUG_FALLBACK, ensure_unique, slugify_concept_term
from curriculum.persistence.interfaces.curriculum_store import CurriculumStore
from curriculum.persistence.ordinals import NodeItemGroup

logger = get_logger(__name__)


@dataclass
class _NodePlan:
    node_code: str
    context: SectionContext
    next_ordinal: int
    entries: List["_PlannedItem"] = field(default_factory=list)


@dataclass
class _PlannedItem:
    index: int
    item: CurriculumItem
    concept: Concept


class BatchService:
    def __init__(self, store: CurriculumStore, auditor: Auditor, resequencer: Optional[Resequencer] = None):
        self._store = store
        self._auditor = auditor
        self._resequencer = resequencer or Resequencer()

    def batch_create_items(
        self,
        items: List[Dict[str, Any]],
        dry_run: bool = False,
        actor: Optional[str] = None,
    ) -> Dict[str, Any]:
        if len(items) > MAX_BATCH_SIZE:
            raise BatchTooLarge(
                f"A batch may contain at most {MAX_BATCH_SIZE} items.",
                {"limit": MAX_BATCH_SIZE, "received": len(items)},
            )

        created: List[Dict[str, Any]] = []
        skipped: List[Dict[str, Any]] = []
        failed: List[Dict[str, Any]] = []

        plans = self._plan(items, skipped, failed)

        if dry_run:
            for plan in plans.values():
                created.extend(self._describe(p) for p in plan.entries)
        else:
            for plan in plans.values():
                if self._write_node(plan, actor, failed):
                    created.extend(self._describe(p) for p in plan.entries)

        created.sort(key=lambda e: e["index"])
        summary = {
            "requested": len(items),
            "created": len(created),
            "skipped": len(skipped),
            "failed": len(failed),
            "dry_run": dry_run,
        }
        logger.info("batch_items_processed", actor=actor, **summary)
        return {"created": created, "skipped": skipped, "failed": failed, "summary": summary}

    # ------------------------------------------------------------------
    # Planning (reads only)
    # ------------------------------------------------------------------
    def _plan(
        self,
        items: List[Dict[str, Any]],
        skipped: List[Dict[str, Any]],
        failed: List[Dict[str, Any]],
    ) -> Dict[str, _NodePlan]:
        plans: Dict[str, _NodePlan] = {}
        missing: Set[str] = set()
        planned_slugs: Set[str] = set()
        planned_terms: Set[Tuple[str, str]] = set()

        for index, entry in enumerate(items):
            node_code = rules.clean_text(entry.get("node_code"))
            label = rules.clean_text(entry.get("label"))
            if not node_code:
                failed.append(_outcome(index, entry, "INVALID_INPUT", "node_code is required."))
                continue

            plan = plans.get(node_code)
            if plan is None and node_code not in missing:
                plan = self._node_plan(node_code)
                if plan is None:
                    missing.add(node_code)
                else:
                    plans[node_code] = plan
            if plan is None:
                failed.append(_outcome(index, entry, NodeNotFound.code, f"Curriculum node '{node_code}' was not found."))
                continue

            if not label:
                failed.append(_outcome(index, entry, "INVALID_INPUT", "Curriculum item label cannot be empty."))
                continue

            term_lt = rules.clean_text(entry.get("term_lt")) or label
            term_key = (plan.context.section_code, term_lt.casefold())
            if term_key in planned_terms:
                skipped.append(_outcome(index, entry, "DUPLICATE_IN_BATCH", f"'{term_lt}' appears earlier in this batch."))
                continue
            existing = self._store.find_concept_by_section_and_term(plan.context.section_code, term_lt)
            if existing:
                outcome = _outcome(index, entry, "CONCEPT_ALREADY_EXISTS", f"Concept '{existing.slug}' already exists.")
                outcome["slug"] = existing.slug
                skipped.append(outcome)
                continue

            base = slugify_concept_term(rules.clean_text(entry.get("slug")) or term_lt) or CONCEPT_SLUG_FALLBACK
            if self._store.concept_slug_exists(base):
                outcome = _outcome(index, entry, "SLUG_EXISTS", f"Slug '{base}' is already taken.")
                outcome["slug"] = base
                skipped.append(outcome)
                continue
            slug = ensure_unique(
                base,
                lambda s: s in planned_slugs or (s != base and self._store.concept_slug_exists(s)),
                MAX_SLUG_LENGTH,
                CONCEPT_SLUG_FALLBACK,
            )

            planned_slugs.add(slug)
            planned_terms.add(term_key)
            plan.entries.append(_PlannedItem(index, *self._rows(plan, entry, label, term_lt, slug)))
            plan.next_ordinal += 1

        return plans

    def _node_plan(self, node_code: str) -> Optional[_NodePlan]:
        if not self._store.get_node(node_code):
            return None
        # Writes compact the node first, so new rows follow 1..N.
        return _NodePlan(
            node_code=node_code,
            context=section_context(self._store, node_code),
            next_ordinal=len(self._store.list_items(node_code)) + 1,
        )

    @staticmethod
    def _rows(plan: _NodePlan, entry: Dict[str, Any], label: str, term_lt: str, slug: str):
        metadata = entry.get("metadata") if isinstance(entry.get("metadata"), dict) else {}
        item = CurriculumItem(node_code=plan.node_code, ordinal=plan.next_ordinal, label=label)
        concept = Concept(
            id=str(uuid.uuid4()),
            slug=slug,
            term_lt=term_lt,
            term_en=rules.clean_text(entry.get("term_en")),
            description_lt=rules.clean_text(entry.get("description_lt")) or DEFAULT_DESCRIPTION_LT,
            description_en=rules.clean_text(entry.get("description_en")),
            source_ref=rules.clean_text(entry.get("source_ref")),
            is_required=bool(entry.get("is_required", True)),
            metadata={**DEFAULT_METADATA, **metadata},
            curriculum_node_code=plan.node_code,
            curriculum_item_ordinal=plan.next_ordinal,
            curriculum_item_label=label,
            **plan.context.to_fields(),
        )
        return item, concept

    @staticmethod
    def _describe(planned: _PlannedItem) -> Dict[str, Any]:
        return {
            "index": planned.index,
            "slug": planned.concept.slug,
            "term_lt": planned.concept.term_lt,
            "node_code": planned.item.node_code,
            "ordinal": planned.item.ordinal,
            "label": planned.item.label,
        }

    # ------------------------------------------------------------------
    # Writes, grouped by node
    # ------------------------------------------------------------------
    def _write_node(self, plan: _NodePlan, actor: Optional[str], failed: List[Dict[str, Any]]) -> bool:
        written_items: List[CurriculumItem] = []
        written_concepts: List[Concept] = []
        try:
            self._resequencer.resequence(NodeItemGroup(self._store, plan.node_code))
            for planned in plan.entries:
                self._store.insert_item(planned.item)
                written_items.append(planned.item)
            for planned in plan.entries:
                self._store.insert_concept(planned.concept)
                written_concepts.append(planned.concept)
        except StoreError as e:
            self._roll_back_node(plan, written_items, written_concepts)
            for planned in plan.entries:
                failed.append(
                    {
                        "index": planned.index,
                        "node_code": plan.node_code,
                        "label": planned.item.label,
                        "slug": planned.concept.slug,
                        "code": e.code,
                        "message": e.message,
                    }
                )
            logger.error("batch_node_failed", node_code=plan.node_code, entries=len(plan.entries), error=str(e))
            return False

        for planned in plan.entries:
            self._auditor.record(
                ITEM_ENTITY,
                item_entity_id(planned.item.node_code, planned.item.ordinal),
                None,
                planned.item.to_dict(),
                actor,
                "created in batch",
            )
            self._auditor.record(CONCEPT_ENTITY, planned.concept.slug, None, planned.concept.to_dict(), actor, "created in batch")
        return True

    def _roll_back_node(self, plan: _NodePlan, items: List[CurriculumItem], concepts: List[Concept]) -> None:
        for concept in reversed(concepts):
            compensate(
                "delete_batch_concept",
                lambda c=concept: self._store.delete_concept(c.slug),
                node_code=plan.node_code,
                slug=concept.slug,
            )
        for item in reversed(items):
            compensate(
                "delete_batch_item",
                lambda i=item: self._store.delete_item(i.node_code, i.ordinal),
                node_code=plan.node_code,
                ordinal=item.ordinal,
            )


def _outcome(index: int, entry: Dict[str, Any], code: str, message: str) -> Dict[str, Any]:
    return {
        "index": index,
        "node_code": entry.get("node_code"),
        "label": entry.get("label"),
        "code": code,
        "message": message,
    }
