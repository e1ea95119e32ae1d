"""Ordinal groups backed by the curriculum store.

The only place that reads or writes ``ordinal`` columns. Item writes are
mirrored onto the concept paired with the item, addressed by slug, so both
tables move in lockstep and a concept left behind by a failed write is
pulled back on the next pass.
"""
from __future__ import annotations
from typing import Dict, List, Optional, Tuple

from curriculum.core.logging import get_logger
from curriculum.domain.curriculum.models import Concept, CurriculumItem, OrdinalMember
from curriculum.domain.curriculum.resequencer import OrdinalGroup
from curriculum.persistence.interfaces.curriculum_store import CurriculumStore

logger = get_logger(__name__)


class NodeSiblingGroup(OrdinalGroup):
    """Children of ``parent_code``; ``None`` is the group of root sections."""

    def __init__(self, store: CurriculumStore, parent_code: Optional[str]):
        self._store = store
        self.parent_code = parent_code

    @property
    def label(self) -> str:
        return f"nodes:{self.parent_code or '<root>'}"

    def read(self) -> List[OrdinalMember]:
        nodes = self._store.list_child_nodes(self.parent_code)
        return [OrdinalMember(key=n.code, ordinal=n.ordinal) for n in sorted(nodes, key=lambda n: n.ordinal)]

    def write(self, member: OrdinalMember, new_ordinal: int) -> None:
        self._store.update_node(member.key, {"ordinal": new_ordinal})


def pair_concepts(
    items: List[CurriculumItem], concepts: List[Concept]
) -> Tuple[Dict[int, Concept], List[Concept]]:
    """Match each item to its concept; returns ``({item ordinal: concept}, unpaired)``.

    Same ordinal and label first, then label alone (a concept a failed
    write left on a stale ordinal), then ordinal alone (a label edit that
    reached only one row).
    """
    paired: Dict[int, Concept] = {}
    free = list(concepts)

    def take(item: CurriculumItem, matches) -> None:
        for concept in free:
            if matches(item, concept):
                free.remove(concept)
                paired[item.ordinal] = concept
                return

    for item in items:
        take(item, lambda i, c: c.curriculum_item_ordinal == i.ordinal and c.curriculum_item_label == i.label)
    for item in items:
        if item.ordinal not in paired:
            take(item, lambda i, c: c.curriculum_item_label == i.label)
    for item in items:
        if item.ordinal not in paired:
            take(item, lambda i, c: c.curriculum_item_ordinal == i.ordinal)
    return paired, free


class NodeItemGroup(OrdinalGroup):
    """Items of one node. Keys are the item ordinals seen at read time."""

    def __init__(self, store: CurriculumStore, node_code: str):
        self._store = store
        self.node_code = node_code

    @property
    def label(self) -> str:
        return f"items:{self.node_code}"

    def _rows(self) -> Tuple[List[CurriculumItem], Dict[int, Concept], List[Concept]]:
        items = sorted(self._store.list_items(self.node_code), key=lambda i: i.ordinal)
        concepts = self._store.list_concepts_for_nodes([self.node_code])
        paired, unpaired = pair_concepts(items, concepts)
        return items, paired, unpaired

    def reconcile(self) -> None:
        """Detach concepts that point into this node but match no item."""
        _, _, unpaired = self._rows()
        for concept in unpaired:
            logger.warning(
                "concept_detached_from_missing_item",
                slug=concept.slug,
                node_code=self.node_code,
                ordinal=concept.curriculum_item_ordinal,
            )
            self._store.update_concept(concept.slug, {"curriculum_node_code": None, "curriculum_item_ordinal": None})

    def read(self) -> List[OrdinalMember]:
        items, paired, _ = self._rows()
        members = []
        for item in items:
            concept = paired.get(item.ordinal)
            members.append(
                OrdinalMember(
                    key=item.ordinal,
                    ordinal=item.ordinal,
                    mirror_key=concept.slug if concept else None,
                    mirror_ordinal=concept.curriculum_item_ordinal if concept else None,
                )
            )
        return members

    def write(self, member: OrdinalMember, new_ordinal: int) -> None:
        if member.ordinal != new_ordinal:
            self._store.update_item(self.node_code, member.ordinal, {"ordinal": new_ordinal})
        if member.mirror_key is not None:
            self._store.update_concept(member.mirror_key, {"curriculum_item_ordinal": new_ordinal})
