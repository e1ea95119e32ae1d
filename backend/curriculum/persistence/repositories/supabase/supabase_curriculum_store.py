"""Supabase (PostgREST) implementation of CurriculumStore.

Talks to ``{SUPABASE_URL}/rest/v1/<table>`` with the service key. Each method
is one HTTP request; PostgREST offers no multi-request transaction.
"""
from __future__ import annotations
from dataclasses import fields as dataclass_fields
from typing import Any, Dict, List, Optional

from curriculum.domain.curriculum.models import Concept, CurriculumItem, CurriculumNode
from curriculum.persistence.interfaces.curriculum_store import CurriculumStore
from curriculum.persistence.repositories.supabase.postgrest import Params, PostgrestClient, eq, ilike_exact, in_list

NODE_TABLE = "curriculum_nodes"
ITEM_TABLE = "curriculum_items"
CONCEPTS_TABLE = "concepts"


def _from_row(cls, row: Dict[str, Any]):
    known = {f.name for f in dataclass_fields(cls)}
    return cls(**{k: v for k, v in row.items() if k in known})


def _row_to_concept(row: Dict[str, Any]) -> Concept:
    concept = _from_row(Concept, row)
    concept.metadata = concept.metadata or {}
    concept.is_required = bool(row.get("is_required", True))
    return concept


def _without_empty_stamps(row: Dict[str, Any]) -> Dict[str, Any]:
    """Let the database default created_at/updated_at when the model has none."""
    return {k: v for k, v in row.items() if not (k in ("created_at", "updated_at") and not v)}


class SupabaseCurriculumStore(CurriculumStore):

    def __init__(self, client: Optional[PostgrestClient] = None):
        self._client = client or PostgrestClient()

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------
    def get_node(self, code: str) -> Optional[CurriculumNode]:
        row = self._client.select_one(NODE_TABLE, [("code", eq(code))])
        return _from_row(CurriculumNode, row) if row else None

    def list_nodes(self) -> List[CurriculumNode]:
        rows = self._client.select(NODE_TABLE, [], order="level.asc,parent_code.asc.nullsfirst,ordinal.asc")
        return [_from_row(CurriculumNode, r) for r in rows]

    def list_child_nodes(self, parent_code: Optional[str]) -> List[CurriculumNode]:
        rows = self._client.select(NODE_TABLE, [("parent_code", eq(parent_code))], order="ordinal.asc")
        return [_from_row(CurriculumNode, r) for r in rows]

    def insert_node(self, node: CurriculumNode) -> None:
        self._client.insert(NODE_TABLE, _without_empty_stamps(node.to_dict()))

    def update_node(self, code: str, fields: Dict[str, Any]) -> None:
        self._client.update(NODE_TABLE, [("code", eq(code))], fields)

    def delete_node(self, code: str) -> bool:
        return self._client.delete(NODE_TABLE, [("code", eq(code))])

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------
    @staticmethod
    def _item_filter(node_code: str, ordinal: int) -> Params:
        return [("node_code", eq(node_code)), ("ordinal", eq(ordinal))]

    def get_item(self, node_code: str, ordinal: int) -> Optional[CurriculumItem]:
        row = self._client.select_one(ITEM_TABLE, self._item_filter(node_code, ordinal))
        return _from_row(CurriculumItem, row) if row else None

    def list_items(self, node_code: str) -> List[CurriculumItem]:
        rows = self._client.select(ITEM_TABLE, [("node_code", eq(node_code))], order="ordinal.asc")
        return [_from_row(CurriculumItem, r) for r in rows]

    def insert_item(self, item: CurriculumItem) -> None:
        self._client.insert(ITEM_TABLE, _without_empty_stamps(item.to_dict()))

    def update_item(self, node_code: str, ordinal: int, fields: Dict[str, Any]) -> None:
        self._client.update(ITEM_TABLE, self._item_filter(node_code, ordinal), fields)

    def delete_item(self, node_code: str, ordinal: int) -> bool:
        return self._client.delete(ITEM_TABLE, self._item_filter(node_code, ordinal))

    # ------------------------------------------------------------------
    # Concepts
    # ------------------------------------------------------------------
    def get_concept(self, slug: str) -> Optional[Concept]:
        row = self._client.select_one(CONCEPTS_TABLE, [("slug", eq(slug))])
        return _row_to_concept(row) if row else None

    def concept_slug_exists(self, slug: str) -> bool:
        return self._client.select_one(CONCEPTS_TABLE, [("slug", eq(slug))], columns="slug") is not None

    def find_concept_by_section_and_term(self, section_code: str, term_lt: str) -> Optional[Concept]:
        wanted = (term_lt or "").strip()
        rows = self._client.select(
            CONCEPTS_TABLE,
            [("section_code", eq(section_code)), ("term_lt", ilike_exact(wanted))],
            order="created_at.asc",
        )
        for row in rows:
            if str(row.get("term_lt") or "").strip().casefold() == wanted.casefold():
                return _row_to_concept(row)
        return None

    def list_concepts(self, section_code: Optional[str] = None) -> List[Concept]:
        filters: Params = [("section_code", eq(section_code))] if section_code else []
        rows = self._client.select(CONCEPTS_TABLE, filters, order="section_code.asc,subsection_code.asc,term_lt.asc")
        return [_row_to_concept(r) for r in rows]

    def list_concepts_for_nodes(self, node_codes: List[str]) -> List[Concept]:
        if not node_codes:
            return []
        rows = self._client.select(
            CONCEPTS_TABLE,
            [("curriculum_node_code", in_list(node_codes))],
            order="curriculum_node_code.asc,curriculum_item_ordinal.asc",
        )
        return [_row_to_concept(r) for r in rows]

    def insert_concept(self, concept: Concept) -> None:
        row = concept.to_dict()
        row.pop("status", None)
        self._client.insert(CONCEPTS_TABLE, _without_empty_stamps(row))

    def update_concept(self, slug: str, fields: Dict[str, Any]) -> None:
        self._client.update(CONCEPTS_TABLE, [("slug", eq(slug))], fields)

    def delete_concept(self, slug: str) -> bool:
        return self._client.delete(CONCEPTS_TABLE, [("slug", eq(slug))])
