"""SQLite implementation of CurriculumStore.

One connection per call and one committed statement per write, matching the
guarantees of the hosted store.
"""
from __future__ import annotations
import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from curriculum.domain.common.errors import StoreReadFailed, StoreWriteFailed
from curriculum.domain.curriculum.models import Concept, CurriculumItem, CurriculumNode
from curriculum.persistence.db import get_connection
from curriculum.persistence.interfaces.curriculum_store import CurriculumStore

NODE_COLUMNS = {"title", "summary", "level", "parent_code", "ordinal"}
ITEM_COLUMNS = {"ordinal", "label"}
CONCEPT_COLUMNS = {
    "section_code",
    "section_title",
    "subsection_code",
    "subsection_title",
    "term_lt",
    "term_en",
    "description_lt",
    "description_en",
    "source_ref",
    "is_required",
    "metadata",
    "curriculum_node_code",
    "curriculum_item_ordinal",
    "curriculum_item_label",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_node(row) -> CurriculumNode:
    return CurriculumNode(
        code=row["code"],
        title=row["title"],
        summary=row["summary"],
        level=row["level"],
        parent_code=row["parent_code"],
        ordinal=row["ordinal"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_item(row) -> CurriculumItem:
    return CurriculumItem(
        node_code=row["node_code"],
        ordinal=row["ordinal"],
        label=row["label"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_concept(row) -> Concept:
    return Concept(
        id=row["id"],
        slug=row["slug"],
        section_code=row["section_code"],
        section_title=row["section_title"],
        subsection_code=row["subsection_code"],
        subsection_title=row["subsection_title"],
        term_lt=row["term_lt"],
        term_en=row["term_en"],
        description_lt=row["description_lt"],
        description_en=row["description_en"],
        source_ref=row["source_ref"],
        is_required=bool(row["is_required"]),
        metadata=json.loads(row["metadata"] or "{}"),
        curriculum_node_code=row["curriculum_node_code"],
        curriculum_item_ordinal=row["curriculum_item_ordinal"],
        curriculum_item_label=row["curriculum_item_label"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _encode(column: str, value: Any) -> Any:
    if column == "metadata":
        return json.dumps(value or {}, ensure_ascii=False)
    if column == "is_required":
        return 1 if value else 0
    return value


def _set_clause(fields: Dict[str, Any], allowed: set) -> tuple[str, List[Any]]:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unsupported columns: {sorted(unknown)}")
    columns = sorted(fields)
    assignments = [f"{c} = ?" for c in columns] + ["updated_at = ?"]
    values = [_encode(c, fields[c]) for c in columns] + [_now_iso()]
    return ", ".join(assignments), values


class SqliteCurriculumStore(CurriculumStore):

    def __init__(self, db_path: Optional[str] = None):
        self._db_path = db_path

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------
    def _fetchall(self, sql: str, params: Any = ()) -> List[sqlite3.Row]:
        conn = get_connection(self._db_path)
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreReadFailed(f"Store read failed: {e}") from e
        finally:
            conn.close()

    def _fetchone(self, sql: str, params: Any = ()) -> Optional[sqlite3.Row]:
        rows = self._fetchall(sql, params)
        return rows[0] if rows else None

    def _execute(self, sql: str, params: Any = ()) -> int:
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(sql, params)
            conn.commit()
            return cur.rowcount
        except sqlite3.IntegrityError as e:
            raise StoreWriteFailed(
                f"Store write failed: {e}",
                is_unique_violation="UNIQUE constraint failed" in str(e),
            ) from e
        except sqlite3.Error as e:
            raise StoreWriteFailed(f"Store write failed: {e}") from e
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------
    def get_node(self, code: str) -> Optional[CurriculumNode]:
        row = self._fetchone("SELECT * FROM curriculum_nodes WHERE code = ?", (code,))
        return _row_to_node(row) if row else None

    def list_nodes(self) -> List[CurriculumNode]:
        rows = self._fetchall(
            "SELECT * FROM curriculum_nodes ORDER BY level ASC, parent_code ASC, ordinal ASC"
        )
        return [_row_to_node(r) for r in rows]

    def list_child_nodes(self, parent_code: Optional[str]) -> List[CurriculumNode]:
        if parent_code is None:
            rows = self._fetchall(
                "SELECT * FROM curriculum_nodes WHERE parent_code IS NULL ORDER BY ordinal ASC"
            )
        else:
            rows = self._fetchall(
                "SELECT * FROM curriculum_nodes WHERE parent_code = ? ORDER BY ordinal ASC",
                (parent_code,),
            )
        return [_row_to_node(r) for r in rows]

    def insert_node(self, node: CurriculumNode) -> None:
        now = _now_iso()
        self._execute(
            """
            INSERT INTO curriculum_nodes (code, title, summary, level, parent_code, ordinal, created_at, updated_at)
            VALUES (:code, :title, :summary, :level, :parent_code, :ordinal, :created_at, :updated_at)
            """,
            {
                "code": node.code,
                "title": node.title,
                "summary": node.summary,
                "level": node.level,
                "parent_code": node.parent_code,
                "ordinal": node.ordinal,
                "created_at": node.created_at or now,
                "updated_at": node.updated_at or now,
            },
        )

    def update_node(self, code: str, fields: Dict[str, Any]) -> None:
        clause, values = _set_clause(fields, NODE_COLUMNS)
        self._execute(f"UPDATE curriculum_nodes SET {clause} WHERE code = ?", values + [code])

    def delete_node(self, code: str) -> bool:
        return self._execute("DELETE FROM curriculum_nodes WHERE code = ?", (code,)) > 0

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------
    def get_item(self, node_code: str, ordinal: int) -> Optional[CurriculumItem]:
        row = self._fetchone(
            "SELECT * FROM curriculum_items WHERE node_code = ? AND ordinal = ?",
            (node_code, ordinal),
        )
        return _row_to_item(row) if row else None

    def list_items(self, node_code: str) -> List[CurriculumItem]:
        rows = self._fetchall(
            "SELECT * FROM curriculum_items WHERE node_code = ? ORDER BY ordinal ASC",
            (node_code,),
        )
        return [_row_to_item(r) for r in rows]

    def insert_item(self, item: CurriculumItem) -> None:
        now = _now_iso()
        self._execute(
            """
            INSERT INTO curriculum_items (node_code, ordinal, label, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (item.node_code, item.ordinal, item.label, item.created_at or now, item.updated_at or now),
        )

    def update_item(self, node_code: str, ordinal: int, fields: Dict[str, Any]) -> None:
        clause, values = _set_clause(fields, ITEM_COLUMNS)
        self._execute(
            f"UPDATE curriculum_items SET {clause} WHERE node_code = ? AND ordinal = ?",
            values + [node_code, ordinal],
        )

    def delete_item(self, node_code: str, ordinal: int) -> bool:
        return self._execute(
            "DELETE FROM curriculum_items WHERE node_code = ? AND ordinal = ?",
            (node_code, ordinal),
        ) > 0

    # ------------------------------------------------------------------
    # Concepts
    # ------------------------------------------------------------------
    def get_concept(self, slug: str) -> Optional[Concept]:
        row = self._fetchone("SELECT * FROM concepts WHERE slug = ?", (slug,))
        return _row_to_concept(row) if row else None

    def concept_slug_exists(self, slug: str) -> bool:
        return self._fetchone("SELECT slug FROM concepts WHERE slug = ?", (slug,)) is not None

    def find_concept_by_section_and_term(self, section_code: str, term_lt: str) -> Optional[Concept]:
        wanted = (term_lt or "").strip().casefold()
        rows = self._fetchall(
            "SELECT * FROM concepts WHERE section_code = ? ORDER BY created_at ASC",
            (section_code,),
        )
        for row in rows:
            if (row["term_lt"] or "").strip().casefold() == wanted:
                return _row_to_concept(row)
        return None

    def list_concepts(self, section_code: Optional[str] = None) -> List[Concept]:
        if section_code:
            rows = self._fetchall(
                "SELECT * FROM concepts WHERE section_code = ? "
                "ORDER BY section_code, subsection_code, term_lt",
                (section_code,),
            )
        else:
            rows = self._fetchall("SELECT * FROM concepts ORDER BY section_code, subsection_code, term_lt")
        return [_row_to_concept(r) for r in rows]

    def list_concepts_for_nodes(self, node_codes: List[str]) -> List[Concept]:
        if not node_codes:
            return []
        placeholders = ", ".join("?" for _ in node_codes)
        rows = self._fetchall(
            f"SELECT * FROM concepts WHERE curriculum_node_code IN ({placeholders}) "
            "ORDER BY curriculum_node_code, curriculum_item_ordinal",
            list(node_codes),
        )
        return [_row_to_concept(r) for r in rows]

    def insert_concept(self, concept: Concept) -> None:
        now = _now_iso()
        self._execute(
            """
            INSERT INTO concepts (
                id, slug, section_code, section_title, subsection_code, subsection_title,
                term_lt, term_en, description_lt, description_en, source_ref,
                is_required, metadata,
                curriculum_node_code, curriculum_item_ordinal, curriculum_item_label,
                created_at, updated_at
            ) VALUES (
                :id, :slug, :section_code, :section_title, :subsection_code, :subsection_title,
                :term_lt, :term_en, :description_lt, :description_en, :source_ref,
                :is_required, :metadata,
                :curriculum_node_code, :curriculum_item_ordinal, :curriculum_item_label,
                :created_at, :updated_at
            )
            """,
            {
                "id": concept.id,
                "slug": concept.slug,
                "section_code": concept.section_code,
                "section_title": concept.section_title,
                "subsection_code": concept.subsection_code,
                "subsection_title": concept.subsection_title,
                "term_lt": concept.term_lt,
                "term_en": concept.term_en,
                "description_lt": concept.description_lt,
                "description_en": concept.description_en,
                "source_ref": concept.source_ref,
                "is_required": _encode("is_required", concept.is_required),
                "metadata": _encode("metadata", concept.metadata),
                "curriculum_node_code": concept.curriculum_node_code,
                "curriculum_item_ordinal": concept.curriculum_item_ordinal,
                "curriculum_item_label": concept.curriculum_item_label,
                "created_at": concept.created_at or now,
                "updated_at": concept.updated_at or now,
            },
        )

    def update_concept(self, slug: str, fields: Dict[str, Any]) -> None:
        clause, values = _set_clause(fields, CONCEPT_COLUMNS)
        self._execute(f"UPDATE concepts SET {clause} WHERE slug = ?", values + [slug])

    def delete_concept(self, slug: str) -> bool:
        return self._execute("DELETE FROM concepts WHERE slug = ?", (slug,)) > 0
