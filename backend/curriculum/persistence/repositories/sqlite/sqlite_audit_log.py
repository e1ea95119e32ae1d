from __future__ import annotations
import json
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from curriculum.domain.common.errors import StoreReadFailed, StoreWriteFailed
from curriculum.persistence.db import get_connection
from curriculum.persistence.interfaces.audit_log import AuditLog


def _row_to_entry(row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "entity_type": row["entity_type"],
        "entity_id": row["entity_id"],
        "version_number": row["version_number"],
        "before": json.loads(row["before_json"]) if row["before_json"] else None,
        "after": json.loads(row["after_json"]) if row["after_json"] else None,
        "actor": row["actor"],
        "change_summary": row["change_summary"],
        "created_at": row["created_at"],
    }


class SqliteAuditLog(AuditLog):

    def __init__(self, db_path: Optional[str] = None):
        self._db_path = db_path

    def get_latest_version_number(self, entity_type: str, entity_id: str) -> int:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT MAX(version_number) FROM content_versions WHERE entity_type = ? AND entity_id = ?",
                (entity_type, entity_id),
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreReadFailed(f"Audit read failed: {e}") from e
        finally:
            conn.close()
        return row[0] if row and row[0] is not None else 0

    def record(
        self,
        entity_type: str,
        entity_id: str,
        before: Optional[Dict[str, Any]],
        after: Optional[Dict[str, Any]],
        actor: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> str:
        entry_id = str(uuid.uuid4())
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                INSERT INTO content_versions (
                    id, entity_type, entity_id, version_number,
                    before_json, after_json, actor, change_summary, created_at
                ) VALUES (
                    :id, :entity_type, :entity_id, :version_number,
                    :before_json, :after_json, :actor, :change_summary, :created_at
                )
                """,
                {
                    "id": entry_id,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "version_number": self.get_latest_version_number(entity_type, entity_id) + 1,
                    "before_json": json.dumps(before, ensure_ascii=False) if before is not None else None,
                    "after_json": json.dumps(after, ensure_ascii=False) if after is not None else None,
                    "actor": actor,
                    "change_summary": summary,
                    "created_at": datetime.now(timezone.utc).isoformat(),
                },
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StoreWriteFailed(f"Audit write failed: {e}") from e
        finally:
            conn.close()
        return entry_id

    def list_entries(self, entity_type: str, entity_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                """
                SELECT * FROM content_versions
                WHERE entity_type = ? AND entity_id = ?
                ORDER BY version_number DESC
                LIMIT ?
                """,
                (entity_type, entity_id, limit),
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreReadFailed(f"Audit read failed: {e}") from e
        finally:
            conn.close()
        return [_row_to_entry(r) for r in rows]
