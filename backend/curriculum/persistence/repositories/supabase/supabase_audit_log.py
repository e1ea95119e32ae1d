from __future__ import annotations
import uuid
from typing import Any, Dict, List, Optional

from curriculum.persistence.interfaces.audit_log import AuditLog
from curriculum.persistence.repositories.supabase.postgrest import PostgrestClient, eq, now_iso

VERSIONS_TABLE = "content_versions"


class SupabaseAuditLog(AuditLog):
    """Appends to ``content_versions``; JSON snapshots go into jsonb columns."""

    def __init__(self, client: Optional[PostgrestClient] = None):
        self._client = client or PostgrestClient()

    def _filters(self, entity_type: str, entity_id: str):
        return [("entity_type", eq(entity_type)), ("entity_id", eq(entity_id))]

    def record(
        self,
        entity_type: str,
        entity_id: str,
        before: Optional[Dict[str, Any]],
        after: Optional[Dict[str, Any]],
        actor: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> str:
        latest = self._client.select(
            VERSIONS_TABLE,
            self._filters(entity_type, entity_id),
            order="version_number.desc",
            limit=1,
            columns="version_number",
        )
        entry_id = str(uuid.uuid4())
        self._client.insert(
            VERSIONS_TABLE,
            {
                "id": entry_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "version_number": (latest[0]["version_number"] if latest else 0) + 1,
                "before_json": before,
                "after_json": after,
                "actor": actor,
                "change_summary": summary,
                "created_at": now_iso(),
            },
        )
        return entry_id

    def list_entries(self, entity_type: str, entity_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        rows = self._client.select(
            VERSIONS_TABLE,
            self._filters(entity_type, entity_id),
            order="version_number.desc",
            limit=limit,
        )
        return [
            {
                "id": r.get("id"),
                "entity_type": r.get("entity_type"),
                "entity_id": r.get("entity_id"),
                "version_number": r.get("version_number"),
                "before": r.get("before_json"),
                "after": r.get("after_json"),
                "actor": r.get("actor"),
                "change_summary": r.get("change_summary"),
                "created_at": r.get("created_at"),
            }
            for r in rows
        ]
