"""Audit trail for curriculum mutations.

Snapshots are written after the mutation succeeded. A failing audit write is
logged and swallowed so the mutation result stands.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from curriculum.core.logging import get_logger
from curriculum.domain.common.errors import StoreError
from curriculum.persistence.interfaces.audit_log import AuditLog

logger = get_logger(__name__)

NODE_ENTITY = "curriculum_node"
ITEM_ENTITY = "curriculum_item"
CONCEPT_ENTITY = "concept"


def item_entity_id(node_code: str, ordinal: int) -> str:
    return f"{node_code}#{ordinal}"


class Auditor:
    def __init__(self, audit_log: AuditLog):
        self._log = audit_log

    def record(
        self,
        entity_type: str,
        entity_id: str,
        before: Optional[Dict[str, Any]],
        after: Optional[Dict[str, Any]],
        actor: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> Optional[str]:
        try:
            return self._log.record(entity_type, entity_id, before, after, actor=actor, summary=summary)
        except StoreError as e:
            logger.error(
                "audit_record_failed",
                entity_type=entity_type,
                entity_id=entity_id,
                actor=actor,
                error=str(e),
            )
            return None

    def history(self, entity_type: str, entity_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        return self._log.list_entries(entity_type, entity_id, limit=limit)
