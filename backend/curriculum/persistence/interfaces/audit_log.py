"""Abstract interface for the audit/version log."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class AuditLog(ABC):

    @abstractmethod
    def record(
        self,
        entity_type: str,
        entity_id: str,
        before: Optional[Dict[str, Any]],
        after: Optional[Dict[str, Any]],
        actor: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> str:
        """Append one before/after snapshot entry. Returns the entry id."""
        ...

    @abstractmethod
    def list_entries(self, entity_type: str, entity_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Most recent entries first."""
        ...
