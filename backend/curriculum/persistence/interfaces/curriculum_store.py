"""Abstract store interface for curriculum nodes, items and concepts.

Every method is a single-row read or write (or a single filtered select).
There is no transaction primitive: callers order their writes.
Implementations wrap driver failures into StoreReadFailed / StoreWriteFailed.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from curriculum.domain.curriculum.models import Concept, CurriculumItem, CurriculumNode


class CurriculumStore(ABC):

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------
    @abstractmethod
    def get_node(self, code: str) -> Optional[CurriculumNode]:
        """Return the node or None."""
        ...

    @abstractmethod
    def list_nodes(self) -> List[CurriculumNode]:
        """All nodes ordered by level, parent_code (NULL first), ordinal."""
        ...

    @abstractmethod
    def list_child_nodes(self, parent_code: Optional[str]) -> List[CurriculumNode]:
        """Direct children of ``parent_code`` (roots when None), ordinal ASC."""
        ...

    @abstractmethod
    def insert_node(self, node: CurriculumNode) -> None:
        ...

    @abstractmethod
    def update_node(self, code: str, fields: Dict[str, Any]) -> None:
        """Update one node row; ``updated_at`` is stamped by the store."""
        ...

    @abstractmethod
    def delete_node(self, code: str) -> bool:
        """Delete one node row. Returns True if a row was deleted."""
        ...

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------
    @abstractmethod
    def get_item(self, node_code: str, ordinal: int) -> Optional[CurriculumItem]:
        ...

    @abstractmethod
    def list_items(self, node_code: str) -> List[CurriculumItem]:
        """Items of one node, ordinal ASC."""
        ...

    @abstractmethod
    def insert_item(self, item: CurriculumItem) -> None:
        ...

    @abstractmethod
    def update_item(self, node_code: str, ordinal: int, fields: Dict[str, Any]) -> None:
        """Update the item currently at ``(node_code, ordinal)``."""
        ...

    @abstractmethod
    def delete_item(self, node_code: str, ordinal: int) -> bool:
        ...

    # ------------------------------------------------------------------
    # Concepts
    # ------------------------------------------------------------------
    @abstractmethod
    def get_concept(self, slug: str) -> Optional[Concept]:
        ...

    @abstractmethod
    def concept_slug_exists(self, slug: str) -> bool:
        ...

    @abstractmethod
    def find_concept_by_section_and_term(self, section_code: str, term_lt: str) -> Optional[Concept]:
        """Case-insensitive match on the trimmed term within one section."""
        ...

    @abstractmethod
    def list_concepts(self, section_code: Optional[str] = None) -> List[Concept]:
        ...

    @abstractmethod
    def list_concepts_for_nodes(self, node_codes: List[str]) -> List[Concept]:
        """Concepts whose curriculum_node_code is any of ``node_codes``."""
        ...

    @abstractmethod
    def insert_concept(self, concept: Concept) -> None:
        ...

    @abstractmethod
    def update_concept(self, slug: str, fields: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def delete_concept(self, slug: str) -> bool:
        ...
