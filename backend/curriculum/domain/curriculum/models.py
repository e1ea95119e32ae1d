"""Curriculum domain models: pure Python, no DB or HTTP dependencies."""
from __future__ import annotations
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass
class CurriculumNode:
    code: str
    title: str
    level: int
    ordinal: int
    parent_code: Optional[str] = None
    summary: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CurriculumItem:
    node_code: str
    ordinal: int
    label: str
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Concept:
    id: str
    slug: str
    section_code: str
    term_lt: str
    section_title: Optional[str] = None
    subsection_code: Optional[str] = None
    subsection_title: Optional[str] = None
    term_en: Optional[str] = None
    description_lt: Optional[str] = None
    description_en: Optional[str] = None
    source_ref: Optional[str] = None
    is_required: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)
    curriculum_node_code: Optional[str] = None
    curriculum_item_ordinal: Optional[int] = None
    curriculum_item_label: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def status(self) -> str:
        return "published" if self.metadata.get("status") == "published" else "draft"

    @property
    def is_linked(self) -> bool:
        return bool(self.curriculum_node_code) and self.curriculum_item_ordinal is not None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status
        return data


@dataclass
class SectionContext:
    section_code: str
    section_title: Optional[str] = None
    subsection_code: Optional[str] = None
    subsection_title: Optional[str] = None

    @classmethod
    def from_lineage(cls, lineage: List[CurriculumNode]) -> "SectionContext":
        """``lineage`` runs from the node itself up to its root section."""
        node = lineage[0]
        section = lineage[-1]
        subsection = None if node.code == section.code else node
        return cls(
            section_code=section.code,
            section_title=section.title,
            subsection_code=subsection.code if subsection else None,
            subsection_title=subsection.title if subsection else None,
        )

    def to_fields(self) -> Dict[str, Optional[str]]:
        return asdict(self)


class GroupState(str, Enum):
    STABLE = "stable"
    ESCAPING = "escaping"
    SETTLING = "settling"


@dataclass
class OrdinalMember:
    """One row of a sibling group. ``key`` is stable for the whole operation."""

    key: Any
    ordinal: int
    mirror_key: Any = None
    mirror_ordinal: Optional[int] = None

    @property
    def drifted(self) -> bool:
        """The mirrored row no longer sits on this member's ordinal."""
        return self.mirror_key is not None and self.mirror_ordinal != self.ordinal
