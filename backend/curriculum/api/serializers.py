from __future__ import annotations
from typing import Any, Dict


def serialize_placement(entry: Dict[str, Any]) -> dict:
    """``{"concept", "item"}`` service results as plain JSON."""
    concept = entry.get("concept")
    item = entry.get("item")
    return {
        "concept": concept.to_dict() if concept else None,
        "item": item.to_dict() if item else None,
    }
