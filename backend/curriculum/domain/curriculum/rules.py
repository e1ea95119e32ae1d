"""Business rules for curriculum input: Result-returning validators."""
from __future__ import annotations
import re
from typing import Any, Optional

from curriculum.core.config import MAX_CODE_LENGTH, MAX_SUMMARY_LENGTH, MAX_TITLE_LENGTH
from curriculum.domain.common.result import Result

CODE_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9.-]*[A-Za-z0-9])?$")

# Fields a content edit may touch on a concept
CONTENT_FIELDS = {
    "term_lt",
    "term_en",
    "description_lt",
    "description_en",
    "source_ref",
    "is_required",
    "metadata",
    "status",
    "label",
}

# Placement is owned by the reorder/move engine
PLACEMENT_FIELDS = {
    "curriculum_node_code",
    "curriculum_item_ordinal",
    "ordinal",
    "node_code",
    "section_code",
    "subsection_code",
    "slug",
}

VALID_STATUSES = {"draft", "published"}


def clean_text(value: Any) -> Optional[str]:
    """Trim strings; blank becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_title(title: Any) -> Result[str]:
    text = clean_text(title)
    if not text:
        return Result.fail("Title is required and cannot be empty.")
    if len(text) > MAX_TITLE_LENGTH:
        return Result.fail(f"Title cannot exceed {MAX_TITLE_LENGTH} characters.")
    return Result.ok(text)


def validate_summary(summary: Any) -> Result[Optional[str]]:
    text = clean_text(summary)
    if text and len(text) > MAX_SUMMARY_LENGTH:
        return Result.fail(f"Summary cannot exceed {MAX_SUMMARY_LENGTH} characters.")
    return Result.ok(text)


def validate_code(code: Any) -> Result[str]:
    text = clean_text(code)
    if not text:
        return Result.fail("Code cannot be empty.")
    if len(text) > MAX_CODE_LENGTH:
        return Result.fail(f"Code cannot exceed {MAX_CODE_LENGTH} characters.")
    if not CODE_PATTERN.match(text):
        return Result.fail("Code may contain letters, digits, dots and dashes (no spaces).")
    return Result.ok(text)


def validate_ordinal(value: Any) -> Result[Optional[int]]:
    if value is None:
        return Result.ok(None)
    if isinstance(value, bool) or not isinstance(value, int):
        return Result.fail("Ordinal must be a whole number.")
    return Result.ok(value)


def validate_label(label: Any) -> Result[str]:
    text = clean_text(label)
    if not text:
        return Result.fail("Curriculum item label cannot be empty.")
    return Result.ok(text)


def validate_content_patch(patch: dict) -> Result[dict]:
    placement = sorted(set(patch) & PLACEMENT_FIELDS)
    if placement:
        return Result.fail(
            f"Fields {placement} cannot be changed by a content edit; use reorder or move."
        )
    unknown = sorted(set(patch) - CONTENT_FIELDS)
    if unknown:
        return Result.fail(f"Unknown concept fields: {unknown}.")
    if "term_lt" in patch and not clean_text(patch["term_lt"]):
        return Result.fail("Concept 'term_lt' cannot be empty.")
    if "label" in patch and not clean_text(patch["label"]):
        return Result.fail("Curriculum item label cannot be empty.")
    if "status" in patch and patch["status"] not in VALID_STATUSES:
        return Result.fail(f"'{patch['status']}' is not a valid status. Must be one of {sorted(VALID_STATUSES)}.")
    if "metadata" in patch and not isinstance(patch["metadata"], dict):
        return Result.fail("Concept 'metadata' must be an object.")
    return Result.ok(patch)
