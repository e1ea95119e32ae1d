"""URL-safe code and slug generation for nodes and concepts."""
from __future__ import annotations
import re
import unicodedata
from typing import Callable, Optional

from curriculum.core.config import MAX_CODE_LENGTH, MAX_GENERATION_ATTEMPTS, MAX_SLUG_LENGTH
from curriculum.domain.common.errors import GenerationExhausted

NODE_CODE_FALLBACK = "node"
CONCEPT_SLUG_FALLBACK = "concept"

_PARENTHESISED = re.compile(r"\(.*?\)")
_SEPARATOR_CHARS = re.compile(r"[&/]")
_NOT_SLUG_CHARS = re.compile(r"[^a-z0-9\s-]")
_NOT_CODE_CHARS = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")
_DASH_RUNS = re.compile(r"-+")


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _trim_dashes(value: str) -> str:
    return _DASH_RUNS.sub("-", value).strip("-")


def slugify_concept_term(value: Optional[str]) -> str:
    text = strip_diacritics(str(value or "").lower())
    text = _PARENTHESISED.sub("", text)
    text = _SEPARATOR_CHARS.sub(" ", text)
    text = _NOT_SLUG_CHARS.sub(" ", text)
    text = _WHITESPACE.sub("-", text.strip())
    return _trim_dashes(text)[:MAX_SLUG_LENGTH].rstrip("-")


def build_code_base(parent_code: Optional[str], title: str) -> str:
    """Candidate node code: the slugged title, prefixed by the parent code."""
    normalized = _NOT_CODE_CHARS.sub("-", strip_diacritics(title or "").lower()).strip("-")
    normalized = normalized[: max(1, MAX_CODE_LENGTH - 8)].rstrip("-")

    candidate = normalized or (f"{parent_code}-{NODE_CODE_FALLBACK}" if parent_code else NODE_CODE_FALLBACK)
    if not parent_code or not normalized:
        return candidate[:MAX_CODE_LENGTH]

    combined = f"{parent_code}-{candidate}"
    if len(combined) <= MAX_CODE_LENGTH:
        return combined

    trimmed_parent = parent_code[: max(1, MAX_CODE_LENGTH // 2)]
    available = MAX_CODE_LENGTH - len(trimmed_parent) - 1
    return f"{trimmed_parent}-{candidate[: max(1, available)]}"


def ensure_unique(
    base: str,
    exists: Callable[[str], bool],
    max_length: int,
    fallback: str,
) -> str:
    """Return ``base`` or the first free ``base-N``.

    ``exists`` is called once per candidate. Raises GenerationExhausted past
    MAX_GENERATION_ATTEMPTS suffixes.
    """
    base = base[:max_length] or fallback
    candidate = base
    suffix = 0

    while exists(candidate):
        suffix += 1
        if suffix > MAX_GENERATION_ATTEMPTS:
            raise GenerationExhausted(f"Unable to generate a unique identifier from '{base}'.")
        suffix_part = f"-{suffix}"
        prefix = base[: max(1, max_length - len(suffix_part))]
        candidate = _trim_dashes(f"{prefix}{suffix_part}")
        if not candidate:
            candidate = f"{fallback}{suffix_part}"[:max_length]

    return candidate


def unique_node_code(parent_code: Optional[str], title: str, exists: Callable[[str], bool]) -> str:
    return ensure_unique(build_code_base(parent_code, title), exists, MAX_CODE_LENGTH, NODE_CODE_FALLBACK)


def unique_concept_slug(source: str, exists: Callable[[str], bool]) -> str:
    return ensure_unique(slugify_concept_term(source), exists, MAX_SLUG_LENGTH, CONCEPT_SLUG_FALLBACK)
