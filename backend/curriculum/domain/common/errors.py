"""Engine error taxonomy.

Every error carries a machine-readable ``code`` and the HTTP-equivalent
``status_code`` the API layer answers with.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class CurriculumError(Exception):
    code = "CURRICULUM_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"message": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidInput(CurriculumError):
    code = "INVALID_INPUT"
    status_code = 400


class BatchTooLarge(InvalidInput):
    code = "BATCH_TOO_LARGE"


class InvalidNodeMove(InvalidInput):
    code = "INVALID_NODE_MOVE"


class NotFound(CurriculumError):
    code = "NOT_FOUND"
    status_code = 404


class NodeNotFound(NotFound):
    code = "NODE_NOT_FOUND"

    def __init__(self, node_code: str):
        super().__init__(f"Curriculum node '{node_code}' was not found.", {"nodeCode": node_code})
        self.node_code = node_code


class ParentNotFound(NotFound):
    code = "PARENT_NOT_FOUND"

    def __init__(self, parent_code: str):
        super().__init__(f"Parent node '{parent_code}' was not found.", {"parentCode": parent_code})
        self.parent_code = parent_code


class ConceptNotFound(NotFound):
    code = "CONCEPT_NOT_FOUND"

    def __init__(self, slug: str):
        super().__init__(f"Concept '{slug}' was not found.", {"slug": slug})
        self.slug = slug


class Conflict(CurriculumError):
    code = "CONFLICT"
    status_code = 409


class ConceptNotLinked(Conflict):
    code = "CONCEPT_NOT_LINKED"

    def __init__(self, slug: str):
        super().__init__(f"Concept '{slug}' is not attached to a curriculum item.", {"slug": slug})
        self.slug = slug


class NodeCodeTaken(Conflict):
    code = "NODE_CODE_TAKEN"

    def __init__(self, node_code: str):
        super().__init__(f"Curriculum node '{node_code}' already exists.", {"nodeCode": node_code})
        self.node_code = node_code


class DuplicateConcept(Conflict):
    """Same-section term collision. ``concept`` is the entity already stored."""

    code = "CONCEPT_ALREADY_EXISTS"

    def __init__(self, concept):
        super().__init__(
            f"Concept '{concept.slug}' already exists in section '{concept.section_code}'.",
            {
                "slug": concept.slug,
                "termLt": concept.term_lt,
                "nodeCode": concept.curriculum_node_code,
                "itemLabel": concept.curriculum_item_label,
            },
        )
        self.concept = concept


class GenerationExhausted(CurriculumError):
    code = "GENERATION_EXHAUSTED"


class StoreError(CurriculumError):
    """Underlying store failure. The original exception is kept as ``__cause__``."""

    code = "STORE_ERROR"

    def __init__(self, message: str, is_unique_violation: bool = False):
        super().__init__(message)
        self.is_unique_violation = is_unique_violation


class StoreReadFailed(StoreError):
    code = "STORE_READ_FAILED"


class StoreWriteFailed(StoreError):
    code = "STORE_WRITE_FAILED"
