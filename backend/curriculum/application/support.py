"""Helpers shared by the lifecycle services."""
from __future__ import annotations
from typing import Any, Callable, List

from curriculum.core.logging import get_logger
from curriculum.domain.common.errors import CurriculumError, NodeNotFound
from curriculum.domain.curriculum.models import CurriculumNode, SectionContext
from curriculum.persistence.interfaces.curriculum_store import CurriculumStore

logger = get_logger(__name__)


def lineage(store: CurriculumStore, node_code: str) -> List[CurriculumNode]:
    """The node followed by its ancestors up to the root section."""
    node = store.get_node(node_code)
    if not node:
        raise NodeNotFound(node_code)
    chain = [node]
    seen = {node.code}
    while chain[-1].parent_code and chain[-1].parent_code not in seen:
        parent = store.get_node(chain[-1].parent_code)
        if not parent:
            break
        chain.append(parent)
        seen.add(parent.code)
    return chain


def section_context(store: CurriculumStore, node_code: str) -> SectionContext:
    return SectionContext.from_lineage(lineage(store, node_code))


def collect_subtree(store: CurriculumStore, node: CurriculumNode) -> List[CurriculumNode]:
    """Breadth-first: ``node`` first, deepest descendants last."""
    ordered = [node]
    index = 0
    while index < len(ordered):
        ordered.extend(store.list_child_nodes(ordered[index].code))
        index += 1
    return ordered


def compensate(step: str, action: Callable[[], Any], **context: Any) -> bool:
    """Run one undo step. Failures are logged, never raised."""
    logger.warning("compensation_started", step=step, **context)
    try:
        action()
    except CurriculumError as e:
        logger.error("compensation_failed", step=step, error=str(e), **context)
        return False
    return True
