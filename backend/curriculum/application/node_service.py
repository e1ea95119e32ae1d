"""Node lifecycle: create, update (including re-parenting), cascade delete and tree reads."""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from curriculum.application.auditing import NODE_ENTITY, Auditor
from curriculum.application.item_service import ItemService
from curriculum.application.support import collect_subtree, compensate, section_context
from curriculum.core.logging import get_logger
from curriculum.domain.common.errors import (
    InvalidInput,
    InvalidNodeMove,
    NodeCodeTaken,
    NodeNotFound,
    ParentNotFound,
    StoreError,
)
from curriculum.domain.curriculum import rules
from curriculum.domain.curriculum.models import CurriculumNode
from curriculum.domain.curriculum.resequencer import Resequencer, clamp_ordinal
from curriculum.domain.curriculum.slugs import unique_node_code
from curriculum.persistence.interfaces.curriculum_store import CurriculumStore
from curriculum.persistence.ordinals import NodeSiblingGroup

logger = get_logger(__name__)

NODE_PATCH_FIELDS = {"title", "summary", "parent_code", "ordinal"}


class NodeService:
    def __init__(
        self,
        store: CurriculumStore,
        items: ItemService,
        auditor: Auditor,
        resequencer: Optional[Resequencer] = None,
    ):
        self._store = store
        self._items = items
        self._auditor = auditor
        self._resequencer = resequencer or Resequencer()

    # ------------------------------------------------------------------
    # READ
    # ------------------------------------------------------------------
    def get_node(self, code: str) -> CurriculumNode:
        node = self._store.get_node(code)
        if not node:
            raise NodeNotFound(code)
        return node

    def list_children(self, parent_code: Optional[str] = None) -> List[CurriculumNode]:
        if parent_code is not None:
            self.get_node(parent_code)
        return self._store.list_child_nodes(parent_code)

    def get_tree(self) -> List[Dict[str, Any]]:
        """Nested nodes with their items, siblings ordered by ordinal."""
        children: Dict[Optional[str], List[CurriculumNode]] = {}
        for node in self._store.list_nodes():
            children.setdefault(node.parent_code, []).append(node)

        def build(node: CurriculumNode) -> Dict[str, Any]:
            data = node.to_dict()
            data["items"] = [i.to_dict() for i in self._store.list_items(node.code)]
            data["children"] = [build(c) for c in sorted(children.get(node.code, []), key=lambda n: n.ordinal)]
            return data

        return [build(root) for root in sorted(children.get(None, []), key=lambda n: n.ordinal)]

    # ------------------------------------------------------------------
    # CREATE
    # ------------------------------------------------------------------
    def create_node(
        self,
        title: str,
        summary: Optional[str] = None,
        parent_code: Optional[str] = None,
        ordinal: Optional[int] = None,
        code: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> CurriculumNode:
        title = rules.validate_title(title).unwrap(InvalidInput)
        summary = rules.validate_summary(summary).unwrap(InvalidInput)
        requested = rules.validate_ordinal(ordinal).unwrap(InvalidInput)
        parent_code = rules.clean_text(parent_code)

        level = 1
        if parent_code is not None:
            parent = self._store.get_node(parent_code)
            if not parent:
                raise ParentNotFound(parent_code)
            level = parent.level + 1

        if rules.clean_text(code) is not None:
            code = rules.validate_code(code).unwrap(InvalidInput)
            if self._store.get_node(code):
                raise NodeCodeTaken(code)
        else:
            code = unique_node_code(parent_code, title, lambda c: self._store.get_node(c) is not None)

        group = NodeSiblingGroup(self._store, parent_code)
        self._resequencer.resequence(group)
        size = len(group.read())
        position = clamp_ordinal(requested, size + 1)
        opened = position <= size
        if opened:
            self._resequencer.open_slot(group, position)

        node = CurriculumNode(
            code=code,
            title=title,
            summary=summary,
            level=level,
            parent_code=parent_code,
            ordinal=position,
        )
        try:
            self._store.insert_node(node)
        except StoreError:
            if opened:
                compensate(
                    "close_opened_slot",
                    lambda: self._resequencer.close_slot(group, position),
                    group=group.label,
                    ordinal=position,
                )
            raise

        created = self._store.get_node(code) or node
        self._auditor.record(NODE_ENTITY, code, None, created.to_dict(), actor, "created")
        logger.info("node_created", node_code=code, parent_code=parent_code, ordinal=position)
        return created

    # ------------------------------------------------------------------
    # UPDATE
    # ------------------------------------------------------------------
    def update_node(self, code: str, patch: Dict[str, Any], actor: Optional[str] = None) -> CurriculumNode:
        node = self.get_node(code)
        unknown = sorted(set(patch) - NODE_PATCH_FIELDS)
        if unknown:
            raise InvalidInput(f"Unknown node fields: {unknown}.")

        fields: Dict[str, Any] = {}
        if "title" in patch:
            fields["title"] = rules.validate_title(patch["title"]).unwrap(InvalidInput)
        if "summary" in patch:
            fields["summary"] = rules.validate_summary(patch["summary"]).unwrap(InvalidInput)
        requested = rules.validate_ordinal(patch.get("ordinal")).unwrap(InvalidInput)

        reparent = "parent_code" in patch and rules.clean_text(patch["parent_code"]) != node.parent_code
        if reparent:
            self._check_new_parent(node, rules.clean_text(patch["parent_code"]))

        if fields:
            self._store.update_node(code, fields)

        if reparent:
            self._reparent(node, rules.clean_text(patch["parent_code"]), requested)
        elif requested is not None:
            self._resequencer.move(NodeSiblingGroup(self._store, node.parent_code), code, requested)

        if reparent or ("title" in fields and fields["title"] != node.title):
            self._refresh_section_context(self.get_node(code))

        updated = self.get_node(code)
        self._auditor.record(NODE_ENTITY, code, node.to_dict(), updated.to_dict(), actor, "updated")
        logger.info(
            "node_updated",
            node_code=code,
            parent_code=updated.parent_code,
            ordinal=updated.ordinal,
            fields=sorted(patch),
        )
        return updated

    def _check_new_parent(self, node: CurriculumNode, new_parent_code: Optional[str]) -> None:
        if new_parent_code is None:
            return
        if not self._store.get_node(new_parent_code):
            raise ParentNotFound(new_parent_code)
        if new_parent_code in {n.code for n in collect_subtree(self._store, node)}:
            raise InvalidNodeMove(
                f"Node '{node.code}' cannot be moved under itself or one of its descendants.",
                {"nodeCode": node.code, "parentCode": new_parent_code},
            )

    def _reparent(self, node: CurriculumNode, new_parent_code: Optional[str], requested: Optional[int]) -> None:
        subtree = collect_subtree(self._store, node)
        new_level = 1
        if new_parent_code is not None:
            new_level = self.get_node(new_parent_code).level + 1

        target = NodeSiblingGroup(self._store, new_parent_code)
        self._resequencer.resequence(target)
        size = len(target.read())
        position = clamp_ordinal(requested, size + 1)
        opened = position <= size
        if opened:
            self._resequencer.open_slot(target, position)

        try:
            self._store.update_node(
                node.code,
                {"parent_code": new_parent_code, "ordinal": position, "level": new_level},
            )
        except StoreError:
            if opened:
                compensate(
                    "close_opened_slot",
                    lambda: self._resequencer.close_slot(target, position),
                    group=target.label,
                    ordinal=position,
                )
            raise

        self._resequencer.close_slot(NodeSiblingGroup(self._store, node.parent_code), node.ordinal)

        delta = new_level - node.level
        if delta:
            for descendant in subtree[1:]:
                self._store.update_node(descendant.code, {"level": descendant.level + delta})

        logger.info(
            "node_moved",
            node_code=node.code,
            from_parent=node.parent_code,
            parent_code=new_parent_code,
            ordinal=position,
        )

    def _refresh_section_context(self, node: CurriculumNode) -> None:
        """Rewrite the denormalized section fields of every concept under ``node``."""
        subtree = collect_subtree(self._store, node)
        contexts = {n.code: section_context(self._store, n.code) for n in subtree}
        for concept in self._store.list_concepts_for_nodes(list(contexts)):
            fields = contexts[concept.curriculum_node_code].to_fields()
            if any(getattr(concept, k) != v for k, v in fields.items()):
                self._store.update_concept(concept.slug, fields)

    # ------------------------------------------------------------------
    # DELETE
    # ------------------------------------------------------------------
    def delete_node(self, code: str, actor: Optional[str] = None) -> CurriculumNode:
        node = self.get_node(code)
        subtree = collect_subtree(self._store, node)
        codes = [n.code for n in subtree]

        for concept in self._store.list_concepts_for_nodes(codes):
            self._items.delete_linked(concept, actor)

        for member in subtree:
            for item in self._store.list_items(member.code):
                self._store.delete_item(member.code, item.ordinal)

        for member in reversed(subtree):
            self._store.delete_node(member.code)
            self._auditor.record(NODE_ENTITY, member.code, member.to_dict(), None, actor, "deleted")

        self._resequencer.close_slot(NodeSiblingGroup(self._store, node.parent_code), node.ordinal)
        logger.info("node_deleted", node_code=code, parent_code=node.parent_code, removed_nodes=len(subtree))
        return node
