"""Shift-then-settle ordinal resequencing.

The store enforces uniqueness of ``(parent, ordinal)`` and ``(node, ordinal)``
but offers no multi-row update, so every change to a sibling group is a
sequence of single-row writes ordered so that no write ever lands on an
ordinal another member still occupies:

* escape:  members that must move get a temporary ordinal above every value
           in use (``base + position + 1``);
* settle:  each escaped member takes its final ordinal ``1..N`` in ascending
           order.

Insert and delete shapes shift a tail of the group by one in a single pass
(highest first when opening a slot, lowest first when closing one).

A failed write leaves the group in a temporary but still unique layout. The
failure is logged and re-raised; any later call re-reads the group and
converges to ``1..N`` again.

Groups whose writes are mirrored onto a second row report where that row
currently sits (``mirror_ordinal``). A member whose mirror lags behind is
treated as misplaced, so the next pass rewrites both rows.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional

from curriculum.core.logging import get_logger
from curriculum.domain.common.errors import InvalidInput, StoreWriteFailed
from curriculum.domain.curriculum.models import GroupState, OrdinalMember

logger = get_logger(__name__)


class OrdinalGroup(ABC):
    """A set of siblings sharing one uniqueness scope."""

    @property
    @abstractmethod
    def label(self) -> str:
        """Human readable group name used in logs."""
        ...

    @abstractmethod
    def read(self) -> List[OrdinalMember]:
        """Fresh read of every member, ordered by ordinal ASC."""
        ...

    @abstractmethod
    def write(self, member: OrdinalMember, new_ordinal: int) -> None:
        """Single-row update of ``member`` from ``member.ordinal`` to ``new_ordinal``."""
        ...

    def reconcile(self) -> None:
        """Repair rows that no member can account for. Called before each read."""
        return None


def clamp_ordinal(requested: Optional[int], maximum: int) -> int:
    if maximum < 1:
        return 1
    if requested is None:
        return maximum
    return min(max(int(requested), 1), maximum)


def is_contiguous(ordinals: Iterable[int]) -> bool:
    values = sorted(ordinals)
    return values == list(range(1, len(values) + 1))


class _GroupRun:
    """Tracks one group through stable -> escaping -> settling -> stable."""

    def __init__(self, group: OrdinalGroup):
        self.group = group
        self.state = GroupState.STABLE
        self.writes = 0

    def enter(self, state: GroupState) -> None:
        if state is not self.state:
            logger.debug(
                "ordinal_group_state",
                group=self.group.label,
                previous=self.state.value,
                state=state.value,
            )
        self.state = state

    def write(self, member: OrdinalMember, new_ordinal: int) -> None:
        if member.ordinal == new_ordinal and not member.drifted:
            return
        try:
            self.group.write(member, new_ordinal)
        except StoreWriteFailed:
            logger.error(
                "ordinal_group_left_transitional",
                group=self.group.label,
                state=self.state.value,
                member=member.key,
                ordinal=member.ordinal,
                target=new_ordinal,
                writes_done=self.writes,
            )
            raise
        member.ordinal = new_ordinal
        if member.mirror_key is not None:
            member.mirror_ordinal = new_ordinal
        self.writes += 1


class Resequencer:
    """Stateless; each call works from a fresh read of the group."""

    @staticmethod
    def _read(group: OrdinalGroup) -> List[OrdinalMember]:
        group.reconcile()
        return group.read()

    def resequence(self, group: OrdinalGroup, ordered_keys: Optional[List[Any]] = None) -> int:
        """Compact the group to ``1..N`` in ``ordered_keys`` order (default: current order).

        Returns the number of single-row writes issued; 0 when the group was
        already consistent.
        """
        members = self._read(group)
        if not members:
            return 0
        run = _GroupRun(group)
        self._settle(run, members, ordered_keys)
        return run.writes

    def open_slot(self, group: OrdinalGroup, position: int) -> int:
        """Shift every member at or after ``position`` up by one."""
        members = self._read(group)
        if any(m.drifted for m in members):
            self.resequence(group)
            members = group.read()
        shifting = [m for m in members if m.ordinal >= position]
        if not shifting:
            return 0
        run = _GroupRun(group)
        run.enter(GroupState.SETTLING)
        for member in reversed(shifting):
            run.write(member, member.ordinal + 1)
        run.enter(GroupState.STABLE)
        logger.debug("ordinal_slot_opened", group=group.label, position=position, shifted=run.writes)
        return run.writes

    def close_slot(self, group: OrdinalGroup, position: int) -> int:
        """Shift every member after the freed ``position`` down by one, then compact."""
        members = self._read(group)
        run = _GroupRun(group)
        if not any(m.ordinal == position or m.drifted for m in members):
            run.enter(GroupState.SETTLING)
            for member in members:
                if member.ordinal > position:
                    run.write(member, member.ordinal - 1)
            run.enter(GroupState.STABLE)
        shifted = run.writes
        return shifted + self.resequence(group)

    def move(self, group: OrdinalGroup, key: Any, target: Optional[int]) -> int:
        """Place member ``key`` at ``target`` (clamped to ``[1, N]``)."""
        members = self._read(group)
        if not members:
            return 0
        keys = [m.key for m in members]
        if key not in keys:
            raise InvalidInput(f"'{key}' is not a member of {group.label}.")

        destination = clamp_ordinal(target, len(keys))
        run = _GroupRun(group)
        if destination == keys.index(key) + 1:
            # Same position: only repair gaps and lagging mirrors.
            self._settle(run, members, None)
            return run.writes

        keys.remove(key)
        keys.insert(destination - 1, key)
        self._settle(run, members, keys)
        return run.writes

    def _settle(self, run: _GroupRun, members: List[OrdinalMember], ordered_keys: Optional[List[Any]]) -> None:
        if ordered_keys is None:
            ordered = list(members)
        else:
            by_key = {m.key: m for m in members}
            if len(ordered_keys) != len(by_key) or set(ordered_keys) != set(by_key):
                raise InvalidInput(f"Ordering for {run.group.label} must list every member exactly once.")
            ordered = [by_key[k] for k in ordered_keys]

        misplaced = [
            (position, m) for position, m in enumerate(ordered) if m.ordinal != position + 1 or m.drifted
        ]
        if not misplaced:
            return

        occupied = [m.ordinal for m in members]
        occupied.extend(m.mirror_ordinal for m in members if m.mirror_ordinal is not None)
        base = max(max(occupied), len(members))

        run.enter(GroupState.ESCAPING)
        for position, member in misplaced:
            run.write(member, base + position + 1)

        run.enter(GroupState.SETTLING)
        for position, member in misplaced:
            run.write(member, position + 1)

        run.enter(GroupState.STABLE)
        logger.debug("ordinal_group_resequenced", group=run.group.label, moved=len(misplaced), writes=run.writes)
