"""Shift-then-settle resequencing against an in-memory group that enforces uniqueness."""
import pytest

from curriculum.domain.common.errors import InvalidInput, StoreWriteFailed
from curriculum.domain.curriculum.models import OrdinalMember
from curriculum.domain.curriculum.resequencer import OrdinalGroup, Resequencer, clamp_ordinal, is_contiguous


class MemoryGroup(OrdinalGroup):
    def __init__(self, ordinals, fail_at=None):
        self.rows = dict(ordinals)
        self.writes = []
        self.fail_at = fail_at

    @property
    def label(self):
        return "memory"

    def read(self):
        return [OrdinalMember(k, o) for k, o in sorted(self.rows.items(), key=lambda kv: kv[1])]

    def write(self, member, new_ordinal):
        if self.fail_at is not None and len(self.writes) == self.fail_at:
            raise StoreWriteFailed("injected failure")
        assert self.rows[member.key] == member.ordinal
        if new_ordinal in self.rows.values():
            raise StoreWriteFailed("UNIQUE constraint failed", is_unique_violation=True)
        self.rows[member.key] = new_ordinal
        self.writes.append((member.key, new_ordinal))

    def order(self):
        return [m.key for m in self.read()]


@pytest.fixture
def reseq():
    return Resequencer()


def test_consistent_group_writes_nothing(reseq):
    group = MemoryGroup({"a": 1, "b": 2, "c": 3})
    assert reseq.resequence(group) == 0
    assert group.writes == []


def test_empty_group_short_circuits(reseq):
    group = MemoryGroup({})
    assert reseq.resequence(group) == 0
    assert reseq.move(group, "a", 1) == 0


def test_compacts_gaps_in_current_order(reseq):
    group = MemoryGroup({"a": 2, "b": 5, "c": 9})
    reseq.resequence(group)
    assert group.rows == {"a": 1, "b": 2, "c": 3}


def test_explicit_order(reseq):
    group = MemoryGroup({"a": 1, "b": 2, "c": 3})
    reseq.resequence(group, ["c", "a", "b"])
    assert group.order() == ["c", "a", "b"]
    assert is_contiguous(group.rows.values())


def test_order_must_be_a_permutation(reseq):
    group = MemoryGroup({"a": 1, "b": 2})
    with pytest.raises(InvalidInput):
        reseq.resequence(group, ["a"])
    with pytest.raises(InvalidInput):
        reseq.resequence(group, ["a", "a"])


def test_temporaries_clear_every_occupied_ordinal(reseq):
    # With a member parked at 5, temporaries based on the count alone would collide.
    group = MemoryGroup({"a": 1, "b": 2, "c": 5})
    reseq.resequence(group, ["b", "a", "c"])
    assert group.rows == {"b": 1, "a": 2, "c": 3}


def test_only_misplaced_members_move(reseq):
    group = MemoryGroup({"a": 1, "b": 2, "c": 4})
    reseq.resequence(group)
    assert [k for k, _ in group.writes] == ["c", "c"]


def test_open_slot_shifts_tail_highest_first(reseq):
    group = MemoryGroup({"a": 1, "b": 2, "c": 3})
    reseq.open_slot(group, 2)
    assert group.writes == [("c", 4), ("b", 3)]
    assert group.rows == {"a": 1, "b": 3, "c": 4}


def test_open_slot_at_end_is_noop(reseq):
    group = MemoryGroup({"a": 1, "b": 2})
    assert reseq.open_slot(group, 3) == 0


def test_close_slot_shifts_lowest_first(reseq):
    group = MemoryGroup({"a": 1, "c": 3, "d": 4})
    reseq.close_slot(group, 2)
    assert group.writes == [("c", 2), ("d", 3)]
    assert group.rows == {"a": 1, "c": 2, "d": 3}


def test_insert_then_delete_restores_assignment(reseq):
    group = MemoryGroup({"a": 1, "b": 2, "c": 3})
    reseq.open_slot(group, 2)
    group.rows["new"] = 2
    del group.rows["new"]
    reseq.close_slot(group, 2)
    assert group.rows == {"a": 1, "b": 2, "c": 3}


def test_move_to_front(reseq):
    group = MemoryGroup({"x": 1, "y": 2, "z": 3})
    reseq.move(group, "y", 1)
    assert group.order() == ["y", "x", "z"]
    assert is_contiguous(group.rows.values())


@pytest.mark.parametrize("target, expected", [(99, ["b", "c", "a"]), (0, ["a", "b", "c"]), (None, ["b", "c", "a"])])
def test_move_clamps_target(reseq, target, expected):
    group = MemoryGroup({"a": 1, "b": 2, "c": 3})
    reseq.move(group, "a", target)
    assert group.order() == expected


def test_move_to_same_position_only_repairs_gaps(reseq):
    group = MemoryGroup({"a": 1, "b": 3})
    reseq.move(group, "a", 1)
    assert group.rows == {"a": 1, "b": 2}


def test_move_unknown_member(reseq):
    group = MemoryGroup({"a": 1})
    with pytest.raises(InvalidInput):
        reseq.move(group, "nope", 1)


def test_failed_write_leaves_unique_state_and_next_call_converges(reseq):
    group = MemoryGroup({"a": 1, "b": 2, "c": 3}, fail_at=1)
    with pytest.raises(StoreWriteFailed):
        reseq.move(group, "c", 1)
    assert len(set(group.rows.values())) == 3

    group.fail_at = None
    reseq.resequence(group)
    assert is_contiguous(group.rows.values())
    assert reseq.resequence(group) == 0


@pytest.mark.parametrize(
    "requested, maximum, expected",
    [(None, 4, 4), (0, 4, 1), (-3, 4, 1), (2, 4, 2), (10, 4, 4), (None, 0, 1)],
)
def test_clamp_ordinal(requested, maximum, expected):
    assert clamp_ordinal(requested, maximum) == expected


class MirroredGroup(MemoryGroup):
    """Each row has a second row that must follow it, also kept unique."""

    def __init__(self, ordinals, mirrors):
        super().__init__(ordinals)
        self.mirrors = dict(mirrors)

    def read(self):
        return [
            OrdinalMember(k, o, mirror_key=k, mirror_ordinal=self.mirrors[k])
            for k, o in sorted(self.rows.items(), key=lambda kv: kv[1])
        ]

    def write(self, member, new_ordinal):
        if member.ordinal != new_ordinal:
            super().write(member, new_ordinal)
        if new_ordinal in [o for k, o in self.mirrors.items() if k != member.key]:
            raise StoreWriteFailed("UNIQUE constraint failed", is_unique_violation=True)
        self.mirrors[member.key] = new_ordinal


def test_lagging_mirror_is_pulled_back(reseq):
    group = MirroredGroup({"a": 1, "b": 2, "c": 3}, {"a": 4, "b": 2, "c": 3})
    assert reseq.resequence(group) == 2
    assert group.rows == {"a": 1, "b": 2, "c": 3}
    assert group.mirrors == group.rows
    assert reseq.resequence(group) == 0


def test_lagging_mirror_is_repaired_before_opening_a_slot(reseq):
    group = MirroredGroup({"a": 1, "b": 2}, {"a": 3, "b": 2})
    reseq.open_slot(group, 1)
    assert group.rows == {"a": 2, "b": 3}
    assert group.mirrors == group.rows
