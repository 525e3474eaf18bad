"""Tests for persistent_enum.state: indexing and carry-forward."""

import pytest
from structlog.testing import capture_logs

from persistent_enum.errors import CaseInsensitiveLookupError, EnumTableInvalid
from persistent_enum.member import Member
from persistent_enum.spec import EnumSpec
from persistent_enum.state import EnumState


@pytest.fixture
def spec():
    return EnumSpec(["One", "Two"])


def build(spec, required, retired=(), previous=None, **kwargs):
    return EnumState.build(spec, required, retired, previous, identity="test:Enum", **kwargs)


class TestIndexes:
    def test_required_and_retired(self, spec):
        state = build(spec, [Member(1, "One"), Member(2, "Two")], [Member(3, "Old")])
        assert list(state.by_ordinal) == [1, 2, 3]
        assert list(state.required_by_ordinal) == [1, 2]
        assert state.is_active(state.by_name["One"])
        assert not state.is_active(state.by_name["Old"])
        assert len(state) == 3

    def test_case_insensitive_index(self, spec):
        state = build(spec, [Member(1, "One"), Member(2, "Two")])
        assert state.case_insensitive
        assert state.lookup_name("one", insensitive=True) is state.by_name["One"]
        assert state.lookup_name("one") is None

    def test_case_insensitive_disabled_on_collision(self, spec):
        state = build(spec, [Member(1, "One"), Member(2, "ONE")])
        assert state.by_name_insensitive is None
        assert state.lookup_name("ONE") is state.by_name["ONE"]
        with pytest.raises(CaseInsensitiveLookupError):
            state.lookup_name("one", insensitive=True)

    def test_duplicate_ordinals_rejected(self, spec):
        with pytest.raises(EnumTableInvalid):
            build(spec, [Member(1, "One"), Member(1, "Two")])

    def test_constants(self, spec):
        state = build(spec, [Member(1, "CamelCase"), Member(2, "with.dot")])
        assert set(state.constants) == {"CAMEL_CASE", "WITH_DOT"}

    def test_constant_collision_keeps_first(self, spec):
        with capture_logs() as logs:
            state = build(spec, [Member(1, "A.B"), Member(2, "A_B")])
        assert state.constants["A_B"].ordinal == 1
        assert any(log["event"] == "enum_constant_collision" for log in logs)

    def test_retired_members_have_no_constant(self, spec):
        state = build(spec, [Member(1, "Red")], retired=[Member(2, "OldName")])
        assert set(state.constants) == {"RED"}
        assert state.by_name["OldName"].ordinal == 2

    def test_indexes_are_read_only(self, spec):
        state = build(spec, [Member(1, "One")])
        with pytest.raises(TypeError):
            state.by_name["Two"] = Member(2, "Two")  # type: ignore[index]


class TestCarryForward:
    """Re-synchronization keeps unchanged members."""

    def test_unchanged_member_is_reused(self, spec):
        first = build(spec, [Member(1, "One", {"count": 1})])
        second = build(spec, [Member(1, "One", {"count": 1})], previous=first)
        assert second.by_name["One"] is first.by_name["One"]

    def test_changed_attributes_keep_identity(self, spec):
        first = build(spec, [Member(1, "One", {"count": 1})])
        second = build(spec, [Member(1, "One", {"count": 2})], previous=first)
        member = second.by_name["One"]
        assert member == first.by_name["One"]
        assert member is not first.by_name["One"]
        assert member.count == 2

    def test_new_ordinal_is_adopted(self, spec):
        first = build(spec, [Member(1, "One")])
        second = build(spec, [Member(7, "One")], previous=first)
        assert second.by_name["One"].ordinal == 7
        assert second.by_name["One"] != first.by_name["One"]

    def test_dummy_predecessor_is_replaced(self, spec):
        first = build(spec, [Member(1_000_000_000, "One", dummy=True)], dummy=True)
        second = build(spec, [Member(1, "One")], previous=first)
        assert not second.by_name["One"].dummy
        assert not second.dummy
