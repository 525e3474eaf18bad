"""Immutable, fully indexed enumeration snapshots.

An ``EnumState`` is built once per reconciliation and published on its
holder with a single attribute assignment.  It is never patched: a
re-synchronization builds a new state from freshly loaded members, carrying
unchanged members over from the previous state so that references cached
by callers keep comparing equal.

Carry-forward rule, per newly loaded member with a same-named predecessor:

* predecessor is a dummy, or its ordinal differs → the new member
* only attributes differ → the predecessor refreshed with the new attributes
* otherwise → the predecessor itself (``is`` holds)

Tags:
    persistent-enum, snapshot, immutable, index

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from persistent_enum.errors import CaseInsensitiveLookupError, EnumTableInvalid, ErrorContext
from persistent_enum.logging import get_logger
from persistent_enum.member import Member, Ordinal, constant_name
from persistent_enum.spec import EnumSpec

logger = get_logger(__name__)


def _carry_forward(member: Member, previous: Mapping[str, Member]) -> Member:
    prev = previous.get(member.name)
    if prev is None or prev.dummy:
        return member
    if prev.ordinal != member.ordinal or prev.name_attr != member.name_attr:
        return member
    if prev.attributes != member.attributes:
        return prev.refreshed(member.attributes)
    return prev


@dataclass(frozen=True)
class EnumState:
    """Point-in-time view of one enumeration's members."""

    spec: EnumSpec
    by_ordinal: Mapping[Ordinal, Member]
    by_name: Mapping[str, Member]
    by_name_insensitive: Mapping[str, Member] | None
    required_by_ordinal: Mapping[Ordinal, Member]
    constants: Mapping[str, Member]
    dummy: bool = False

    @classmethod
    def build(
        cls,
        spec: EnumSpec,
        required: Iterable[Member],
        retired: Iterable[Member] = (),
        previous: EnumState | None = None,
        *,
        dummy: bool = False,
        identity: str | None = None,
    ) -> EnumState:
        """Index loaded members, reusing unchanged ones from ``previous``."""
        carried = previous.by_name if previous is not None else {}
        required = [_carry_forward(m, carried) for m in required]
        retired = [_carry_forward(m, carried) for m in retired]
        members = required + retired

        by_ordinal = {m.ordinal: m for m in members}
        by_name = {m.name: m for m in members}
        if len(by_ordinal) != len(members) or len(by_name) != len(members):
            raise EnumTableInvalid(
                f"Duplicate ordinals or names loaded for {identity}",
                context=ErrorContext(enum=identity, name_attr=spec.name_attr),
            )

        lowered: dict[str, Member] = {}
        for member in members:
            lowered.setdefault(member.name.lower(), member)
        insensitive = MappingProxyType(lowered) if len(lowered) == len(members) else None

        constants: dict[str, Member] = {}
        for member in required:
            name = constant_name(member.name)
            if not name:
                continue
            if name in constants:
                logger.warning(
                    "enum_constant_collision",
                    enum=identity,
                    constant=name,
                    kept=constants[name].name,
                    skipped=member.name,
                )
                continue
            constants[name] = member

        return cls(
            spec=spec,
            by_ordinal=MappingProxyType(by_ordinal),
            by_name=MappingProxyType(by_name),
            by_name_insensitive=insensitive,
            required_by_ordinal=MappingProxyType({m.ordinal: m for m in required}),
            constants=MappingProxyType(constants),
            dummy=dummy,
        )

    @property
    def case_insensitive(self) -> bool:
        return self.by_name_insensitive is not None

    def lookup_name(self, name: str, insensitive: bool = False) -> Member | None:
        if not insensitive:
            return self.by_name.get(name)
        if self.by_name_insensitive is None:
            raise CaseInsensitiveLookupError(
                f"Cannot use case-insensitive lookup: member names differ only by case "
                f"({', '.join(self.by_name)})"
            )
        return self.by_name_insensitive.get(name.lower())

    def is_active(self, member: Member) -> bool:
        return self.required_by_ordinal.get(member.ordinal) == member

    def __len__(self) -> int:
        return len(self.by_ordinal)


__all__ = ["EnumState"]
