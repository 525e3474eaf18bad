"""Enumeration specifications and the member builder.

An ``EnumSpec`` closes over everything needed to (re)initialize an
enumeration: which members are required, which column holds member names,
and whether ids come from a native enumerated type.  Required members are
supplied either statically or by a builder callable that is re-evaluated on
every reconciliation.

Examples:
    Static members:

    >>> spec = EnumSpec(["Red", "Green"])
    >>> spec.required_members()
    {'Red': {}, 'Green': {}}

    A builder, re-run on each reconciliation:

    >>> def colors(b):
    ...     b.member("Red", hex="#f00")
    ...     b.Green(hex="#0f0")
    >>> EnumSpec(builder=colors).required_members()
    {'Red': {'hex': '#f00'}, 'Green': {'hex': '#0f0'}}

Tags:
    persistent-enum, specification, builder

Doc-Types:
    api-reference
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from persistent_enum.errors import ConfigurationError

MemberSource = Union[Mapping[Any, Mapping[str, Any]], Iterable[Any], type[enum.Enum]]
RequiredMembers = dict[str, dict[str, Any]]


class MemberBuilder:
    """Records member declarations made by a builder callable.

    ``builder.member("One", count=1)`` and ``builder.One(count=1)`` both
    declare the member ``One``.  Declaration order is preserved; declaring a
    name twice keeps its first position and the last attributes.
    """

    def __init__(self) -> None:
        self._members: RequiredMembers = {}

    def member(self, name: Any, **attributes: Any) -> None:
        self._members[_member_name(name)] = dict(attributes)

    def __getattr__(self, name: str) -> Callable[..., None]:
        if name.startswith("_"):
            raise AttributeError(name)

        def declare(**attributes: Any) -> None:
            self.member(name, **attributes)

        return declare

    def evaluate(self, builder: Callable[[MemberBuilder], Any]) -> RequiredMembers:
        self._members = {}
        builder(self)
        return dict(self._members)


def _member_name(name: Any) -> str:
    if isinstance(name, enum.Enum):
        return name.name
    return str(name)


def _is_enum_class(members: Any) -> bool:
    return isinstance(members, type) and issubclass(members, enum.Enum)


def normalize_members(members: MemberSource) -> RequiredMembers:
    """Normalize any supported member collection to ``{name: {attr: value}}``."""
    if _is_enum_class(members):
        return {m.name: {} for m in members}
    if isinstance(members, Mapping):
        return {
            _member_name(name): {str(k): v for k, v in (attrs or {}).items()}
            for name, attrs in members.items()
        }
    if isinstance(members, (str, bytes)):
        raise ConfigurationError(
            f"Members must be a collection of names, not a single string: {members!r}"
        )
    return {_member_name(name): {} for name in members}


@dataclass(frozen=True)
class EnumSpec:
    """What "required" means for one enumeration.

    Exactly one of ``members`` and ``builder`` must be given.
    """

    members: MemberSource | None = None
    builder: Callable[[MemberBuilder], Any] | None = None
    name_attr: str = "name"
    sql_enum_type: str | None = None
    required_attributes: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if (self.members is None) == (self.builder is None):
            raise ConfigurationError(
                "Constants must be provided by exactly one of members argument or builder"
            )
        object.__setattr__(self, "name_attr", str(self.name_attr))
        # Materialize one-shot iterables so every evaluation sees the same names
        if self.members is not None and not _is_enum_class(self.members):
            object.__setattr__(self, "members", normalize_members(self.members))
        if self.required_attributes is not None:
            object.__setattr__(
                self, "required_attributes", tuple(str(a) for a in self.required_attributes)
            )

    def required_members(self) -> RequiredMembers:
        """Evaluate the declared members (re-running the builder, if any)."""
        if self.builder is not None:
            return MemberBuilder().evaluate(self.builder)
        return normalize_members(self.members)

    def with_members(self, members: MemberSource) -> EnumSpec:
        """Copy of this spec with a static member collection instead."""
        return EnumSpec(
            members=members,
            name_attr=self.name_attr,
            sql_enum_type=self.sql_enum_type,
            required_attributes=self.required_attributes,
        )


__all__ = ["EnumSpec", "MemberBuilder", "normalize_members"]
