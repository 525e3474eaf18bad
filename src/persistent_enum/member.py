"""Immutable enumeration members.

A ``Member`` is the cached form of one enumeration row: its ordinal (the
primary key, or the label itself for native enum types), its name, and a
frozen view of every other column.  Members compare and hash by identity,
``(ordinal, name)``, so a member whose attributes were refreshed on
re-synchronization still equals references cached before it.

Tags:
    persistent-enum, member, immutable, value-object

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Union

ID_ATTR = "id"

Value = Union[str, int, float, bool, None]
Ordinal = Union[int, str]

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def freeze_value(value: Any) -> Any:
    """Return a deeply immutable copy of an attribute value."""
    if isinstance(value, Mapping):
        return MappingProxyType({str(k): freeze_value(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze_value(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze_value(v) for v in value)
    return value


def freeze_attributes(attributes: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Freeze an attribute bag into a read-only mapping."""
    if not attributes:
        return _EMPTY
    return MappingProxyType({str(k): freeze_value(v) for k, v in attributes.items()})


def constant_name(member_name: str) -> str | None:
    """Derive the constant name used to expose a member on its enumeration.

    >>> constant_name("CamelCase")
    'CAMEL_CASE'
    >>> constant_name("with.punctuation")
    'WITH_PUNCTUATION'
    >>> constant_name("multiple_.underscores")
    'MULTIPLE_UNDERSCORES'
    """
    value = re.sub(r"[^\w\s-]", "_", member_name.strip())
    value = re.sub(r"([A-Z\d]+)([A-Z][a-z])", r"\1_\2", value)
    value = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", value)
    value = value.replace("-", "_").lower()
    if not value.strip():
        return None

    value = re.sub(r"\s+", "_", value)
    value = re.sub(r"_{2,}", "_", value)
    return value.upper()


@dataclass(frozen=True, eq=False, slots=True)
class Member:
    """One enumeration member.

    ``dummy`` marks a synthetic member created when no backing table was
    available; such members are never carried into a snapshot built from
    real rows.
    """

    ordinal: Ordinal
    name: str
    attributes: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    name_attr: str = "name"
    dummy: bool = False

    def __post_init__(self) -> None:
        if self.attributes is not _EMPTY:
            object.__setattr__(self, "attributes", freeze_attributes(self.attributes))

    @classmethod
    def from_row(cls, row: Mapping[str, Any], name_attr: str = "name") -> Member:
        """Build a member from a persisted row mapping."""
        attributes = {k: v for k, v in row.items() if k not in (ID_ATTR, name_attr)}
        return cls(
            ordinal=row[ID_ATTR],
            name=row[name_attr],
            attributes=attributes,
            name_attr=name_attr,
        )

    @property
    def id(self) -> Ordinal:
        return self.ordinal

    @property
    def enum_constant(self) -> str:
        return self.name

    def read_attribute(self, attr: str) -> Any:
        """Read a column value, resolving ``id`` and the name column."""
        attr = str(attr)
        if attr == ID_ATTR:
            return self.ordinal
        if attr == self.name_attr:
            return self.name
        return self.attributes.get(attr)

    def refreshed(self, attributes: Mapping[str, Any]) -> Member:
        """Same identity, new attribute view."""
        return replace(self, attributes=freeze_attributes(attributes))

    def as_row(self) -> dict[str, Any]:
        row = {ID_ATTR: self.ordinal, self.name_attr: self.name}
        row.update(self.attributes)
        return row

    def __getitem__(self, attr: str) -> Any:
        return self.read_attribute(attr)

    def __getattr__(self, attr: str) -> Any:
        if attr.startswith("_") or attr in ("attributes", "name_attr"):
            raise AttributeError(attr)
        if attr == object.__getattribute__(self, "name_attr"):
            return object.__getattribute__(self, "name")
        attributes = object.__getattribute__(self, "attributes")
        if attr in attributes:
            return attributes[attr]
        raise AttributeError(f"{type(self).__name__} has no attribute '{attr}'")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Member):
            return NotImplemented
        return self.ordinal == other.ordinal and self.name == other.name

    def __hash__(self) -> int:
        return hash((self.ordinal, self.name))

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        suffix = ", dummy=True" if self.dummy else ""
        return f"Member({self.ordinal!r}, {self.name!r}{suffix})"


__all__ = [
    "ID_ATTR",
    "Member",
    "Ordinal",
    "Value",
    "constant_name",
    "freeze_attributes",
    "freeze_value",
]
