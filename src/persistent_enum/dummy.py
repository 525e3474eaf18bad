"""In-memory stand-in for an enumeration table.

When the backing table cannot be used and the process is running a
maintenance task, enumerations are populated from a ``DummyStore`` so that
application code can still be imported.  Ordinals are synthetic and
deterministic: they start at a fixed high base and increase by one per
declared member, in declaration order.  With a native enum type the member
name is its own ordinal, matching what a real table would hold.

Tags:
    persistent-enum, fallback, dummy, in-memory

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from persistent_enum.member import Member
from persistent_enum.settings import get_settings


class DummyStore:
    """Synthetic, never-persisted enumeration rows."""

    def __init__(
        self,
        name_attr: str = "name",
        *,
        sql_enum_type: str | None = None,
        ordinal_start: int | None = None,
    ) -> None:
        self.name_attr = name_attr
        self.sql_enum_type = sql_enum_type
        self.ordinal_start = (
            ordinal_start if ordinal_start is not None else get_settings().dummy_ordinal_start
        )
        self._rows: list[dict[str, Any]] = []

    @property
    def table_name(self) -> str:
        return "<dummy>"

    def table_exists(self) -> bool:
        return True

    def load(self, required_members: Mapping[str, Mapping[str, Any]]) -> list[Member]:
        """Allocate one dummy member per required member."""
        members = []
        for offset, (name, attributes) in enumerate(required_members.items()):
            ordinal = name if self.sql_enum_type else self.ordinal_start + offset
            members.append(
                Member(
                    ordinal=ordinal,
                    name=name,
                    attributes=attributes,
                    name_attr=self.name_attr,
                    dummy=True,
                )
            )
        self._rows = [member.as_row() for member in members]
        return members

    def query(self, names: Iterable[str] | None = None) -> list[dict[str, Any]]:
        """Rows of the last allocation, optionally filtered by name."""
        if names is None:
            return [dict(row) for row in self._rows]
        wanted = set(names)
        return [dict(row) for row in self._rows if row[self.name_attr] in wanted]

    def __repr__(self) -> str:
        return f"DummyStore(name_attr={self.name_attr!r}, start={self.ordinal_start})"


__all__ = ["DummyStore"]
