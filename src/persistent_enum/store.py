"""Backing store protocol consumed by the reconciler.

The reconciler never talks to a database driver directly.  It asks an
``EnumStore`` about the table (existence, columns, unique indexes,
transaction state), runs upserts and reads inside ``store.transaction()``,
and asks the store to extend a native enumerated type when one is
configured.

Implementations:
    - :class:`persistent_enum.adapters.SQLAlchemyEnumStore` — any SQLAlchemy
      engine, connection or session

Tags:
    persistent-enum, protocol, storage, adapter

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ColumnInfo:
    """Reflected column metadata.

    ``has_default`` covers both server defaults and client-side defaults
    declared on a mapped table.
    """

    name: str
    nullable: bool
    has_default: bool = False

    @property
    def optional(self) -> bool:
        """Whether a row may omit this column."""
        return self.nullable or self.has_default


class EnumStoreTransaction(Protocol):
    """Operations available inside ``EnumStore.transaction()``."""

    def upsert(
        self,
        rows: Sequence[Mapping[str, Any]],
        conflict_key: str,
        update_columns: Sequence[str],
    ) -> None:
        """Insert each row, or update ``update_columns`` when ``conflict_key`` matches."""
        ...

    def query(self, names: Iterable[str] | None = None) -> list[dict[str, Any]]:
        """Return rows as dicts, all of them or only those with the given names."""
        ...


@runtime_checkable
class EnumStore(Protocol):
    """Backing store contract for one enumeration table."""

    @property
    def table_name(self) -> str:
        ...

    def table_exists(self) -> bool:
        """Whether the table exists.

        Raises:
            EnumTableInvalid: the database itself is unreachable.
        """
        ...

    def columns(self) -> list[ColumnInfo]:
        ...

    def unique_indexes(self) -> list[tuple[str, ...]]:
        """Column tuples of every unique index or unique constraint."""
        ...

    def open_transactions(self) -> int:
        """Number of transactions the caller currently holds open."""
        ...

    def transaction(self) -> AbstractContextManager[EnumStoreTransaction]:
        ...

    def ensure_enum_labels(self, type_name: str, labels: Iterable[str]) -> list[str]:
        """Add missing labels to a native enumerated type, returning those added.

        Raises:
            MissingEnumType: the type does not exist.
        """
        ...


__all__ = ["ColumnInfo", "EnumStore", "EnumStoreTransaction"]
