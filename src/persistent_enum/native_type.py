"""PostgreSQL native enumerated type synchronization.

When an enumeration table uses a native ``ENUM`` type as its primary key,
every required member name must exist as a label of that type before rows can
be inserted.  ``ALTER TYPE ... ADD VALUE`` cannot run safely inside an
ordinary transaction and concurrent additions race, so the inspection and
extension run on an autocommit connection while holding a session-level
advisory lock.

Manifesto:
    The lock is advisory and best-effort: it serializes well-behaved
    processes sharing one database, nothing more.

Examples:
    >>> with engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
    ...     ensure_enum_labels(conn, "color_type", ["Red", "Green"], lock_key=42)
    ['Green']

Tags:
    persistent-enum, postgresql, enum-type, advisory-lock

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from sqlalchemy import String, text
from sqlalchemy.engine import Connection

from persistent_enum.errors import ErrorContext, MissingEnumType
from persistent_enum.logging import get_logger

logger = get_logger(__name__)

_TYPE_EXISTS = text("SELECT true FROM pg_type WHERE typname = :name")

_TYPE_LABELS = text(
    "SELECT e.enumlabel FROM pg_enum e "
    "JOIN pg_type t ON e.enumtypid = t.oid "
    "WHERE t.typname = :name ORDER BY e.enumsortorder"
)


@contextmanager
def advisory_lock(connection: Connection, key: int) -> Iterator[None]:
    """Hold the session-level advisory lock ``key`` for the duration of the block.

    PostgreSQL advisory locks are reentrant per session; the lock is released
    even when the block raises.
    """
    connection.execute(text("SELECT pg_advisory_lock(:key)"), {"key": key})
    try:
        yield
    finally:
        connection.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": key})


def enum_type_exists(connection: Connection, type_name: str) -> bool:
    return bool(connection.execute(_TYPE_EXISTS, {"name": type_name}).scalar())


def enum_type_labels(connection: Connection, type_name: str) -> list[str]:
    return list(connection.execute(_TYPE_LABELS, {"name": type_name}).scalars())


def ensure_enum_labels(
    connection: Connection,
    type_name: str,
    labels: Iterable[str],
    *,
    lock_key: int,
) -> list[str]:
    """Add every missing label to ``type_name``, returning the labels added.

    Raises:
        MissingEnumType: the type does not exist (for instance while the table
            is being migrated to it).
    """
    if not enum_type_exists(connection, type_name):
        raise MissingEnumType(
            f"Database enum type '{type_name}' does not exist",
            context=ErrorContext(metadata={"sql_enum_type": type_name}),
        )

    preparer = connection.dialect.identifier_preparer
    quote_literal = String().literal_processor(dialect=connection.dialect)
    quoted_type = preparer.quote(type_name)

    added: list[str] = []
    with advisory_lock(connection, lock_key):
        current = set(enum_type_labels(connection, type_name))
        for label in labels:
            if label in current:
                continue
            # Driver-level SQL: the label is a quoted literal, not a bind parameter
            connection.exec_driver_sql(
                f"ALTER TYPE {quoted_type} ADD VALUE IF NOT EXISTS {quote_literal(label)}"
            )
            current.add(label)
            added.append(label)

    if added:
        logger.info("enum_type_extended", sql_enum_type=type_name, labels=added)
    return added


__all__ = [
    "advisory_lock",
    "enum_type_exists",
    "enum_type_labels",
    "ensure_enum_labels",
]
