"""SQLAlchemy implementation of the ``EnumStore`` protocol.

Works with an ``Engine``, a ``Connection`` or an ORM ``Session`` as the bind,
and with a mapped model class, a ``Table`` or a bare table name (reflected on
first use) as the target.

Upsert strategy by dialect:

* **postgresql / sqlite** — ``INSERT ... ON CONFLICT (name) DO UPDATE``
  (``DO NOTHING`` when there is nothing to update)
* **mysql / mariadb** — row locks in id order, then ``INSERT ... ON DUPLICATE
  KEY UPDATE`` (``INSERT IGNORE`` when there is nothing to update); even
  identical upserts in the same order can deadlock without the locks
* **anything else** — ``SELECT ... FOR UPDATE`` per row, then insert or update

Tags:
    persistent-enum, sqlalchemy, adapter, upsert, reflection

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any, Union

from sqlalchemy import MetaData, Table, inspect, insert, select, update
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from persistent_enum.errors import EnumTableInvalid, ErrorContext, MissingEnumType
from persistent_enum.member import ID_ATTR
from persistent_enum.native_type import ensure_enum_labels
from persistent_enum.settings import get_settings
from persistent_enum.store import ColumnInfo

Bind = Union[Engine, Connection, Session]


class SQLAlchemyTransaction:
    """``EnumStoreTransaction`` over one SQLAlchemy connection."""

    def __init__(self, connection: Connection, table: Table, name_attr: str = "name") -> None:
        self._conn = connection
        self._table = table
        self._name_attr = name_attr

    @property
    def connection(self) -> Connection:
        return self._conn

    def upsert(
        self,
        rows: Sequence[Mapping[str, Any]],
        conflict_key: str,
        update_columns: Sequence[str],
    ) -> None:
        if not rows:
            return
        rows = [dict(row) for row in rows]
        dialect = self._conn.dialect.name

        if dialect in ("postgresql", "sqlite"):
            self._upsert_on_conflict(dialect, rows, conflict_key, update_columns)
        elif dialect in ("mysql", "mariadb"):
            self._upsert_on_duplicate_key(rows, update_columns)
        else:
            self._upsert_row_by_row(rows, conflict_key, update_columns)

    def _upsert_on_conflict(
        self,
        dialect: str,
        rows: list[dict[str, Any]],
        conflict_key: str,
        update_columns: Sequence[str],
    ) -> None:
        dialect_insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        stmt = dialect_insert(self._table).values(rows)
        if update_columns:
            stmt = stmt.on_conflict_do_update(
                index_elements=[conflict_key],
                set_={column: stmt.excluded[column] for column in update_columns},
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=[conflict_key])
        self._conn.execute(stmt)

    def _upsert_on_duplicate_key(
        self, rows: list[dict[str, Any]], update_columns: Sequence[str]
    ) -> None:
        table = self._table
        if update_columns:
            self._conn.execute(
                select(table.c[ID_ATTR]).order_by(table.c[ID_ATTR]).with_for_update()
            ).all()
            stmt = mysql.insert(table).values(rows)
            stmt = stmt.on_duplicate_key_update(
                {column: stmt.inserted[column] for column in update_columns}
            )
        else:
            stmt = insert(table).values(rows).prefix_with("IGNORE")
        self._conn.execute(stmt)

    def _upsert_row_by_row(
        self,
        rows: list[dict[str, Any]],
        conflict_key: str,
        update_columns: Sequence[str],
    ) -> None:
        key_column = self._table.c[conflict_key]
        for row in rows:
            existing = (
                self._conn.execute(
                    select(self._table).where(key_column == row[conflict_key]).with_for_update()
                )
                .mappings()
                .first()
            )
            if existing is None:
                self._conn.execute(insert(self._table).values(row))
                continue

            changes = {c: row[c] for c in update_columns if existing[c] != row[c]}
            if changes:
                self._conn.execute(
                    update(self._table).where(key_column == row[conflict_key]).values(changes)
                )

    def query(self, names: Iterable[str] | None = None) -> list[dict[str, Any]]:
        stmt = select(self._table).order_by(self._table.c[ID_ATTR])
        if names is not None:
            stmt = stmt.where(self._table.c[self._name_attr].in_(list(names)))
        return [dict(row) for row in self._conn.execute(stmt).mappings()]


class SQLAlchemyEnumStore:
    """Backing store for one enumeration table.

    Args:
        bind: Engine, Connection or Session the enumeration is loaded through.
        table: Mapped model class, ``Table`` or table name.
        name_attr: Column holding member names (used for filtered queries).
        schema: Schema of a table given by name.
        lock_key: Advisory lock key for native enum types; defaults to
            ``PERSISTENT_ENUM_ENUM_TYPE_LOCK_KEY``.
    """

    def __init__(
        self,
        bind: Bind,
        table: Any,
        *,
        name_attr: str = "name",
        schema: str | None = None,
        lock_key: int | None = None,
    ) -> None:
        self._bind = bind
        self._name_attr = name_attr
        self._lock_key = lock_key if lock_key is not None else get_settings().enum_type_lock_key

        if isinstance(table, Table):
            self._table: Table | None = table
        elif isinstance(getattr(table, "__table__", None), Table):
            self._table = table.__table__
        elif isinstance(table, str):
            self._table = None
        else:
            raise TypeError(f"Expected a mapped class, Table or table name, got {table!r}")

        if self._table is not None:
            self._table_name = self._table.name
            self._schema = self._table.schema
        else:
            self._table_name = table
            self._schema = schema

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def bind(self) -> Bind:
        return self._bind

    # --- connections ---

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Connection for metadata reads, leaving the caller's transaction state as found."""
        if isinstance(self._bind, Engine):
            with self._bind.connect() as conn:
                yield conn
            return

        if isinstance(self._bind, Session):
            started = not self._bind.in_transaction()
            try:
                yield self._bind.connection()
            finally:
                if started and self._bind.in_transaction():
                    self._bind.rollback()
            return

        started = not self._bind.in_transaction()
        try:
            yield self._bind
        finally:
            if started and self._bind.in_transaction():
                self._bind.rollback()

    @contextmanager
    def _autocommit(self) -> Iterator[Connection]:
        if isinstance(self._bind, Engine):
            with self._bind.connect() as conn:
                conn.execution_options(isolation_level="AUTOCOMMIT")
                yield conn
            return

        conn = self._bind.connection() if isinstance(self._bind, Session) else self._bind
        try:
            yield conn
        except BaseException:
            self._bind.rollback()
            raise
        else:
            self._bind.commit()

    def _error_context(self) -> ErrorContext:
        return ErrorContext(table=self._table_name, name_attr=self._name_attr)

    def _resolve_table(self, conn: Connection) -> Table:
        if self._table is None:
            self._table = Table(
                self._table_name, MetaData(), schema=self._schema, autoload_with=conn
            )
        return self._table

    # --- metadata ---

    def table_exists(self) -> bool:
        try:
            with self._connect() as conn:
                return inspect(conn).has_table(self._table_name, schema=self._schema)
        except OperationalError as exc:
            raise EnumTableInvalid(
                f"Database for table '{self._table_name}' doesn't exist",
                context=self._error_context(),
                cause=exc,
            ) from exc

    def columns(self) -> list[ColumnInfo]:
        with self._connect() as conn:
            reflected = inspect(conn).get_columns(self._table_name, schema=self._schema)

        declared = self._table.c if self._table is not None else None
        result = []
        for col in reflected:
            has_default = col.get("default") is not None
            if declared is not None and col["name"] in declared:
                column = declared[col["name"]]
                has_default = has_default or column.default is not None or column.server_default is not None
            result.append(
                ColumnInfo(name=col["name"], nullable=bool(col["nullable"]), has_default=has_default)
            )
        return result

    def unique_indexes(self) -> list[tuple[str, ...]]:
        with self._connect() as conn:
            inspector = inspect(conn)
            indexes = [
                tuple(index["column_names"])
                for index in inspector.get_indexes(self._table_name, schema=self._schema)
                if index.get("unique")
            ]
            try:
                constraints = inspector.get_unique_constraints(self._table_name, schema=self._schema)
            except NotImplementedError:
                constraints = []
        indexes.extend(tuple(c["column_names"]) for c in constraints)
        return indexes

    def open_transactions(self) -> int:
        if isinstance(self._bind, Engine):
            return 0
        count = 1 if self._bind.in_transaction() else 0
        if self._bind.in_nested_transaction():
            count += 1
        return count

    # --- data ---

    @contextmanager
    def transaction(self) -> Iterator[SQLAlchemyTransaction]:
        if isinstance(self._bind, Engine):
            with self._bind.begin() as conn:
                yield self._transaction_for(conn)
            return

        with self._bind.begin():
            conn = self._bind.connection() if isinstance(self._bind, Session) else self._bind
            yield self._transaction_for(conn)

    def _transaction_for(self, conn: Connection) -> SQLAlchemyTransaction:
        return SQLAlchemyTransaction(conn, self._resolve_table(conn), self._name_attr)

    def ensure_enum_labels(self, type_name: str, labels: Iterable[str]) -> list[str]:
        with self._autocommit() as conn:
            if conn.dialect.name != "postgresql":
                raise MissingEnumType(
                    f"Native enum type '{type_name}' requires PostgreSQL, not {conn.dialect.name}",
                    context=self._error_context(),
                )
            return ensure_enum_labels(conn, type_name, list(labels), lock_key=self._lock_key)

    def __repr__(self) -> str:
        return f"SQLAlchemyEnumStore(table={self._table_name!r})"


__all__ = ["SQLAlchemyEnumStore", "SQLAlchemyTransaction"]
