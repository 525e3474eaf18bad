"""
Reconciliation of declared enumeration members with their backing table.

Given an ``EnumSpec`` and an ``EnumStore``, the reconciler makes sure every
required member exists as a row carrying its declared attributes, then reads
back the complete row set, including retired rows that are no longer
declared.

Manifesto:
    An enumeration table is the source of ordinals, the code is the source of
    names.  Reconciliation is additive and idempotent: rows are inserted or
    updated, never deleted, and columns the code does not declare are left
    untouched.

Architecture:
    ::

        EnumSpec ──► required members {name: attrs}
                          │
        EnumStore ──► 1. table exists?          ─┐
                      2. unique index on name?   ├─ EnumTableInvalid
                      3. open transaction?      ─┼─ UnsafeInitialization
                      4. required/optional columns
                      5. native enum labels     ─── MissingEnumType (downgraded)
                      6. target rows            ─── EnumTableInvalid
                      7. grouped upserts ┐
                      8. read all rows   ┘ one transaction
                          │
                          ▼
                    ReconcileResult(required, retired)

    ``reconcile_or_fallback`` wraps the above: on ``EnumTableInvalid`` inside a
    maintenance context it logs ``enum_dummy_fallback`` and returns dummy
    members instead; outside one it re-raises.

Guardrails:
    ❌ DON'T: Initialize enumerations inside a transaction
    ✅ DO: Initialize at import/startup time, or re-synchronize explicitly

Tags:
    persistent-enum, reconciliation, upsert, fallback

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from persistent_enum.dummy import DummyStore
from persistent_enum.errors import (
    EnumTableInvalid,
    ErrorContext,
    MissingEnumType,
    UnsafeInitialization,
)
from persistent_enum.logging import get_logger
from persistent_enum.maintenance import is_maintenance_context
from persistent_enum.member import ID_ATTR, Member
from persistent_enum.spec import EnumSpec, RequiredMembers
from persistent_enum.store import EnumStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    """Members produced by one reconciliation run."""

    required: tuple[Member, ...]
    retired: tuple[Member, ...] = ()
    dummy: bool = False

    @property
    def members(self) -> tuple[Member, ...]:
        return self.required + self.retired


class Reconciler:
    """Runs the upsert-and-read algorithm against one ``EnumStore``."""

    def __init__(self, store: EnumStore, *, identity: str | None = None) -> None:
        self.store = store
        self.identity = identity or store.table_name

    def _context(self, spec: EnumSpec) -> ErrorContext:
        return ErrorContext(enum=self.identity, table=self.store.table_name, name_attr=spec.name_attr)

    def _check_table(self, spec: EnumSpec) -> None:
        try:
            exists = self.store.table_exists()
        except EnumTableInvalid as exc:
            exc.with_context(enum=self.identity)
            raise
        if not exists:
            raise EnumTableInvalid(
                f"Database table for {self.identity} doesn't exist",
                context=self._context(spec),
            )

        name_attr = spec.name_attr
        if (name_attr,) not in {tuple(columns) for columns in self.store.unique_indexes()}:
            raise EnumTableInvalid(
                f"detected missing unique index on '{name_attr}'",
                context=self._context(spec),
            )

        if self.store.open_transactions() > 0:
            # Never degraded: a fallback here would go unnoticed
            raise UnsafeInitialization(
                f"PersistentEnum {self.identity} detected unsafe initialization "
                "during a transaction: aborting.",
                context=self._context(spec),
            )

    def _required_attributes(self, spec: EnumSpec, table_attributes: list[str], optional: set[str]) -> list[str]:
        if spec.required_attributes is None:
            return [attr for attr in table_attributes if attr not in optional]

        required = list(spec.required_attributes)
        unknown = [attr for attr in required if attr not in table_attributes]
        if unknown:
            logger.warning(
                "enum_required_attributes_unknown",
                enum=self.identity,
                attributes=unknown,
                message=f"required attributes {unknown} for {self.identity} not found in table - ignoring.",
            )
        return [attr for attr in required if attr not in unknown]

    def _extend_enum_type(self, spec: EnumSpec, names: list[str]) -> str | None:
        if not spec.sql_enum_type:
            return None
        try:
            self.store.ensure_enum_labels(spec.sql_enum_type, names)
        except MissingEnumType as exc:
            logger.warning(
                "enum_type_missing",
                enum=self.identity,
                sql_enum_type=spec.sql_enum_type,
                reason=exc.message,
                message=f"Database enum type missing for {self.identity}: falling back to default id handling",
            )
            return None
        return spec.sql_enum_type

    def _target_rows(
        self,
        spec: EnumSpec,
        required_members: RequiredMembers,
        table_attributes: list[str],
        required_attributes: list[str],
        sql_enum_type: str | None,
    ) -> list[dict[str, Any]]:
        rows = []
        for name, attributes in required_members.items():
            extra = [attr for attr in attributes if attr not in table_attributes]
            if extra:
                logger.warning(
                    "enum_attributes_missing_from_table",
                    enum=self.identity,
                    member=name,
                    attributes=extra,
                    message=f"specified attributes {extra} for {self.identity} missing from table - ignoring.",
                )
                attributes = {k: v for k, v in attributes.items() if k not in extra}

            missing = [attr for attr in required_attributes if attr not in attributes]
            if missing:
                raise EnumTableInvalid(
                    f"enum member error: required attributes {missing} not provided",
                    context=self._context(spec),
                ).with_context(member=name)

            row = dict(attributes)
            row[spec.name_attr] = name
            if sql_enum_type:
                row[ID_ATTR] = name
            rows.append(row)
        return rows

    def reconcile(self, spec: EnumSpec, required_members: RequiredMembers | None = None) -> ReconcileResult:
        """Upsert required members and load every row of the table.

        Raises:
            EnumTableInvalid: missing table, database, unique index or
                required attributes.
            UnsafeInitialization: called inside an open transaction.
        """
        if required_members is None:
            required_members = spec.required_members()
        name_attr = spec.name_attr

        self._check_table(spec)

        internal = {ID_ATTR, name_attr}
        columns = self.store.columns()
        table_attributes = [c.name for c in columns if c.name not in internal]
        optional = {c.name for c in columns if c.optional} - internal
        required_attributes = self._required_attributes(spec, table_attributes, optional)

        sql_enum_type = self._extend_enum_type(spec, list(required_members))
        rows = self._target_rows(spec, required_members, table_attributes, required_attributes, sql_enum_type)

        # Rows with different key sets cannot share one upsert statement
        groups: dict[tuple[str, ...], list[dict[str, Any]]] = {}
        for row in rows:
            groups.setdefault(tuple(sorted(row)), []).append(row)

        with self.store.transaction() as tx:
            for keys, group in groups.items():
                update_columns = [key for key in keys if key not in internal]
                tx.upsert(group, conflict_key=name_attr, update_columns=update_columns)
            loaded = [Member.from_row(row, name_attr) for row in tx.query()]

        by_name = {member.name: member for member in loaded}
        absent = [name for name in required_members if name not in by_name]
        if absent:
            raise EnumTableInvalid(
                f"required members {absent} missing after upsert",
                context=self._context(spec),
            )

        return ReconcileResult(
            required=tuple(by_name[name] for name in required_members),
            retired=tuple(m for m in loaded if m.name not in required_members),
        )

    def load_existing(self, name_attr: str = "name") -> ReconcileResult:
        """Read every row without reconciling; all rows count as required."""
        if not self.store.table_exists():
            raise EnumTableInvalid(
                f"Database table for {self.identity} doesn't exist",
                context=ErrorContext(enum=self.identity, table=self.store.table_name),
            )
        with self.store.transaction() as tx:
            loaded = tuple(Member.from_row(row, name_attr) for row in tx.query())
        return ReconcileResult(required=loaded)


def reconcile_or_fallback(
    reconciler: Reconciler,
    spec: EnumSpec,
    dummy_store: Callable[[], DummyStore],
) -> ReconcileResult:
    """Reconcile, degrading to dummy members only inside a maintenance context.

    The builder (if any) is evaluated exactly once per call.
    """
    required_members = spec.required_members()
    try:
        return reconciler.reconcile(spec, required_members)
    except EnumTableInvalid as exc:
        if not is_maintenance_context():
            raise

        logger.warning(
            "enum_dummy_fallback",
            enum=reconciler.identity,
            reason=exc.message,
            error=exc.to_dict(),
            message=(
                f"Database table initialization error for {reconciler.identity}, "
                f"initializing constants with dummy records instead: {exc.message}"
            ),
        )
        members = dummy_store().load(required_members)
        return ReconcileResult(required=tuple(members), dummy=True)


__all__ = ["ReconcileResult", "Reconciler", "reconcile_or_fallback"]
