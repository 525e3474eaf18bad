"""
Enumeration holders: the lookup surface of a persistent enumeration.

A ``PersistentEnum`` owns one backing store and one published ``EnumState``.
Initialization reconciles the declared members with the table (or falls back
to dummy members inside a maintenance context), builds a new state and
publishes it with a single attribute assignment.  Lookups only ever read the
published state.

Manifesto:
    Code names members, the table numbers them.  A holder gives code stable
    constants (``Color.RED``) backed by stable ordinals, and keeps both in
    step with the database through ``reinitialize()``.

Architecture:
    ::

        acts_as_enum(Model, [...], bind=engine)
            │
            ▼
        PersistentEnum ── initialize(spec) ──► reconcile_or_fallback
            │                                       │
            │◄──────── EnumState.build(previous) ◄──┘
            │
            ├── by_ordinal / value_of / values / all_values / is_active
            ├── Color.RED   (constants, resolved per published state)
            └── registry    (registered on first publication)

Examples:
    >>> Color = acts_as_enum(ColorModel, ["Red", "Green"], bind=engine)
    >>> Color.RED.name
    'Red'
    >>> Color.value_of("red", insensitive=True) is Color.RED
    True

Tags:
    persistent-enum, holder, lookup, constants

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterator
from typing import Any

from persistent_enum.adapters.sqlalchemy_store import Bind, SQLAlchemyEnumStore
from persistent_enum.dummy import DummyStore
from persistent_enum.errors import (
    EnumTableInvalid,
    ErrorContext,
    IdentityMismatch,
    NotInitializedError,
    UnknownMemberError,
)
from persistent_enum.logging import get_logger
from persistent_enum.member import Member, Ordinal
from persistent_enum.reconciler import Reconciler, ReconcileResult, reconcile_or_fallback
from persistent_enum.registry import EnumRegistry, get_registry
from persistent_enum.spec import EnumSpec, MemberBuilder, MemberSource
from persistent_enum.state import EnumState
from persistent_enum.store import EnumStore

logger = get_logger(__name__)


class PersistentEnum:
    """One enumeration: a backing store plus its published state.

    Args:
        store: Backing store for the enumeration table.
        identity: Registry identity; ``module:qualname`` identities can be
            re-resolved after a reload.  Defaults to the table name.
        registry: Registry to join on first publication; defaults to the
            process-wide registry.
    """

    def __init__(
        self,
        store: EnumStore,
        *,
        identity: str | None = None,
        registry: EnumRegistry | None = None,
    ) -> None:
        self._store = store
        self._identity = identity or store.table_name
        self._registry = registry if registry is not None else get_registry()
        self._state: EnumState | None = None
        self._reload: Callable[[], EnumState] | None = None
        self._dummy_store: DummyStore | None = None
        self._namespaces: list[Any] = []

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def store(self) -> EnumStore:
        return self._store

    @property
    def initialized(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> EnumState:
        if self._state is None:
            raise NotInitializedError(
                f"{self._identity} has not been initialized",
                context=ErrorContext(enum=self._identity),
            )
        return self._state

    @property
    def is_dummy(self) -> bool:
        return self.state.dummy

    @property
    def constants(self) -> dict[str, Member]:
        return dict(self.state.constants)

    # --- initialization ---

    def initialize(self, spec: EnumSpec) -> EnumState:
        """Reconcile ``spec`` with the table and publish the result."""

        def reload() -> EnumState:
            reconciler = Reconciler(self._store, identity=self._identity)
            result = reconcile_or_fallback(reconciler, spec, lambda: self._dummy_store_for(spec))
            return self._publish(spec, result)

        self._reload = reload
        return reload()

    def load_records(self, name_attr: str = "name") -> EnumState:
        """Publish the table's current rows without writing anything.

        Raises:
            EnumTableInvalid: the table or database is missing.
        """

        def reload() -> EnumState:
            result = Reconciler(self._store, identity=self._identity).load_existing(name_attr)
            spec = EnumSpec(members=[m.name for m in result.required], name_attr=name_attr)
            return self._publish(spec, result)

        self._reload = reload
        return reload()

    def reinitialize(self) -> EnumState:
        """Repeat the last initialization and publish a fresh state."""
        if self._reload is None:
            raise NotInitializedError(
                f"{self._identity} cannot be reinitialized before it is initialized",
                context=ErrorContext(enum=self._identity),
            )
        return self._reload()

    def bind_constants(self, namespace: Any) -> None:
        """Set each constant on ``namespace`` now and after every publication."""
        if all(ns is not namespace for ns in self._namespaces):
            self._namespaces.append(namespace)
        if self._state is not None:
            self._apply_constants(namespace, self._state)

    def _dummy_store_for(self, spec: EnumSpec) -> DummyStore:
        if self._dummy_store is None:
            self._dummy_store = DummyStore(spec.name_attr, sql_enum_type=spec.sql_enum_type)
        elif self._dummy_store.name_attr != spec.name_attr:
            raise IdentityMismatch(
                f"Dummy store for {self._identity} was created for name attribute "
                f"'{self._dummy_store.name_attr}', not '{spec.name_attr}'",
                context=ErrorContext(enum=self._identity, name_attr=spec.name_attr),
            )
        return self._dummy_store

    def _publish(self, spec: EnumSpec, result: ReconcileResult) -> EnumState:
        state = EnumState.build(
            spec,
            result.required,
            result.retired,
            self._state,
            dummy=result.dummy,
            identity=self._identity,
        )
        first = self._state is None
        self._state = state

        for namespace in self._namespaces:
            self._apply_constants(namespace, state)
        if first:
            self._registry.register(self)

        logger.info(
            "enum_initialized",
            enum=self._identity,
            required=len(state.required_by_ordinal),
            total=len(state.by_ordinal),
            dummy=state.dummy,
        )
        return state

    @staticmethod
    def _apply_constants(namespace: Any, state: EnumState) -> None:
        for name, member in state.constants.items():
            setattr(namespace, name, member)

    # --- lookups ---

    def by_ordinal(self, ordinal: Ordinal) -> Member | None:
        return self.state.by_ordinal.get(ordinal)

    def value_of(self, name: Any, insensitive: bool = False) -> Member | None:
        """Member by name; ``insensitive`` ignores case where names allow it.

        Raises:
            CaseInsensitiveLookupError: ``insensitive`` was requested but two
                member names differ only by case.
        """
        return self.state.lookup_name(_lookup_name(name), insensitive)

    def value_of_strict(self, name: Any, insensitive: bool = False) -> Member:
        member = self.value_of(name, insensitive)
        if member is None:
            raise UnknownMemberError(self._identity, _lookup_name(name))
        return member

    def values(self) -> tuple[Member, ...]:
        """Required members, in declaration order."""
        return tuple(self.state.required_by_ordinal.values())

    def ordinals(self) -> tuple[Ordinal, ...]:
        return tuple(self.state.required_by_ordinal)

    def all_values(self) -> tuple[Member, ...]:
        """Required members followed by retired ones."""
        return tuple(self.state.by_ordinal.values())

    def all_ordinals(self) -> tuple[Ordinal, ...]:
        return tuple(self.state.by_ordinal)

    def is_active(self, member: Member) -> bool:
        return self.state.is_active(member)

    def __getitem__(self, ordinal: Ordinal) -> Member:
        member = self.by_ordinal(ordinal)
        if member is None:
            raise UnknownMemberError(self._identity, ordinal)
        return member

    def __iter__(self) -> Iterator[Member]:
        return iter(self.values())

    def __len__(self) -> int:
        return len(self.state.required_by_ordinal)

    def __contains__(self, member: object) -> bool:
        if not isinstance(member, Member) or self._state is None:
            return False
        return self._state.by_ordinal.get(member.ordinal) == member

    def __getattr__(self, name: str) -> Member:
        if name.startswith("_"):
            raise AttributeError(name)
        state = self.__dict__.get("_state")
        if state is not None and name in state.constants:
            return state.constants[name]
        raise AttributeError(f"{self.__dict__.get('_identity', 'PersistentEnum')} has no member constant '{name}'")

    def __repr__(self) -> str:
        if self._state is None:
            return f"<PersistentEnum {self._identity} (uninitialized)>"
        dummy = " dummy" if self._state.dummy else ""
        return f"<PersistentEnum {self._identity}{dummy}: {', '.join(m.name for m in self.values())}>"


def _lookup_name(name: Any) -> str:
    if isinstance(name, str):
        return name
    if isinstance(name, (Member, enum.Enum)):
        return name.name
    return str(name)


def identity_for(model_or_table: Any) -> str:
    """Registry identity of a mapped class, ``Table`` or table name."""
    if isinstance(model_or_table, type):
        qualname = model_or_table.__qualname__
        if "<locals>" in qualname:
            return qualname
        return f"{model_or_table.__module__}:{qualname}"
    if isinstance(model_or_table, str):
        return model_or_table
    return getattr(model_or_table, "fullname", None) or str(model_or_table)


def acts_as_enum(
    model_or_table: Any,
    members: MemberSource | None = None,
    *,
    bind: Bind,
    builder: Callable[[MemberBuilder], Any] | None = None,
    name_attr: str = "name",
    sql_enum_type: str | None = None,
    required_attributes: tuple[str, ...] | list[str] | None = None,
    identity: str | None = None,
) -> PersistentEnum:
    """Turn a table into a persistent enumeration and return its holder.

    ``members`` is a sequence of names, a mapping of name to attributes or
    an ``enum.Enum`` class; ``builder`` is a callable declaring members on a
    ``MemberBuilder`` instead.  A mapped class also gets the holder as
    ``__persistent_enum__``, which makes it re-resolvable after a reload.

    Raises:
        ConfigurationError: both or neither of ``members`` and ``builder``.
        EnumTableInvalid: the table is unusable outside a maintenance context.
        UnsafeInitialization: called inside an open transaction.
    """
    spec = EnumSpec(
        members=members,
        builder=builder,
        name_attr=name_attr,
        sql_enum_type=sql_enum_type,
        required_attributes=tuple(required_attributes) if required_attributes is not None else None,
    )
    store = SQLAlchemyEnumStore(bind, model_or_table, name_attr=name_attr)
    holder = PersistentEnum(store, identity=identity or identity_for(model_or_table))
    holder.initialize(spec)

    if isinstance(model_or_table, type):
        model_or_table.__persistent_enum__ = holder
    return holder


def cache_constants(
    model_or_table: Any,
    members: MemberSource | None = None,
    *,
    bind: Bind,
    builder: Callable[[MemberBuilder], Any] | None = None,
    name_attr: str = "name",
    sql_enum_type: str | None = None,
    required_attributes: tuple[str, ...] | list[str] | None = None,
    identity: str | None = None,
    namespace: Any = None,
) -> tuple[Member, ...]:
    """Reconcile like ``acts_as_enum`` and return the required members.

    With ``namespace`` (a class or module), member constants are also set on
    it and kept current across re-synchronizations.
    """
    holder = acts_as_enum(
        model_or_table,
        members,
        bind=bind,
        builder=builder,
        name_attr=name_attr,
        sql_enum_type=sql_enum_type,
        required_attributes=required_attributes,
        identity=identity,
    )
    if namespace is not None:
        holder.bind_constants(namespace)
    return holder.values()


def cache_records(
    model_or_table: Any,
    *,
    bind: Bind,
    name_attr: str = "name",
    identity: str | None = None,
) -> PersistentEnum | None:
    """Load existing rows read-only; ``None`` when the table is unavailable."""
    store = SQLAlchemyEnumStore(bind, model_or_table, name_attr=name_attr)
    holder = PersistentEnum(store, identity=identity or identity_for(model_or_table))
    try:
        holder.load_records(name_attr)
    except EnumTableInvalid as exc:
        logger.warning(
            "enum_records_unavailable",
            enum=holder.identity,
            reason=exc.message,
            message=f"Database table initialization error for {holder.identity}: {exc.message}",
        )
        return None

    if isinstance(model_or_table, type):
        model_or_table.__persistent_enum__ = holder
    return holder


__all__ = [
    "PersistentEnum",
    "acts_as_enum",
    "cache_constants",
    "cache_records",
    "identity_for",
]
