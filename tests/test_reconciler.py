"""Tests for persistent_enum.reconciler against an in-memory store."""

from contextlib import contextmanager

import pytest
from structlog.testing import capture_logs

from persistent_enum.dummy import DummyStore
from persistent_enum.errors import EnumTableInvalid, MissingEnumType, UnsafeInitialization
from persistent_enum.reconciler import Reconciler, reconcile_or_fallback
from persistent_enum.spec import EnumSpec
from persistent_enum.store import ColumnInfo, EnumStore


class FakeTransaction:
    def __init__(self, store):
        self.store = store

    def upsert(self, rows, conflict_key, update_columns):
        self.store.upserts.append(([dict(r) for r in rows], conflict_key, tuple(update_columns)))
        for row in rows:
            existing = next((r for r in self.store.rows if r[conflict_key] == row[conflict_key]), None)
            if existing is None:
                new = {c.name: None for c in self.store.column_info}
                new.update(row)
                if new["id"] is None:
                    new["id"] = len(self.store.rows) + 1
                self.store.rows.append(new)
            else:
                existing.update({c: row[c] for c in update_columns})

    def query(self, names=None):
        rows = sorted(self.store.rows, key=lambda r: str(r["id"]))
        if names is not None:
            rows = [r for r in rows if r["name"] in set(names)]
        return [dict(r) for r in rows]


class FakeStore:
    """Minimal EnumStore keeping rows in a list."""

    table_name = "fake"

    def __init__(self, columns=None, unique=(("name",),), exists=True, open_tx=0, enum_type_error=None):
        self.column_info = columns or [ColumnInfo("id", False), ColumnInfo("name", False)]
        self.unique = list(unique)
        self.exists = exists
        self.open_tx = open_tx
        self.enum_type_error = enum_type_error
        self.rows = []
        self.upserts = []
        self.enum_labels = []

    def table_exists(self):
        return self.exists

    def columns(self):
        return list(self.column_info)

    def unique_indexes(self):
        return list(self.unique)

    def open_transactions(self):
        return self.open_tx

    @contextmanager
    def transaction(self):
        yield FakeTransaction(self)

    def ensure_enum_labels(self, type_name, labels):
        if self.enum_type_error:
            raise self.enum_type_error
        self.enum_labels.extend(labels)
        return list(labels)


WITH_X = [ColumnInfo("id", False), ColumnInfo("name", False), ColumnInfo("x", True)]


class TestStoreProtocol:
    def test_fake_satisfies_protocol(self):
        assert isinstance(FakeStore(), EnumStore)


class TestChecks:
    """Table checks run before anything is written."""

    def test_missing_table_first(self):
        store = FakeStore(exists=False, unique=(), open_tx=1)
        with pytest.raises(EnumTableInvalid, match="doesn't exist"):
            Reconciler(store, identity="app:Fake").reconcile(EnumSpec(["A"]))

    def test_unique_index_must_cover_only_the_name(self):
        store = FakeStore(unique=(("name", "id"),))
        with pytest.raises(EnumTableInvalid, match="missing unique index on 'name'") as exc_info:
            Reconciler(store, identity="app:Fake").reconcile(EnumSpec(["A"]))
        assert exc_info.value.context.enum == "app:Fake"
        assert exc_info.value.context.table == "fake"

    def test_open_transaction(self):
        store = FakeStore(open_tx=1)
        with pytest.raises(UnsafeInitialization):
            Reconciler(store).reconcile(EnumSpec(["A"]))
        assert store.upserts == []


class TestUpsert:
    def test_rows_grouped_by_key_set(self):
        store = FakeStore(columns=WITH_X)
        spec = EnumSpec({"A": {"x": 1}, "B": {}, "C": {"x": 2}})
        Reconciler(store).reconcile(spec)

        assert [(len(rows), key, update) for rows, key, update in store.upserts] == [
            (2, "name", ("x",)),
            (1, "name", ()),
        ]

    def test_partition_required_and_retired(self):
        store = FakeStore()
        store.rows = [{"id": 1, "name": "Old"}]
        result = Reconciler(store).reconcile(EnumSpec(["B", "A"]))

        assert [m.name for m in result.required] == ["B", "A"]
        assert [m.name for m in result.retired] == ["Old"]
        assert [m.name for m in result.members] == ["B", "A", "Old"]
        assert not result.dummy

    def test_native_type_uses_names_as_ordinals(self):
        store = FakeStore()
        result = Reconciler(store).reconcile(EnumSpec(["A", "B"], sql_enum_type="letters"))

        assert store.enum_labels == ["A", "B"]
        assert [m.ordinal for m in result.required] == ["A", "B"]

    def test_missing_native_type_downgraded(self):
        store = FakeStore(enum_type_error=MissingEnumType("Database enum type 'letters' does not exist"))
        with capture_logs() as logs:
            result = Reconciler(store, identity="app:Fake").reconcile(
                EnumSpec(["A"], sql_enum_type="letters")
            )

        assert result.required[0].ordinal == 1
        assert "id" not in store.upserts[0][0][0]
        assert [log["event"] for log in logs if log["log_level"] == "warning"] == ["enum_type_missing"]


class TestFallbackDriver:
    def test_reraises_outside_maintenance(self):
        store = FakeStore(exists=False)
        with pytest.raises(EnumTableInvalid):
            reconcile_or_fallback(Reconciler(store), EnumSpec(["A"]), DummyStore)

    def test_dummy_members_in_maintenance(self, maintenance):
        store = FakeStore(exists=False)
        with capture_logs() as logs:
            result = reconcile_or_fallback(Reconciler(store, identity="app:Fake"), EnumSpec(["A", "B"]), DummyStore)

        assert result.dummy
        assert [m.ordinal for m in result.required] == [1_000_000_000, 1_000_000_001]
        assert result.retired == ()
        [log] = [log for log in logs if log["event"] == "enum_dummy_fallback"]
        assert log["enum"] == "app:Fake"
        assert log["error"]["error_type"] == "EnumTableInvalid"

    def test_builder_evaluated_once(self, maintenance):
        calls = []

        def declare(b):
            calls.append(1)
            b.A()

        reconcile_or_fallback(Reconciler(FakeStore(exists=False)), EnumSpec(builder=declare), DummyStore)
        assert len(calls) == 1

    def test_unsafe_initialization_never_degraded(self, maintenance):
        with pytest.raises(UnsafeInitialization):
            reconcile_or_fallback(Reconciler(FakeStore(open_tx=2)), EnumSpec(["A"]), DummyStore)
