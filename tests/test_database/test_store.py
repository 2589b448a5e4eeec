"""Tests for the versioned key-value store."""

import json
import sqlite3
from unittest.mock import patch

import pytest

from restock.database.store import (
    CURRENT_VERSION,
    LEGACY_VERSION,
    VersionedStore,
    unwrap_envelope,
)


def _raw_row(db, key):
    rows = db.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
    return rows[0]["value"] if rows else None


class TestReadWrite:
    @pytest.mark.parametrize("value", [
        {"name": "Dana", "email": "dana@example.com"},
        [{"id": "s1", "name": "Acme"}, {"id": "s2", "name": "Bolt"}],
        {"nested": {"list": [1, 2.5, None, True], "text": "ümlaut"}},
        "plain string",
        42,
        [],
    ])
    def test_round_trip(self, store, value):
        assert store.write("k", value) is True
        _, data = unwrap_envelope(store.read("k"))
        assert data == value

    def test_read_missing_key_returns_none(self, store):
        assert store.read("nope") is None

    def test_write_wraps_in_envelope(self, store, db):
        store.write("suppliers", [{"id": "1", "name": "Acme"}])
        stored = json.loads(_raw_row(db, "suppliers"))
        assert stored == {
            "version": CURRENT_VERSION,
            "data": [{"id": "1", "name": "Acme"}],
        }

    def test_write_overwrites(self, store):
        store.write("k", 1)
        store.write("k", 2)
        assert store.read_versioned("k") == 2

    def test_unserializable_value_returns_false(self, store):
        assert store.write("k", {"bad": object()}) is False
        assert store.read("k") is None

    def test_write_failure_is_swallowed(self, store):
        with patch.object(store.db, "get_connection",
                          side_effect=sqlite3.OperationalError("disk full")):
            assert store.write("k", {"a": 1}) is False

    def test_read_failure_returns_none(self, store):
        store.write("k", 1)
        with patch.object(store.db, "execute",
                          side_effect=sqlite3.OperationalError("locked")):
            assert store.read("k") is None


class TestCorruption:
    def test_corrupt_json_returns_none_and_removes_key(self, store, db):
        store.write_raw("sessions", "{not json")
        assert store.read("sessions") is None
        assert _raw_row(db, "sessions") is None

    def test_corrupt_read_is_idempotent(self, store):
        store.write_raw("sessions", "[1, 2,")
        assert store.read("sessions") is None
        assert store.read("sessions") is None
        assert "sessions" not in store.keys()

    def test_empty_string_is_corrupt(self, store):
        store.write_raw("k", "")
        assert store.read("k") is None
        assert store.keys() == []

    def test_corrupt_versioned_read_returns_none(self, store):
        store.write_raw("k", "}}}")
        assert store.read_versioned("k", lambda v, d: d) is None


class TestEnvelope:
    def test_unwrap_current(self):
        assert unwrap_envelope({"version": 1, "data": [1]}) == (1, [1])

    def test_unwrap_legacy_list(self):
        assert unwrap_envelope([1, 2]) == (LEGACY_VERSION, [1, 2])

    def test_unwrap_dict_missing_data_is_legacy(self):
        raw = {"version": 3, "name": "x"}
        assert unwrap_envelope(raw) == (LEGACY_VERSION, raw)

    def test_unwrap_dict_missing_version_is_legacy(self):
        raw = {"data": {"a": 1}}
        assert unwrap_envelope(raw) == (LEGACY_VERSION, raw)


class TestReadVersioned:
    def test_current_version_returned_unchanged(self, store):
        store.write("k", {"a": 1})
        assert store.read_versioned("k") == {"a": 1}

    def test_missing_key(self, store):
        assert store.read_versioned("missing") is None

    def test_mismatch_without_migrate_returns_none(self, store):
        store.write_raw("k", json.dumps({"version": CURRENT_VERSION + 1,
                                         "data": {"a": 1}}))
        assert store.read_versioned("k") is None

    def test_legacy_without_migrate_returns_none(self, store):
        store.write_raw("k", json.dumps([{"id": "1", "name": "Acme"}]))
        assert store.read_versioned("k") is None

    def test_migrate_receives_old_version_and_data(self, store):
        store.write_raw("k", json.dumps({"name": "old"}))
        seen = []

        def migrate(version, data):
            seen.append((version, data))
            return {"name": data["name"].upper()}

        assert store.read_versioned("k", migrate) == {"name": "OLD"}
        assert seen == [(0, {"name": "old"})]

    def test_migrated_value_is_persisted_at_current_version(self, store, db):
        store.write_raw("k", json.dumps({"name": "old"}))
        store.read_versioned("k", lambda v, d: {"name": "new"})
        assert json.loads(_raw_row(db, "k")) == {
            "version": CURRENT_VERSION,
            "data": {"name": "new"},
        }

    def test_migration_runs_only_once(self, store):
        store.write_raw("k", json.dumps([1]))
        calls = []

        def migrate(version, data):
            calls.append(version)
            return data + [2]

        assert store.read_versioned("k", migrate) == [1, 2]
        assert store.read_versioned("k", migrate) == [1, 2]
        assert calls == [0]

    def test_unmigratable_returns_none(self, store):
        store.write_raw("k", json.dumps("garbage"))
        assert store.read_versioned("k", lambda v, d: None) is None

    def test_raising_migration_returns_none(self, store):
        store.write_raw("k", json.dumps({"x": 1}))

        def migrate(version, data):
            raise KeyError("y")

        assert store.read_versioned("k", migrate) is None

    def test_migrate_not_called_for_current_version(self, store):
        store.write("k", [1])

        def migrate(version, data):
            raise AssertionError("should not run")

        assert store.read_versioned("k", migrate) == [1]


class TestRemoveAndClear:
    def test_remove(self, store):
        store.write("a", 1)
        store.remove("a")
        assert store.read("a") is None

    def test_remove_missing_is_noop(self, store):
        store.remove("never-written")

    def test_clear(self, store):
        store.write("a", 1)
        store.write("b", 2)
        store.clear()
        assert store.keys() == []

    def test_clear_failure_is_swallowed(self, store):
        with patch.object(store.db, "get_connection",
                          side_effect=sqlite3.OperationalError("gone")):
            store.clear()

    def test_store_without_table_never_raises(self, tmp_path):
        from restock.database.connection import DatabaseConnection
        bare = VersionedStore(DatabaseConnection(tmp_path / "bare.db"))
        assert bare.read("k") is None
        assert bare.write("k", 1) is False
        bare.remove("k")
        bare.clear()
