"""Versioned key-value store.

Every value is persisted as a JSON envelope::

    {"version": <int>, "data": <entity JSON>}

Reads never raise. Corrupted JSON is deleted on sight, and values written by
an older schema are upgraded lazily through a caller-supplied migration the
first time they are read.
"""

import json
import logging
import sqlite3
from typing import Any, Callable, Optional

from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

# Bump whenever the stored shape of any entity changes
CURRENT_VERSION = 1

# Version assumed for JSON written before envelopes existed
LEGACY_VERSION = 0

MigrateFn = Callable[[int, Any], Optional[Any]]


def unwrap_envelope(raw: Any) -> tuple[int, Any]:
    """Split a stored value into ``(version, data)``.

    Anything that is not a dict carrying both ``version`` and ``data`` is
    legacy unversioned data and is returned whole as version 0.
    """
    if (
        isinstance(raw, dict)
        and "version" in raw
        and "data" in raw
        and isinstance(raw["version"], int)
        and not isinstance(raw["version"], bool)
    ):
        return raw["version"], raw["data"]
    return LEGACY_VERSION, raw


class VersionedStore:
    """JSON values under string keys, tagged with ``CURRENT_VERSION``."""

    def __init__(self, db: DatabaseConnection):
        self.db = db

    # ── Raw access ─────────────────────────────────────────────

    def read(self, key: str) -> Optional[Any]:
        """Return the parsed JSON at *key*, or None.

        A value that fails to parse is removed so the next read starts clean.
        """
        try:
            rows = self.db.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            )
        except sqlite3.Error as e:
            logger.warning(f"Failed to read key {key!r}: {e}")
            return None
        if not rows:
            return None

        try:
            return json.loads(rows[0]["value"])
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Corrupted JSON at key {key!r}, removing: {e}")
            self.remove(key)
            return None

    def write(self, key: str, value: Any) -> bool:
        """Persist *value* wrapped in the current version envelope.

        Returns False instead of raising when the write fails.
        """
        try:
            payload = json.dumps({"version": CURRENT_VERSION, "data": value})
        except (TypeError, ValueError) as e:
            logger.warning(f"Value for key {key!r} is not serializable: {e}")
            return False
        return self.write_raw(key, payload)

    def write_raw(self, key: str, text: str) -> bool:
        """Store *text* exactly as given, without an envelope."""
        try:
            with self.db.get_connection() as conn:
                conn.execute(
                    "INSERT INTO kv_store (key, value, updated_at) "
                    "VALUES (?, ?, CURRENT_TIMESTAMP) "
                    "ON CONFLICT(key) DO UPDATE SET "
                    "value = excluded.value, updated_at = CURRENT_TIMESTAMP",
                    (key, text),
                )
            return True
        except sqlite3.Error as e:
            logger.warning(f"Failed to write key {key!r}: {e}")
            return False

    def remove(self, key: str):
        """Delete *key* if present."""
        try:
            with self.db.get_connection() as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as e:
            logger.warning(f"Failed to remove key {key!r}: {e}")

    def clear(self):
        """Delete every stored key."""
        try:
            with self.db.get_connection() as conn:
                conn.execute("DELETE FROM kv_store")
        except sqlite3.Error as e:
            logger.warning(f"Failed to clear store: {e}")

    def keys(self) -> list[str]:
        try:
            rows = self.db.execute("SELECT key FROM kv_store ORDER BY key")
        except sqlite3.Error as e:
            logger.warning(f"Failed to list keys: {e}")
            return []
        return [r["key"] for r in rows]

    # ── Versioned access ───────────────────────────────────────

    def read_versioned(
        self, key: str, migrate: Optional[MigrateFn] = None
    ) -> Optional[Any]:
        """Return the current-shape data at *key*, migrating if needed.

        - current version: data returned unchanged
        - older/other version with *migrate*: the migrated value is written
          back at the current version and returned
        - no *migrate*, or migration gives None: None
        """
        raw = self.read(key)
        if raw is None:
            return None

        version, data = unwrap_envelope(raw)
        if version == CURRENT_VERSION:
            return data

        if migrate is None:
            logger.warning(
                f"Key {key!r} stored at version {version}, expected "
                f"{CURRENT_VERSION}; no migration available"
            )
            return None

        try:
            migrated = migrate(version, data)
        except Exception as e:
            logger.warning(
                f"Migration of key {key!r} from version {version} failed: {e}"
            )
            return None

        if migrated is None:
            logger.warning(
                f"Key {key!r} at version {version} could not be migrated"
            )
            return None

        self.write(key, migrated)
        logger.info(
            f"Migrated key {key!r} from version {version} "
            f"to {CURRENT_VERSION}"
        )
        return migrated
