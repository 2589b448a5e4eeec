"""Table layout for the on-device key-value store.

This is the SQLite layout only. The shape of the *values* stored in it is
versioned separately (see ``store.CURRENT_VERSION``).
"""

LAYOUT_VERSION = 1

_SCHEMA_STATEMENTS = [
    # One row per persisted entity family
    """CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Layout version tracking
    """CREATE TABLE IF NOT EXISTS layout_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    f"INSERT OR IGNORE INTO layout_version (version) VALUES ({LAYOUT_VERSION})",
]


def _get_layout_version(conn) -> int:
    """Get the current layout version, or 0 if no layout exists."""
    try:
        row = conn.execute(
            "SELECT MAX(version) as v FROM layout_version"
        ).fetchone()
        return row["v"] if row and row["v"] is not None else 0
    except Exception:
        return 0


def initialize_database(db_connection) -> int:
    """Create the store tables if needed. Safe to call repeatedly.

    Returns the layout version now in place.
    """
    with db_connection.get_connection() as conn:
        if _get_layout_version(conn) < LAYOUT_VERSION:
            for stmt in _SCHEMA_STATEMENTS:
                conn.execute(stmt)
        return _get_layout_version(conn)
