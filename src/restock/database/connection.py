"""SQLite connection management for the on-device key-value store.

The store never holds a connection open between operations: each read,
write or delete opens its own connection, commits or rolls back, and
closes it. A write is on disk when the call returns.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path


class DatabaseConnection:
    """Opens one short-lived SQLite connection per store operation.

    The parent directory of *db_path* is created on construction so a fresh
    install can open the database without a setup step.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def get_connection(self):
        """Yield a connection for one unit of work.

        Rows come back as ``sqlite3.Row`` so callers read columns by name.
        The block's statements are committed together on a clean exit, or
        rolled back and the error re-raised.
        """
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def execute(self, sql: str, params: tuple = ()):
        """Run one read statement in its own connection; return all rows."""
        with self.get_connection() as conn:
            return conn.execute(sql, params).fetchall()
