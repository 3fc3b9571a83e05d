from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from notes_trainer.models import SessionState

log = logging.getLogger("notes_trainer.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS session_snapshots (
    user_id TEXT PRIMARY KEY,
    state_json TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class PersistenceError(Exception):
    """A stored snapshot could not be read back."""


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ── Snapshots ─────────────────────────────────────────────────────────

    def load_state(self, user_id: str) -> SessionState | None:
        """Return the saved snapshot for *user_id*, or None if there is none."""
        try:
            row = self.conn.execute(
                "SELECT state_json FROM session_snapshots WHERE user_id = ?", (user_id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not read snapshot for {user_id}: {e}") from e
        if row is None:
            return None
        try:
            return SessionState.from_dict(json.loads(row["state_json"]))
        except (ValueError, TypeError, KeyError) as e:
            raise PersistenceError(f"Corrupt snapshot for {user_id}: {e}") from e

    def save_state(self, user_id: str, state: SessionState) -> bool:
        """Write the snapshot. Failures are logged and reported, never raised."""
        try:
            self.conn.execute(
                "INSERT OR REPLACE INTO session_snapshots (user_id, state_json, updated_at) "
                "VALUES (?, ?, ?)",
                (user_id, json.dumps(state.to_dict()), datetime.now(timezone.utc).isoformat()),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            log.warning("Saving snapshot for %s failed: %s", user_id, e)
            return False
        return True

    def delete_state(self, user_id: str) -> bool:
        cur = self.conn.execute("DELETE FROM session_snapshots WHERE user_id = ?", (user_id,))
        self.conn.commit()
        return cur.rowcount > 0

    def list_users(self) -> list[dict]:
        rows = self.conn.execute(
            "SELECT user_id, updated_at FROM session_snapshots ORDER BY updated_at DESC"
        ).fetchall()
        return [dict(r) for r in rows]
