# src/storage/snapshot_store.py

"""Whole-document persistence of account snapshots.

Each account owns exactly two JSON documents, ``shoppingLists`` and
``priceHistory``.  They are read whole and written whole; the last
write wins.  Core operations never touch the store; callers load a
snapshot, run operations on it, and ``put`` the result when they
choose to.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from src.config.settings import Settings
from src.models.shopping_list import AccountSnapshot

logger = logging.getLogger("grocery_scout.store")

LISTS_DOCUMENT = "shoppingLists"
HISTORY_DOCUMENT = "priceHistory"

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS documents (
    account_id TEXT NOT NULL,
    kind       TEXT NOT NULL,
    body       TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (account_id, kind)
);
"""


class SnapshotStore(Protocol):
    """Get/put access to one account's snapshot."""

    def get(self, account_id: str) -> AccountSnapshot:
        """Load the snapshot for *account_id* (empty if unknown)."""
        ...

    def put(self, account_id: str, snapshot: AccountSnapshot) -> None:
        """Replace the stored snapshot for *account_id*."""
        ...


class SqliteSnapshotStore:
    """SQLite-backed document store keyed by account id."""

    def __init__(self, db_path: Path | None = None) -> None:
        path = db_path or Settings.SNAPSHOT_DB_PATH
        if str(path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.debug("SqliteSnapshotStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── Documents ────────────────────────────────────────

    def _read_document(
        self, account_id: str, kind: str,
    ) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT body FROM documents "
            "WHERE account_id = ? AND kind = ?",
            (account_id, kind),
        ).fetchone()
        if row is None:
            return None
        try:
            data = json.loads(row[0])
        except json.JSONDecodeError as exc:
            logger.warning(
                "Corrupt %s document for %s, treating as empty: %s",
                kind,
                account_id,
                exc,
            )
            return None
        if not isinstance(data, dict):
            logger.warning(
                "Unexpected %s document shape for %s",
                kind,
                account_id,
            )
            return None
        return data

    def _write_document(
        self,
        cur: sqlite3.Cursor,
        account_id: str,
        kind: str,
        body: dict[str, Any],
        ts: str,
    ) -> int:
        text = json.dumps(body, ensure_ascii=False)
        cur.execute(
            "INSERT INTO documents (account_id, kind, body, updated_at) "
            "VALUES (?, ?, ?, ?) "
            "ON CONFLICT(account_id, kind) DO UPDATE SET "
            "body=excluded.body, updated_at=excluded.updated_at",
            (account_id, kind, text, ts),
        )
        return len(text.encode("utf-8"))

    # ── Snapshot API ─────────────────────────────────────

    def get(self, account_id: str) -> AccountSnapshot:
        """Load both documents for *account_id*."""
        snapshot = AccountSnapshot.from_documents(
            self._read_document(account_id, LISTS_DOCUMENT),
            self._read_document(account_id, HISTORY_DOCUMENT),
        )
        logger.debug(
            "Loaded snapshot for %s: %d lists, %d products",
            account_id,
            len(snapshot.lists),
            len(snapshot.history),
        )
        return snapshot

    def put(self, account_id: str, snapshot: AccountSnapshot) -> None:
        """Overwrite both documents for *account_id* in one commit."""
        ts = datetime.now(timezone.utc).isoformat()
        cur = self._conn.cursor()
        lists_bytes = self._write_document(
            cur, account_id, LISTS_DOCUMENT,
            snapshot.lists_document(), ts,
        )
        history_bytes = self._write_document(
            cur, account_id, HISTORY_DOCUMENT,
            snapshot.history_document(), ts,
        )
        self._conn.commit()

        if history_bytes > Settings.MAX_HISTORY_BYTES:
            logger.warning(
                "Price history document for %s is %d bytes "
                "(ceiling %d)",
                account_id,
                history_bytes,
                Settings.MAX_HISTORY_BYTES,
            )
        logger.info(
            "Saved snapshot for %s (%d + %d bytes)",
            account_id,
            lists_bytes,
            history_bytes,
        )

