"""
Persona Witness Chain

Hash-chained audit log for persona writes and authentication actions.
External indexers page through it with `list_entries` and check integrity
with `verify_chain`.
"""

from __future__ import annotations

import hashlib
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from persona_registry.config import get_db_path


def _entry_hash(entry: Dict[str, Any]) -> str:
    return hashlib.sha256(
        json.dumps(entry, sort_keys=True, separators=(",", ":")).encode()
    ).hexdigest()


class WitnessChain:
    """Hash-chained audit log. Every entry references the previous hash."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path or get_db_path())
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS witness_chain (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                action TEXT NOT NULL,
                account_id TEXT,
                details TEXT NOT NULL,
                prev_hash TEXT,
                hash TEXT NOT NULL
            )
            """
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_witness_account ON witness_chain(account_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_witness_action ON witness_chain(action)")
        conn.commit()
        conn.close()

    def _get_last_hash(self, cursor: sqlite3.Cursor) -> Optional[str]:
        cursor.execute("SELECT hash FROM witness_chain ORDER BY id DESC LIMIT 1")
        row = cursor.fetchone()
        return row[0] if row else None

    def record(self, action: str, account_id: Optional[str], details: Dict[str, Any]) -> Dict[str, Any]:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action,
            "account_id": account_id,
            "details": details,
            "prev_hash": None,
        }

        conn = sqlite3.connect(self.db_path)
        try:
            cursor = conn.cursor()
            entry["prev_hash"] = self._get_last_hash(cursor)
            entry["hash"] = _entry_hash(entry)

            cursor.execute(
                """
                INSERT INTO witness_chain (timestamp, action, account_id, details, prev_hash, hash)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    entry["timestamp"],
                    entry["action"],
                    entry["account_id"],
                    json.dumps(details, sort_keys=True),
                    entry["prev_hash"],
                    entry["hash"],
                ),
            )
            conn.commit()
        finally:
            conn.close()
        return entry

    def list_entries(
        self,
        account_id: Optional[str] = None,
        action: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        ascending: bool = False,
    ) -> List[Dict[str, Any]]:
        clauses = []
        params: List[Any] = []
        if account_id is not None:
            clauses.append("account_id = ?")
            params.append(account_id)
        if action is not None:
            clauses.append("action = ?")
            params.append(action)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        order = "ASC" if ascending else "DESC"

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            rows = conn.execute(
                f"SELECT * FROM witness_chain {where} ORDER BY id {order} LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
        finally:
            conn.close()

        entries = []
        for row in rows:
            entry = dict(row)
            entry["details"] = json.loads(entry["details"])
            entries.append(entry)
        return entries

    def all_entries(self) -> List[Dict[str, Any]]:
        """Every entry, oldest first."""
        conn = sqlite3.connect(self.db_path)
        try:
            (count,) = conn.execute("SELECT COUNT(*) FROM witness_chain").fetchone()
        finally:
            conn.close()
        return self.list_entries(limit=max(count, 1), ascending=True)

    def verify_chain(self, entries: Optional[List[Dict[str, Any]]] = None) -> bool:
        """Verify no entries have been tampered with. Entries must be oldest first."""
        if entries is None:
            entries = self.all_entries()
        prev_hash = None
        for entry in entries:
            if entry.get("prev_hash") != prev_hash:
                return False
            check = {
                "timestamp": entry.get("timestamp"),
                "action": entry.get("action"),
                "account_id": entry.get("account_id"),
                "details": entry.get("details"),
                "prev_hash": entry.get("prev_hash"),
            }
            if entry.get("hash") != _entry_hash(check):
                return False
            prev_hash = entry.get("hash")
        return True
