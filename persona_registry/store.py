"""
Persona store layer.

A single logical map from account id to CID. Two backends share one shape:
`MemoryStore` for isolated construction in tests and tooling, `SQLiteStore`
for the durable deployment.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Dict, Optional


class PersonaStore:
    """Key-value store contract used by the registry."""

    def initialize(self) -> None:
        raise NotImplementedError

    def get(self, account_id: str) -> Optional[str]:
        raise NotImplementedError

    def put(self, account_id: str, cid: str) -> None:
        raise NotImplementedError

    def __len__(self) -> int:
        raise NotImplementedError


class MemoryStore(PersonaStore):
    def __init__(self) -> None:
        self._personas: Dict[str, str] = {}

    def initialize(self) -> None:
        self._personas = {}

    def get(self, account_id: str) -> Optional[str]:
        return self._personas.get(account_id)

    def put(self, account_id: str, cid: str) -> None:
        self._personas[account_id] = cid

    def __len__(self) -> int:
        return len(self._personas)


def _connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


class SQLiteStore(PersonaStore):
    """Durable store. One connection per operation."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def initialize(self) -> None:
        # Non-destructive: an existing table keeps its rows.
        conn = _connect(self.db_path)
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS personas (
                    account_id TEXT PRIMARY KEY,
                    cid TEXT NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, account_id: str) -> Optional[str]:
        conn = _connect(self.db_path)
        try:
            row = conn.execute(
                "SELECT cid FROM personas WHERE account_id=?",
                (account_id,),
            ).fetchone()
            return row["cid"] if row else None
        finally:
            conn.close()

    def put(self, account_id: str, cid: str) -> None:
        conn = _connect(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO personas (account_id, cid) VALUES (?, ?)
                ON CONFLICT(account_id) DO UPDATE SET cid=excluded.cid
                """,
                (account_id, cid),
            )
            conn.commit()
        finally:
            conn.close()

    def __len__(self) -> int:
        conn = _connect(self.db_path)
        try:
            row = conn.execute("SELECT COUNT(*) FROM personas").fetchone()
            return int(row[0])
        finally:
            conn.close()
