# actions.py
# Scheduled actions produced by the contract and their sqlite outbox.
from __future__ import annotations

import json
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class TransferAction:
    """Send ``amount`` units from the faucet account to ``receiver_id``."""
    receiver_id: str
    amount: int

    kind = "transfer"

    def payload(self) -> Dict[str, Any]:
        # u128 does not fit a JSON number for most consumers
        return {"amount": str(self.amount)}


@dataclass(frozen=True)
class AddAccessKeyAction:
    """Add a function-call access key on ``receiver_id`` (the faucet itself)."""
    receiver_id: str
    public_key: str
    allowance: int
    method_receiver_id: str
    method_names: List[str] = field(default_factory=list)

    kind = "add_access_key"

    def payload(self) -> Dict[str, Any]:
        return {
            "public_key": self.public_key,
            "allowance": str(self.allowance),
            "method_receiver_id": self.method_receiver_id,
            "method_names": list(self.method_names),
        }


Action = Union[TransferAction, AddAccessKeyAction]


def action_to_dict(action: Action) -> Dict[str, Any]:
    return {"kind": action.kind, "receiver_id": action.receiver_id, **action.payload()}


def now_unix() -> int:
    return int(time.time())


# ---------------------------
# Outbox
# ---------------------------
def ensure_tables(con: sqlite3.Connection) -> None:
    con.execute("""
    CREATE TABLE IF NOT EXISTS pending_actions (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      created_at INTEGER NOT NULL,
      kind TEXT NOT NULL,
      receiver_id TEXT NOT NULL,
      payload TEXT NOT NULL,
      status TEXT NOT NULL,
      result TEXT,
      error TEXT
    );
    """)
    con.execute("CREATE INDEX IF NOT EXISTS idx_pending_actions_status ON pending_actions(status, id);")


def enqueue_action(con: sqlite3.Connection, action: Action, ts: Optional[int] = None) -> int:
    """Insert an action as 'pending'. Must run inside the caller's transaction."""
    cur = con.execute(
        "INSERT INTO pending_actions(created_at, kind, receiver_id, payload, status) VALUES(?,?,?,?,?)",
        (ts or now_unix(), action.kind, action.receiver_id, json.dumps(action.payload()), "pending"),
    )
    return int(cur.lastrowid)


def fetch_next_pending(con: sqlite3.Connection) -> Optional[sqlite3.Row]:
    return con.execute(
        "SELECT * FROM pending_actions WHERE status='pending' ORDER BY id ASC LIMIT 1"
    ).fetchone()


def mark_sent(con: sqlite3.Connection, aid: int, result: str) -> None:
    con.execute(
        "UPDATE pending_actions SET status='sent', result=?, error='' WHERE id=?",
        (result, aid),
    )


def mark_failed(con: sqlite3.Connection, aid: int, err: str) -> None:
    con.execute(
        "UPDATE pending_actions SET status='failed', error=? WHERE id=?",
        (err[:500], aid),
    )


def fetch_actions(con: sqlite3.Connection, status: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    status = (status or "").strip().lower() or None
    limit = int(limit)
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500

    q = "SELECT id, created_at, kind, receiver_id, payload, status, result, error FROM pending_actions"
    params: List[Any] = []
    if status:
        q += " WHERE status = ?"
        params.append(status)
    q += " ORDER BY id DESC LIMIT ?"
    params.append(limit)

    out: List[Dict[str, Any]] = []
    for r in con.execute(q, tuple(params)).fetchall():
        out.append(
            dict(
                action_id=int(r[0]),
                created_at=int(r[1]),
                kind=str(r[2]),
                receiver_id=str(r[3]),
                payload=json.loads(r[4]),
                status=str(r[5]),
                result=str(r[6]) if r[6] else None,
                error=str(r[7]) if r[7] else None,
            )
        )
    return out


def append_action_jsonl(path: str, action_id: int, ts: int, action: Action) -> None:
    """Append a scheduled action to the JSONL audit log (best-effort)."""
    entry = {"id": action_id, "created_at": ts, **action_to_dict(action)}
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as e:
        print(f"[warn] failed to append action jsonl '{path}': {e}")
