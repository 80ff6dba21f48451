#!/usr/bin/env python3
"""
Scheduled-action worker for the transfer faucet.

- Reads pending actions from faucet.db (pending_actions), oldest first.
- Hands each one to the external executor over JSON-RPC
  (method "execute_action"), which signs and submits it on chain.
- Marks the row 'sent' with the executor's result, or 'failed' with the error.

The faucet never learns whether a transfer landed: a failed transfer is
refunded to the faucet account by the chain, and the proof hash that paid
for it stays used.
"""

import json
import os
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict

import requests
from dotenv import load_dotenv

from transfer_faucet import actions

# -------------------------
# Env + paths
# -------------------------

BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env")

DB_PATH = (os.getenv("FAUCET_DB") or "faucet.db").strip()

POLL_SEC = max(1, int(os.getenv("ACTION_POLL_SEC", "5")))

ACTION_EXECUTOR_URL = (os.getenv("ACTION_EXECUTOR_URL") or "").strip()
ACTION_EXECUTOR_TOKEN = (os.getenv("ACTION_EXECUTOR_TOKEN") or "").strip()
FAUCET_ACCOUNT_ID = os.getenv("FAUCET_ACCOUNT_ID", "token-printer")


def db() -> sqlite3.Connection:
    con = sqlite3.connect(DB_PATH, timeout=30, isolation_level=None)
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA journal_mode=WAL;")
    con.execute("PRAGMA synchronous=NORMAL;")
    con.execute("PRAGMA busy_timeout=30000;")
    return con


def call_executor(action: Dict[str, Any]) -> Any:
    """Submit one action to the executor; returns its JSON-RPC result."""
    payload = {
        "jsonrpc": "2.0",
        "id": "faucet",
        "method": "execute_action",
        "params": {"signer_id": FAUCET_ACCOUNT_ID, "action": action},
    }
    headers = {}
    if ACTION_EXECUTOR_TOKEN:
        headers["Authorization"] = f"Bearer {ACTION_EXECUTOR_TOKEN}"
    try:
        resp = requests.post(ACTION_EXECUTOR_URL, json=payload, headers=headers, timeout=20)
        resp.raise_for_status()
        data = resp.json()
    except Exception as e:
        raise RuntimeError(f"executor request failed: {e}") from e

    if isinstance(data, dict) and data.get("error"):
        raise RuntimeError(f"executor error: {data['error']}")
    return data.get("result") if isinstance(data, dict) else data


def process_next(con: sqlite3.Connection) -> bool:
    """Execute the oldest pending action. Returns False if there was none."""
    row = actions.fetch_next_pending(con)
    if not row:
        return False

    aid = int(row["id"])
    action = {"kind": str(row["kind"]), "receiver_id": str(row["receiver_id"]), **json.loads(row["payload"])}

    try:
        result = call_executor(action)
    except Exception as e:
        err = f"send error: {e}"
        actions.mark_failed(con, aid, err)
        print(f"[fail] id={aid} kind={action['kind']} err={err}")
        return True

    result_s = result if isinstance(result, str) else json.dumps(result)
    actions.mark_sent(con, aid, result_s)
    print(f"[sent] id={aid} kind={action['kind']} to={action['receiver_id']} result={result_s}")
    return True


def main() -> None:
    if not ACTION_EXECUTOR_URL:
        raise SystemExit("Missing ACTION_EXECUTOR_URL in env.")

    print(f"[worker] started.")
    print(f"  db={DB_PATH}")
    print(f"  executor={ACTION_EXECUTOR_URL}")
    print(f"  signer={FAUCET_ACCOUNT_ID}")
    print("  polling every", POLL_SEC, "seconds")

    while True:
        con = db()
        try:
            actions.ensure_tables(con)
            if not process_next(con):
                time.sleep(POLL_SEC)
        finally:
            con.close()


if __name__ == "__main__":
    main()
