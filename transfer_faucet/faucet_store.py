# faucet_store.py
import hashlib
import sqlite3
from typing import Optional

from transfer_faucet import actions
from transfer_faucet.contract import FaucetContext


def db(path: str) -> sqlite3.Connection:
    con = sqlite3.connect(path, timeout=30, isolation_level=None)  # autocommit
    con.execute("PRAGMA journal_mode=WAL;")
    con.execute("PRAGMA synchronous=NORMAL;")
    con.execute("PRAGMA busy_timeout=30000;")
    return con


def init_db(path: str) -> None:
    con = db(path)
    try:
        con.execute("""
        CREATE TABLE IF NOT EXISTS contract_storage (
          key BLOB PRIMARY KEY,
          value BLOB NOT NULL
        );
        """)
        actions.ensure_tables(con)
    finally:
        con.close()


class SqliteContext(FaucetContext):
    """
    Call context backed by the contract_storage table.

    Reads and writes go through ``con`` as-is; the caller owns the
    surrounding BEGIN IMMEDIATE / COMMIT / ROLLBACK.
    """

    def __init__(self, con: sqlite3.Connection, current_account_id: str, predecessor_account_id: str):
        self.con = con
        self.current_account_id = current_account_id
        self.predecessor_account_id = predecessor_account_id

    def sha256(self, data: bytes) -> bytes:
        return hashlib.sha256(data).digest()

    def storage_read(self, key: bytes) -> Optional[bytes]:
        row = self.con.execute("SELECT value FROM contract_storage WHERE key=?", (key,)).fetchone()
        if not row:
            return None
        return bytes(row[0])

    def storage_write(self, key: bytes, value: bytes) -> None:
        self.con.execute(
            "INSERT INTO contract_storage(key, value) VALUES(?,?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (key, value),
        )

    def storage_has_key(self, key: bytes) -> bool:
        row = self.con.execute("SELECT 1 FROM contract_storage WHERE key=?", (key,)).fetchone()
        return row is not None
