from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from transfer_faucet.contract import MemoryContext
from transfer_faucet.pow_utils import leading_zero_bits, pow_hash, solve_pow

FAUCET = "alice"
OWNER_TOKEN = "test-owner-token"
ONE_NEAR = 10 ** 24


def find_salt(account_id: str, bits: int, start: int = 0) -> int:
    salt, _ = solve_pow(account_id, bits, salt_start=start, verbose=False)
    return salt


def weak_salt(account_id: str, bits: int, start: int = 0) -> int:
    """First salt whose hash does NOT reach ``bits`` leading zeros."""
    salt = start
    while leading_zero_bits(pow_hash(account_id, salt)) >= bits:
        salt += 1
    return salt


@pytest.fixture
def ctx() -> MemoryContext:
    # "bob" calls the faucet deployed on "alice"
    return MemoryContext(current_account_id=FAUCET, predecessor_account_id="bob")


@pytest.fixture
def owner_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {OWNER_TOKEN}"}


@pytest.fixture
def client(tmp_path, monkeypatch) -> Iterator[TestClient]:
    from transfer_faucet import app as app_mod

    monkeypatch.setattr(app_mod, "DB_PATH", str(tmp_path / "faucet.db"))
    monkeypatch.setattr(app_mod, "ACTION_LOG_FILE", str(tmp_path / "actions.jsonl"))
    monkeypatch.setattr(app_mod, "FAUCET_ACCOUNT_ID", FAUCET)
    monkeypatch.setattr(app_mod, "FAUCET_OWNER_TOKEN", OWNER_TOKEN)

    with TestClient(app_mod.app) as c:
        yield c
