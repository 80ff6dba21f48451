# client_pow_demo.py
#
# Minimal Python client to:
#   1) read the faucet config (difficulty, amount)
#   2) solve PoW for an account id
#   3) request a transfer to that account
#
# Usage:
#   python -m transfer_faucet.client_pow_demo <account_id>
#
# Server assumptions:
#   - FastAPI app running at BASE_URL
#   - hash = sha256(account_id + ':' + salt as 8 little-endian bytes)

import json
import os
import re
import sys
import time
from typing import Any, Dict

import requests
from dotenv import load_dotenv

from transfer_faucet.pow_utils import MAX_SALT, solve_pow

load_dotenv()

# ---------------------------
# Config
# ---------------------------
BASE_URL = os.getenv("FAUCET_BASE_URL", "http://127.0.0.1:8000").rstrip("/")
VERBOSE = True

MIN_ACCOUNT_ID_LEN = 2
MAX_ACCOUNT_ID_LEN = 64
VALID_ACCOUNT_RE = re.compile(r"^(([a-z\d]+[-_])*[a-z\d]+\.)*([a-z\d]+[-_])*[a-z\d]+$")


def is_valid_account_id(account_id: str) -> bool:
    """
    Client-side sanity check only; the faucet itself accepts any id and an
    invalid one just makes the scheduled transfer fail.
    """
    return (
        MIN_ACCOUNT_ID_LEN <= len(account_id) <= MAX_ACCOUNT_ID_LEN
        and VALID_ACCOUNT_RE.match(account_id) is not None
    )


# ---------------------------
# API calls
# ---------------------------
def get_config() -> Dict[str, Any]:
    r = requests.get(f"{BASE_URL}/config", timeout=30)
    if r.status_code != 200:
        raise RuntimeError(f"config failed {r.status_code}: {r.text}")
    return r.json()


def request_transfer(account_id: str, salt: int) -> Dict[str, Any]:
    payload = {"account_id": account_id, "salt": salt}
    r = requests.post(f"{BASE_URL}/request_transfer", json=payload, timeout=30)
    if r.status_code != 200:
        raise RuntimeError(f"request_transfer failed {r.status_code}: {r.text}")
    return r.json()


# ---------------------------
# Demo main
# ---------------------------
def main():
    if len(sys.argv) != 2:
        raise SystemExit("usage: client_pow_demo.py <account_id>")
    account_id = sys.argv[1].strip()
    if not is_valid_account_id(account_id):
        raise SystemExit(f"invalid account id: {account_id!r}")

    cfg = get_config()
    bits = int(cfg["min_difficulty"])
    print(f"[config] faucet={cfg['contract_account_id']} amount={cfg['transfer_amount_tokens']} bits={bits}")

    # Start from the clock so two runs for the same account don't collide
    salt_start = time.time_ns() & MAX_SALT
    print(f"[claim] solving PoW for {account_id}: bits={bits}")
    salt, _ = solve_pow(account_id, bits, salt_start=salt_start, verbose=VERBOSE)

    res = request_transfer(account_id, salt)
    print("[submit]", json.dumps(res, indent=2))


if __name__ == "__main__":
    main()
