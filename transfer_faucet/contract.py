# contract.py
"""
Transfer PoW faucet contract.

A caller asks for ``transfer_amount`` units to be sent to ``account_id`` and
proves work by supplying a u64 ``salt`` such that
``sha256(account_id + ':' + salt_le64)`` has at least ``min_difficulty``
leading zero bits. Each hash is accepted once; one account may still
request many transfers with different salts.

The host (see ``app.py``) supplies a ``FaucetContext`` per call: the
contract's own account id, the caller (predecessor) account id, the digest
primitive and key/value storage. The contract never commits anything
itself. The host commits on success and rolls back when a ``FaucetError``
escapes.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Dict, Optional

from transfer_faucet.actions import AddAccessKeyAction, TransferAction
from transfer_faucet.errors import (
    AlreadyInitialized,
    DuplicateProof,
    InsufficientProof,
    NotInitialized,
    Unauthorized,
)
from transfer_faucet.keys import parse_public_key
from transfer_faucet.pow_utils import leading_zero_bits, proof_message, sha256

STATE_KEY = b"STATE"
HASHES_PREFIX = b"h"

# Method a granted access key is allowed to call.
REQUEST_TRANSFER_METHOD = "request_transfer"


# ---------------------------
# Host context
# ---------------------------
class FaucetContext:
    """Capabilities the host hands to the contract for a single call."""

    current_account_id: str
    predecessor_account_id: str

    def sha256(self, data: bytes) -> bytes:
        raise NotImplementedError

    def storage_read(self, key: bytes) -> Optional[bytes]:
        raise NotImplementedError

    def storage_write(self, key: bytes, value: bytes) -> None:
        raise NotImplementedError

    def storage_has_key(self, key: bytes) -> bool:
        return self.storage_read(key) is not None


class MemoryContext(FaucetContext):
    """Dict-backed context, used by tests and local tooling."""

    def __init__(self, current_account_id: str, predecessor_account_id: Optional[str] = None):
        self.current_account_id = current_account_id
        self.predecessor_account_id = predecessor_account_id or current_account_id
        self.storage: Dict[bytes, bytes] = {}

    def sha256(self, data: bytes) -> bytes:
        return sha256(data)

    def storage_read(self, key: bytes) -> Optional[bytes]:
        return self.storage.get(key)

    def storage_write(self, key: bytes, value: bytes) -> None:
        self.storage[key] = value


# ---------------------------
# State
# ---------------------------
@dataclass
class FaucetState:
    transfer_amount: int
    min_difficulty: int
    num_hashes: int = 0

    def to_bytes(self) -> bytes:
        return json.dumps({
            "transfer_amount": str(self.transfer_amount),
            "min_difficulty": self.min_difficulty,
            "num_hashes": self.num_hashes,
        }, sort_keys=True).encode()

    @classmethod
    def from_bytes(cls, raw: bytes) -> "FaucetState":
        d = json.loads(raw)
        return cls(
            transfer_amount=int(d["transfer_amount"]),
            min_difficulty=int(d["min_difficulty"]),
            num_hashes=int(d["num_hashes"]),
        )


def load_state(ctx: FaucetContext) -> Optional[FaucetState]:
    """Return the persisted state, or None if the faucet was never initialized."""
    raw = ctx.storage_read(STATE_KEY)
    if raw is None:
        return None
    return FaucetState.from_bytes(raw)


class DedupStore:
    """Append-only set of accepted hashes stored under ``HASHES_PREFIX``."""

    def __init__(self, ctx: FaucetContext, state: FaucetState):
        self._ctx = ctx
        self._state = state

    def __len__(self) -> int:
        return self._state.num_hashes

    def __contains__(self, digest: bytes) -> bool:
        return self._ctx.storage_has_key(HASHES_PREFIX + digest)

    def check_and_insert(self, digest: bytes) -> bool:
        """Insert ``digest``; False if it was already a member (set unchanged)."""
        key = HASHES_PREFIX + digest
        if self._ctx.storage_has_key(key):
            return False
        self._ctx.storage_write(key, b"")
        self._state.num_hashes += 1
        return True


def assert_self(ctx: FaucetContext) -> None:
    if ctx.current_account_id != ctx.predecessor_account_id:
        raise Unauthorized()


# ---------------------------
# Contract
# ---------------------------
class TransferFaucet:
    def __init__(self, ctx: FaucetContext, state: FaucetState):
        self.ctx = ctx
        self.state = state
        self.existing_hashes = DedupStore(ctx, state)

    @classmethod
    def new(cls, ctx: FaucetContext, transfer_amount: int, min_difficulty: int) -> "TransferFaucet":
        if load_state(ctx) is not None:
            raise AlreadyInitialized()
        faucet = cls(ctx, FaucetState(transfer_amount=transfer_amount, min_difficulty=min_difficulty))
        faucet.save()
        return faucet

    @classmethod
    def load(cls, ctx: FaucetContext) -> "TransferFaucet":
        state = load_state(ctx)
        if state is None:
            raise NotInitialized()
        return cls(ctx, state)

    def save(self) -> None:
        self.ctx.storage_write(STATE_KEY, self.state.to_bytes())

    # Views

    def get_transfer_amount(self) -> int:
        return self.state.transfer_amount

    def get_min_difficulty(self) -> int:
        return self.state.min_difficulty

    def get_num_transfers(self) -> int:
        return len(self.existing_hashes)

    # Public change methods

    def request_transfer(self, account_id: str, salt: int) -> TransferAction:
        # Checking proof of work
        digest = self.ctx.sha256(proof_message(account_id, salt))
        if leading_zero_bits(digest) < self.state.min_difficulty:
            raise InsufficientProof()

        # Remember the hash; a hash is only ever good for one transfer
        if not self.existing_hashes.check_and_insert(digest):
            raise DuplicateProof()
        self.save()

        # The transfer may still fail later (e.g. account doesn't exist); the
        # faucet gets the refund back but the hash stays used.
        return TransferAction(receiver_id=account_id, amount=self.state.transfer_amount)

    # Owner's methods. Can only be called by the faucet account itself.

    def set_min_difficulty(self, min_difficulty: int) -> None:
        assert_self(self.ctx)
        self.state.min_difficulty = min_difficulty
        self.save()

    def set_transfer_amount(self, transfer_amount: int) -> None:
        assert_self(self.ctx)
        self.state.transfer_amount = transfer_amount
        self.save()

    def add_access_key(self, public_key: str) -> AddAccessKeyAction:
        key = parse_public_key(public_key)
        assert_self(self.ctx)
        return AddAccessKeyAction(
            receiver_id=self.ctx.current_account_id,
            public_key=str(key),
            allowance=0,
            method_receiver_id=self.ctx.current_account_id,
            method_names=[REQUEST_TRANSFER_METHOD],
        )
