# keys.py
# Text-encoded public keys: "<curve>:<base58 bytes>", curve defaults to ed25519.
from dataclasses import dataclass

import base58

from transfer_faucet.errors import InvalidCredentialEncoding

KEY_LENGTHS = {
    "ed25519": 32,
    "secp256k1": 64,
}


@dataclass(frozen=True)
class PublicKey:
    curve: str
    data: bytes

    def __str__(self) -> str:
        return f"{self.curve}:{base58.b58encode(self.data).decode()}"


def parse_public_key(s: str) -> PublicKey:
    """Decode and validate a text public key, raising InvalidCredentialEncoding."""
    s = (s or "").strip()
    if ":" in s:
        curve, body = s.split(":", 1)
        curve = curve.strip().lower()
    else:
        curve, body = "ed25519", s

    expected = KEY_LENGTHS.get(curve)
    if expected is None:
        raise InvalidCredentialEncoding(f"unknown key type '{curve}'")
    if not body:
        raise InvalidCredentialEncoding("empty key data")

    try:
        data = base58.b58decode(body)
    except ValueError as e:
        raise InvalidCredentialEncoding(f"bad base58 key data: {e}") from e

    if len(data) != expected:
        raise InvalidCredentialEncoding(
            f"invalid {curve} key length: expected {expected} bytes, got {len(data)}"
        )
    return PublicKey(curve=curve, data=data)
