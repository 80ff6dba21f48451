# pow_utils.py
import hashlib
import time
from typing import Callable, Tuple

MAX_SALT = 2 ** 64 - 1


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def leading_zero_bits(digest: bytes) -> int:
    """Count leading zero bits in a hash digest.

    Each byte adds its own leading-zero count; the scan stops right after
    the first byte that is not all zeros.
    """
    bits = 0
    for byte in digest:
        zeros = 8 - byte.bit_length()
        bits += zeros
        if zeros < 8:
            break
    return bits


def proof_message(account_id: str, salt: int) -> bytes:
    """Build account_id + ':' + salt as 8 little-endian bytes."""
    if salt < 0 or salt > MAX_SALT:
        raise ValueError(f"salt out of u64 range: {salt}")
    return account_id.encode("utf-8") + b":" + salt.to_bytes(8, "little")


def pow_hash(account_id: str, salt: int, digest_fn: Callable[[bytes], bytes] = sha256) -> bytes:
    """Compute H(account_id ':' salt_le64)."""
    return digest_fn(proof_message(account_id, salt))


def pow_ok(account_id: str, salt: int, bits: int, digest_fn: Callable[[bytes], bytes] = sha256) -> bool:
    """Verify that H(account_id ':' salt_le64) has >= bits leading zero bits."""
    return leading_zero_bits(pow_hash(account_id, salt, digest_fn)) >= bits


def solve_pow(
    account_id: str,
    bits: int,
    salt_start: int = 0,
    report_every: int = 250_000,
    verbose: bool = True,
) -> Tuple[int, int]:
    """
    Find a salt such that sha256(account_id + ':' + salt_le64) has >= bits
    leading zero bits. Returns (salt, tries).

    Salts wrap around at 2**64 like the 8-byte counter they encode.
    """
    prefix = account_id.encode("utf-8") + b":"
    salt = salt_start & MAX_SALT
    tries = 0
    best = 0
    t0 = time.time()

    while True:
        digest = hashlib.sha256(prefix + salt.to_bytes(8, "little")).digest()
        tries += 1
        zeros = leading_zero_bits(digest)

        if zeros >= bits:
            if verbose:
                dt = time.time() - t0
                rate = tries / dt if dt > 0 else 0
                print(
                    f"[pow] solved bits={bits} salt={salt} "
                    f"tries={tries} time={dt:.2f}s rate={rate:,.0f}/s"
                )
            return salt, tries

        if zeros > best:
            best = zeros
            if verbose:
                print(f"[pow] progress {best * 100 // max(bits, 1)}% best={best}/{bits} tries={tries}")

        salt = (salt + 1) & MAX_SALT
        if verbose and report_every and (tries % report_every == 0):
            dt = time.time() - t0
            rate = tries / dt if dt > 0 else 0
            print(f"[pow] tries={tries} rate={rate:,.0f}/s (bits={bits})")
