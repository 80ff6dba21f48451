# errors.py
"""
Error kinds raised by the faucet contract.

Every error aborts the whole call: the HTTP boundary rolls back the sqlite
transaction and turns the error into an HTTPException with ``status_code``
and ``message`` as the detail.
"""
from dataclasses import dataclass


@dataclass(eq=False)
class FaucetError(Exception):
    message: str
    status_code: int = 400
    code: str = "faucet_error"

    def __post_init__(self) -> None:
        super().__init__(self.message)


class NotInitialized(FaucetError):
    def __init__(self, message: str = "Faucet is not initialized yet"):
        super().__init__(message, 409, "not_initialized")


class AlreadyInitialized(FaucetError):
    def __init__(self, message: str = "Already initialized"):
        super().__init__(message, 409, "already_initialized")


class InsufficientProof(FaucetError):
    def __init__(self, message: str = "The proof of work is too weak"):
        super().__init__(message, 400, "insufficient_proof")


class DuplicateProof(FaucetError):
    def __init__(self, message: str = "The given hash is already used for transfer"):
        super().__init__(message, 409, "duplicate_proof")


class Unauthorized(FaucetError):
    def __init__(self, message: str = "Can only be called by owner"):
        super().__init__(message, 403, "unauthorized")


class InvalidCredentialEncoding(FaucetError):
    def __init__(self, message: str = "invalid public key"):
        super().__init__(message, 400, "invalid_credential_encoding")
