# faucet_models.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

U32_MAX = 2 ** 32 - 1
U64_MAX = 2 ** 64 - 1
U128_MAX = 2 ** 128 - 1


# Input models
# u128 amounts travel as decimal strings.
class NewIn(BaseModel):
    transfer_amount: str
    min_difficulty: int = Field(ge=0, le=U32_MAX)


class RequestTransferIn(BaseModel):
    account_id: str
    salt: int = Field(ge=0, le=U64_MAX)


class SetMinDifficultyIn(BaseModel):
    min_difficulty: int = Field(ge=0, le=U32_MAX)


class SetTransferAmountIn(BaseModel):
    transfer_amount: str


class AddAccessKeyIn(BaseModel):
    public_key: str


# Output models
class OkOut(BaseModel):
    ok: bool


class TransferAmountOut(BaseModel):
    transfer_amount: str


class MinDifficultyOut(BaseModel):
    min_difficulty: int


class NumTransfersOut(BaseModel):
    num_transfers: int


class ActionOut(BaseModel):
    action_id: int
    created_at: int
    kind: str
    receiver_id: str
    payload: Dict[str, Any]
    status: str
    result: Optional[str] = None
    error: Optional[str] = None


class ConfigOut(BaseModel):
    contract_account_id: str
    transfer_amount: str
    transfer_amount_tokens: float
    min_difficulty: int
    num_transfers: int
    message_format: str
    access_key_methods: List[str]
