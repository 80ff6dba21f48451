from __future__ import annotations
import hmac
import os
import time
from typing import Any, Callable, List, Optional, Tuple

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from transfer_faucet import actions
from transfer_faucet.contract import REQUEST_TRANSFER_METHOD, FaucetContext, TransferFaucet
from transfer_faucet.errors import FaucetError
from transfer_faucet.faucet_models import (
    U128_MAX,
    ActionOut,
    AddAccessKeyIn,
    ConfigOut,
    MinDifficultyOut,
    NewIn,
    NumTransfersOut,
    OkOut,
    RequestTransferIn,
    SetMinDifficultyIn,
    SetTransferAmountIn,
    TransferAmountOut,
)
from transfer_faucet.faucet_store import SqliteContext, db, init_db

# Load environment variables from .env file
load_dotenv()

# ---------------------------
# Config
# ---------------------------
DB_PATH = os.getenv("FAUCET_DB", "faucet.db")

# Account the faucet runs as; privileged methods must be called "from" it.
FAUCET_ACCOUNT_ID = os.getenv("FAUCET_ACCOUNT_ID", "token-printer")

# Bearer token that makes an HTTP caller act as FAUCET_ACCOUNT_ID.
# Empty means no HTTP caller is ever the owner.
FAUCET_OWNER_TOKEN = os.getenv("FAUCET_OWNER_TOKEN", "")

# Caller identity for everyone without the owner token
ANONYMOUS_PREDECESSOR = os.getenv("ANONYMOUS_PREDECESSOR", "anonymous")

# Decimals of the faucet asset (NEAR: 1 token = 10**24 units); display only.
TOKEN_DECIMALS = int(os.getenv("TOKEN_DECIMALS", "24"))

# JSON lines audit log of every scheduled action
ACTION_LOG_FILE = os.getenv("ACTION_LOG_FILE", "actions.jsonl")

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://127.0.0.1:8080,http://localhost:8080").split(",")
    if o.strip()
]


def now_unix() -> int:
    return int(time.time())


def consteq(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode(), b.encode())


def parse_u128(s: str, name: str) -> int:
    s = (s or "").strip()
    if not s or not (s.isascii() and s.isdigit()):
        raise HTTPException(status_code=400, detail=f"{name} must be a decimal u128 string")
    v = int(s)
    if v > U128_MAX:
        raise HTTPException(status_code=400, detail=f"{name} exceeds u128")
    return v


# ---------------------------
# Calls into the contract
# ---------------------------
def caller_account(req: Request) -> str:
    # Header: Authorization: Bearer <FAUCET_OWNER_TOKEN> → self-call
    auth = req.headers.get("authorization", "")
    if FAUCET_OWNER_TOKEN and auth.lower().startswith("bearer "):
        token = auth.split(" ", 1)[1].strip()
        if token and consteq(token, FAUCET_OWNER_TOKEN):
            return FAUCET_ACCOUNT_ID
    return ANONYMOUS_PREDECESSOR


def run_call(predecessor: str, fn: Callable[[FaucetContext], Any]) -> Tuple[Any, Optional[int], int]:
    """
    Run one contract call as a single sqlite transaction.

    Commits state changes and the scheduled action (if ``fn`` returns one)
    together; any error rolls back everything the call did.
    Returns (result, action_id, ts).
    """
    ts = now_unix()
    con = db(DB_PATH)
    try:
        con.execute("BEGIN IMMEDIATE;")
        try:
            ctx = SqliteContext(con, FAUCET_ACCOUNT_ID, predecessor)
            result = fn(ctx)
            action_id = None
            if isinstance(result, (actions.TransferAction, actions.AddAccessKeyAction)):
                action_id = actions.enqueue_action(con, result, ts)
            con.execute("COMMIT;")
        except FaucetError as e:
            con.execute("ROLLBACK;")
            print(f"[faucet] rejected code={e.code} caller={predecessor}: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)
        except Exception:
            con.execute("ROLLBACK;")
            raise
    finally:
        con.close()

    if action_id is not None:
        actions.append_action_jsonl(ACTION_LOG_FILE, action_id, ts, result)
    return result, action_id, ts


def view_call(fn: Callable[[TransferFaucet], Any]) -> Any:
    con = db(DB_PATH)
    try:
        ctx = SqliteContext(con, FAUCET_ACCOUNT_ID, ANONYMOUS_PREDECESSOR)
        return fn(TransferFaucet.load(ctx))
    except FaucetError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    finally:
        con.close()


def scheduled_out(action: actions.Action, action_id: int, ts: int) -> ActionOut:
    return ActionOut(
        action_id=action_id,
        created_at=ts,
        kind=action.kind,
        receiver_id=action.receiver_id,
        payload=action.payload(),
        status="pending",
    )


# ---------------------------
# App
# ---------------------------
app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _startup():
    init_db(DB_PATH)
    if not FAUCET_OWNER_TOKEN:
        print("[faucet] FAUCET_OWNER_TOKEN not set; owner methods are disabled over HTTP.")
    print(f"[faucet] account={FAUCET_ACCOUNT_ID} db={DB_PATH}")


@app.post("/new", response_model=OkOut)
def new(data: NewIn, req: Request):
    """Initialize the faucet once. Only the faucet account itself may deploy it."""
    predecessor = caller_account(req)
    if predecessor != FAUCET_ACCOUNT_ID:
        raise HTTPException(status_code=403, detail="Can only be called by owner")
    amount = parse_u128(data.transfer_amount, "transfer_amount")

    run_call(predecessor, lambda ctx: TransferFaucet.new(ctx, amount, data.min_difficulty))
    print(f"[faucet] initialized transfer_amount={amount} min_difficulty={data.min_difficulty}")
    return OkOut(ok=True)


@app.get("/transfer_amount", response_model=TransferAmountOut)
def get_transfer_amount():
    return TransferAmountOut(transfer_amount=str(view_call(lambda f: f.get_transfer_amount())))


@app.get("/min_difficulty", response_model=MinDifficultyOut)
def get_min_difficulty():
    return MinDifficultyOut(min_difficulty=view_call(lambda f: f.get_min_difficulty()))


@app.get("/num_transfers", response_model=NumTransfersOut)
def get_num_transfers():
    return NumTransfersOut(num_transfers=view_call(lambda f: f.get_num_transfers()))


@app.get("/config", response_model=ConfigOut)
def get_config():
    """
    Public parameters for provers, so clients don't hardcode the difficulty.
    """
    amount, difficulty, num = view_call(
        lambda f: (f.get_transfer_amount(), f.get_min_difficulty(), f.get_num_transfers())
    )
    return ConfigOut(
        contract_account_id=FAUCET_ACCOUNT_ID,
        transfer_amount=str(amount),
        transfer_amount_tokens=amount / (10 ** TOKEN_DECIMALS),
        min_difficulty=difficulty,
        num_transfers=num,
        message_format="sha256(utf8(account_id) || ':' || u64_le(salt))",
        access_key_methods=[REQUEST_TRANSFER_METHOD],
    )


@app.post("/request_transfer", response_model=ActionOut)
def request_transfer(data: RequestTransferIn, req: Request):
    account_id = data.account_id.strip()
    if not account_id:
        raise HTTPException(status_code=400, detail="missing account_id")

    action, action_id, ts = run_call(
        caller_account(req),
        lambda ctx: TransferFaucet.load(ctx).request_transfer(account_id, data.salt),
    )
    print(f"[faucet] transfer scheduled id={action_id} to={account_id} amount={action.amount}")
    return scheduled_out(action, action_id, ts)


# ---------------------------
# Owner methods
# ---------------------------
@app.post("/set_min_difficulty", response_model=OkOut)
def set_min_difficulty(data: SetMinDifficultyIn, req: Request):
    run_call(
        caller_account(req),
        lambda ctx: TransferFaucet.load(ctx).set_min_difficulty(data.min_difficulty),
    )
    print(f"[faucet] min_difficulty={data.min_difficulty}")
    return OkOut(ok=True)


@app.post("/set_transfer_amount", response_model=OkOut)
def set_transfer_amount(data: SetTransferAmountIn, req: Request):
    amount = parse_u128(data.transfer_amount, "transfer_amount")
    run_call(
        caller_account(req),
        lambda ctx: TransferFaucet.load(ctx).set_transfer_amount(amount),
    )
    print(f"[faucet] transfer_amount={amount}")
    return OkOut(ok=True)


@app.post("/add_access_key", response_model=ActionOut)
def add_access_key(data: AddAccessKeyIn, req: Request):
    action, action_id, ts = run_call(
        caller_account(req),
        lambda ctx: TransferFaucet.load(ctx).add_access_key(data.public_key),
    )
    print(f"[faucet] access key scheduled id={action_id} key={action.public_key}")
    return scheduled_out(action, action_id, ts)


@app.get("/pending_actions", response_model=List[ActionOut])
def pending_actions(status: Optional[str] = None, limit: int = 50):
    """Most recent scheduled actions, newest first."""
    con = db(DB_PATH)
    try:
        return [ActionOut(**a) for a in actions.fetch_actions(con, status=status, limit=limit)]
    finally:
        con.close()
