import json

import pytest
from fastapi import HTTPException

from conftest import FAUCET, ONE_NEAR, find_salt, weak_salt
from transfer_faucet import app as app_mod
from transfer_faucet.contract import HASHES_PREFIX, TransferFaucet
from transfer_faucet.errors import DuplicateProof
from transfer_faucet.faucet_store import SqliteContext, db

TRANSFER_AMOUNT = 100 * ONE_NEAR
GOOD_KEY = "ed25519:CFsEoaPizaj2uPP5StphygRTVugh1anqG8JpiGzpFHs"


@pytest.fixture
def initialized(client, owner_headers):
    r = client.post(
        "/new",
        json={"transfer_amount": str(TRANSFER_AMOUNT), "min_difficulty": 5},
        headers=owner_headers,
    )
    assert r.status_code == 200, r.text
    return client


@pytest.mark.parametrize("path", ["/transfer_amount", "/min_difficulty", "/num_transfers", "/config"])
def test_views_before_new(client, path):
    r = client.get(path)
    assert r.status_code == 409
    assert r.json()["detail"] == "Faucet is not initialized yet"


def test_request_transfer_before_new(client):
    r = client.post("/request_transfer", json={"account_id": "test.alice", "salt": 0})
    assert r.status_code == 409


def test_new_requires_owner(client):
    r = client.post("/new", json={"transfer_amount": "1", "min_difficulty": 5})
    assert r.status_code == 403
    assert client.get("/min_difficulty").status_code == 409


def test_new_twice_keeps_state(initialized, owner_headers):
    r = initialized.post(
        "/new", json={"transfer_amount": "1", "min_difficulty": 1}, headers=owner_headers
    )
    assert r.status_code == 409
    assert r.json()["detail"] == "Already initialized"
    assert initialized.get("/transfer_amount").json() == {"transfer_amount": str(TRANSFER_AMOUNT)}
    assert initialized.get("/min_difficulty").json() == {"min_difficulty": 5}


@pytest.mark.parametrize("amount", ["-1", "1e24", "abc", "", str(2 ** 128)])
def test_new_rejects_bad_u128(client, owner_headers, amount):
    r = client.post("/new", json={"transfer_amount": amount, "min_difficulty": 5}, headers=owner_headers)
    assert r.status_code == 400


def test_config(initialized):
    cfg = initialized.get("/config").json()
    assert cfg["contract_account_id"] == FAUCET
    assert cfg["transfer_amount"] == str(TRANSFER_AMOUNT)
    assert cfg["transfer_amount_tokens"] == 100.0
    assert cfg["min_difficulty"] == 5
    assert cfg["num_transfers"] == 0
    assert cfg["access_key_methods"] == ["request_transfer"]


def test_request_transfer_end_to_end(initialized, tmp_path):
    salt = find_salt("test.alice", 5)

    r = initialized.post("/request_transfer", json={"account_id": "test.alice", "salt": salt})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["kind"] == "transfer"
    assert body["receiver_id"] == "test.alice"
    assert body["payload"] == {"amount": str(TRANSFER_AMOUNT)}
    assert body["status"] == "pending"
    assert initialized.get("/num_transfers").json() == {"num_transfers": 1}

    r = initialized.post("/request_transfer", json={"account_id": "test.alice", "salt": salt})
    assert r.status_code == 409
    assert r.json()["detail"] == "The given hash is already used for transfer"
    assert initialized.get("/num_transfers").json() == {"num_transfers": 1}

    pending = initialized.get("/pending_actions").json()
    assert len(pending) == 1
    assert pending[0]["action_id"] == body["action_id"]

    lines = (tmp_path / "actions.jsonl").read_text().splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["receiver_id"] == "test.alice"


def test_request_transfer_weak_proof(initialized):
    salt = weak_salt("test.alice", 5)
    r = initialized.post("/request_transfer", json={"account_id": "test.alice", "salt": salt})
    assert r.status_code == 400
    assert initialized.get("/num_transfers").json() == {"num_transfers": 0}
    assert initialized.get("/pending_actions").json() == []


@pytest.mark.parametrize("salt", [-1, 2 ** 64])
def test_request_transfer_rejects_salt_outside_u64(initialized, salt):
    r = initialized.post("/request_transfer", json={"account_id": "test.alice", "salt": salt})
    assert r.status_code == 422


@pytest.mark.parametrize(
    "path, body",
    [
        ("/set_min_difficulty", {"min_difficulty": 1}),
        ("/set_transfer_amount", {"transfer_amount": "1"}),
        ("/add_access_key", {"public_key": GOOD_KEY}),
    ],
)
def test_owner_methods_reject_other_callers(initialized, path, body):
    for headers in ({}, {"Authorization": "Bearer wrong-token"}):
        r = initialized.post(path, json=body, headers=headers)
        assert r.status_code == 403
        assert r.json()["detail"] == "Can only be called by owner"
    assert initialized.get("/min_difficulty").json() == {"min_difficulty": 5}
    assert initialized.get("/transfer_amount").json() == {"transfer_amount": str(TRANSFER_AMOUNT)}
    assert initialized.get("/pending_actions").json() == []


def test_owner_setters(initialized, owner_headers):
    r = initialized.post("/set_min_difficulty", json={"min_difficulty": 12}, headers=owner_headers)
    assert r.status_code == 200
    r = initialized.post("/set_transfer_amount", json={"transfer_amount": "0"}, headers=owner_headers)
    assert r.status_code == 200
    assert initialized.get("/min_difficulty").json() == {"min_difficulty": 12}
    assert initialized.get("/transfer_amount").json() == {"transfer_amount": "0"}


def test_add_access_key(initialized, owner_headers):
    r = initialized.post("/add_access_key", json={"public_key": GOOD_KEY}, headers=owner_headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["kind"] == "add_access_key"
    assert body["receiver_id"] == FAUCET
    assert body["payload"] == {
        "public_key": GOOD_KEY,
        "allowance": "0",
        "method_receiver_id": FAUCET,
        "method_names": ["request_transfer"],
    }


def test_bad_public_key(initialized, owner_headers):
    r = initialized.post(
        "/add_access_key", json={"public_key": "ed25519:CFsEoaPTVugh1anqG8JpiGzpFHs"}, headers=owner_headers
    )
    assert r.status_code == 400
    assert initialized.get("/pending_actions").json() == []


def test_failed_call_rolls_back_every_write(initialized):
    digest = bytes(32)

    def call(ctx):
        ctx.storage_write(HASHES_PREFIX + digest, b"")
        raise DuplicateProof()

    with pytest.raises(HTTPException) as exc:
        app_mod.run_call("bob", call)
    assert exc.value.status_code == 409

    con = db(app_mod.DB_PATH)
    try:
        ctx = SqliteContext(con, FAUCET, "bob")
        assert not ctx.storage_has_key(HASHES_PREFIX + digest)
        assert TransferFaucet.load(ctx).get_num_transfers() == 0
    finally:
        con.close()
