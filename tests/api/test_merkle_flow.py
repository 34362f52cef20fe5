# tests/api/test_merkle_flow.py
"""Tests for committing assignment roots and claiming Oracles with proofs."""

from __future__ import annotations

import pytest
from fastapi import status

from oraclenet_identity.core.errors import UpstreamError
from oraclenet_identity.core.security import decode_access_token
from oraclenet_identity.models import Oracle
from oraclenet_identity.services.merkle import Assignment, MerkleTree
from tests.conftest import make_account, sign


@pytest.fixture()
def crab_bot():
    return make_account("oraclenet-test-crab-bot")


@pytest.fixture()
def fleet(bot, crab_bot) -> list[dict]:
    return [
        {"bot": bot.address, "oracle": "SHRIMP", "issue": 121, "github_repo": "org/oracle-v2"},
        {"bot": crab_bot.address, "oracle": "CRAB", "issue": 122},
    ]


def _tree(fleet: list[dict]) -> MerkleTree:
    return MerkleTree([Assignment.from_mapping(item) for item in fleet])


def _assign(client, human, fleet: list[dict], root: str | None = None, signer=None):
    root = root or _tree(fleet).root
    message = f"Assign bots under root {root}"
    return client.post(
        "/assign",
        json={
            "merkleRoot": root,
            "assignments": fleet,
            "signature": sign(signer or human, message),
            "message": message,
            "humanWallet": human.address,
        },
    )


def _claim_payload(bot, leaf: dict, fleet: list[dict]) -> dict:
    tree = _tree(fleet)
    message = f"Claim {leaf['oracle']}"
    return {
        "signature": sign(bot, message),
        "message": message,
        "botWallet": bot.address,
        "leaf": leaf,
        "proof": tree.proof_for(Assignment.from_mapping(leaf)),
        "merkleRoot": tree.root,
    }


class TestAssign:
    def test_unverified_human_is_refused(self, client, human, fleet) -> None:
        response = _assign(client, human, fleet)
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"] == "Human not verified. Run verify-github first."

    def test_assign_commits_root_and_indexes_bots(
        self, client, stores, verified_human, fleet, bot
    ) -> None:
        root = _tree(fleet).root
        response = _assign(client, verified_human, fleet)
        assert response.status_code == status.HTTP_200_OK, response.text
        assert response.json() == {
            "success": True,
            "merkleRoot": root,
            "bots": 2,
            "indexed": 2,
            "github_username": "nazt",
        }

        record = stores.roots.get_root(root)
        assert record is not None
        assert record.human_wallet == verified_human.address.lower()
        assert record.assignments[0]["github_repo"] == "org/oracle-v2"
        indexed = stores.roots.get_bot(bot.address)
        assert indexed is not None and indexed.oracle == "SHRIMP" and indexed.merkle_root == root

    def test_root_mismatch(self, client, verified_human, fleet) -> None:
        response = _assign(client, verified_human, fleet, root="0x" + "11" * 32)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"].startswith("Merkle root mismatch")

    def test_signature_must_come_from_human(self, client, verified_human, fleet, stranger) -> None:
        response = _assign(client, verified_human, fleet, signer=stranger)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"].startswith("Signature mismatch")

    def test_empty_assignments_rejected(self, client, verified_human) -> None:
        response = _assign(client, verified_human, [], root="0x" + "11" * 32)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_bot_index_failure_is_counted_not_fatal(
        self, client, stores, verified_human, fleet, monkeypatch
    ) -> None:
        def _broken_put_bot(bot_wallet, record):
            raise UpstreamError("State store write failed: down")

        monkeypatch.setattr(stores.roots, "put_bot", _broken_put_bot)
        response = _assign(client, verified_human, fleet)
        assert response.status_code == status.HTTP_200_OK, response.text
        assert response.json()["indexed"] == 0
        assert stores.roots.get_root(_tree(fleet).root) is not None


class TestClaim:
    def test_bot_claims_assigned_oracle(self, client, db_session, verified_human, fleet, bot) -> None:
        assert _assign(client, verified_human, fleet).status_code == status.HTTP_200_OK

        response = client.post("/claim", json=_claim_payload(bot, fleet[0], fleet))
        assert response.status_code == status.HTTP_200_OK, response.text
        data = response.json()
        assert data["created"] is True
        oracle = data["oracle"]
        assert oracle["name"] == "SHRIMP"
        assert oracle["bot_wallet"] == bot.address.lower()
        assert oracle["owner_wallet"] == verified_human.address.lower()
        assert oracle["github_username"] == "nazt"
        assert oracle["birth_issue"] == 121
        assert oracle["birth_repo"] == "org/oracle-v2"
        assert oracle["approved"] is True
        assert decode_access_token(data["token"])["wallet"] == bot.address.lower()

        again = client.post("/claim", json=_claim_payload(bot, fleet[0], fleet))
        assert again.json()["created"] is False
        assert db_session.query(Oracle).count() == 1

    def test_claim_attaches_to_oracle_from_verify_identity(
        self, client, db_session, verified_human, fleet, bot
    ) -> None:
        existing = Oracle(
            name="SHRIMP",
            owner_wallet=verified_human.address.lower(),
            birth_issue=121,
            birth_repo="org/oracle-v2",
        )
        db_session.add(existing)
        db_session.flush()
        _assign(client, verified_human, fleet)

        data = client.post("/claim", json=_claim_payload(bot, fleet[0], fleet)).json()
        assert data["created"] is False
        assert data["oracle"]["id"] == existing.id

    def test_unknown_root(self, client, fleet, bot) -> None:
        response = client.post("/claim", json=_claim_payload(bot, fleet[0], fleet))
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "Merkle root not found. Human must run assign first."

    def test_bot_outside_assignments(self, client, verified_human, fleet, stranger) -> None:
        _assign(client, verified_human, fleet)
        payload = _claim_payload(stranger, fleet[0], fleet)
        payload["botWallet"] = stranger.address
        response = client.post("/claim", json=payload)
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"] == "Bot not in this Merkle root assignments"

    def test_leaf_must_match_stored_assignment(self, client, verified_human, fleet, bot) -> None:
        _assign(client, verified_human, fleet)
        payload = _claim_payload(bot, fleet[0], fleet)
        payload["leaf"] = {**fleet[0], "oracle": "CRAB"}
        response = client.post("/claim", json=payload)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "Leaf data mismatch with stored assignment"

    def test_bot_cannot_use_another_bots_leaf(self, client, verified_human, fleet, bot) -> None:
        _assign(client, verified_human, fleet)
        payload = _claim_payload(bot, fleet[1], fleet)
        response = client.post("/claim", json=payload)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_invalid_proof(self, client, verified_human, fleet, bot) -> None:
        _assign(client, verified_human, fleet)
        payload = _claim_payload(bot, fleet[0], fleet)
        payload["proof"] = ["0x" + "00" * 32]
        response = client.post("/claim", json=payload)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "Invalid Merkle proof"

    def test_claim_requires_bot_signature(self, client, verified_human, fleet, bot, stranger) -> None:
        _assign(client, verified_human, fleet)
        payload = _claim_payload(bot, fleet[0], fleet)
        payload["signature"] = sign(stranger, payload["message"])
        response = client.post("/claim", json=payload)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"].startswith("Signature mismatch")

    def test_bot_moves_to_oracle_already_born_from_new_issue(
        self, client, db_session, verified_human, bot
    ) -> None:
        first = [{"bot": bot.address, "oracle": "SHRIMP", "issue": 121, "github_repo": "org/oracle-v2"}]
        assert _assign(client, verified_human, first).status_code == status.HTTP_200_OK
        claimed = client.post("/claim", json=_claim_payload(bot, first[0], first))
        previous_id = claimed.json()["oracle"]["id"]

        born = Oracle(
            name="PRAWN",
            owner_wallet=verified_human.address.lower(),
            birth_issue=122,
            birth_repo="org/oracle-v2",
        )
        db_session.add(born)
        db_session.flush()

        second = [{"bot": bot.address, "oracle": "PRAWN", "issue": 122, "github_repo": "org/oracle-v2"}]
        assert _assign(client, verified_human, second).status_code == status.HTTP_200_OK
        response = client.post("/claim", json=_claim_payload(bot, second[0], second))
        assert response.status_code == status.HTTP_200_OK, response.text
        data = response.json()
        assert data["created"] is False
        assert data["oracle"]["id"] == born.id
        assert data["oracle"]["bot_wallet"] == bot.address.lower()

        db_session.expire_all()
        assert db_session.get(Oracle, previous_id).bot_wallet is None

    def test_oracle_born_from_issue_keeps_its_own_bot(
        self, client, db_session, verified_human, bot, stranger
    ) -> None:
        first = [{"bot": bot.address, "oracle": "SHRIMP", "issue": 121, "github_repo": "org/oracle-v2"}]
        _assign(client, verified_human, first)
        client.post("/claim", json=_claim_payload(bot, first[0], first))
        db_session.add(
            Oracle(
                name="PRAWN",
                bot_wallet=stranger.address.lower(),
                birth_issue=122,
                birth_repo="org/oracle-v2",
            )
        )
        db_session.flush()

        second = [{"bot": bot.address, "oracle": "PRAWN", "issue": 122, "github_repo": "org/oracle-v2"}]
        _assign(client, verified_human, second)
        response = client.post("/claim", json=_claim_payload(bot, second[0], second))
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"] == "Oracle PRAWN is already bound to a different bot wallet"
