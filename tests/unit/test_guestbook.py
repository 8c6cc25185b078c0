"""
Unit tests for the Auth47-gated guestbook.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from bip47_terminal.auth47 import Proof
from bip47_terminal.database import Database
from bip47_terminal.guestbook import Guestbook, GuestbookError, GuestbookRepository
from bip47_terminal.paynym import PaynymClient
from conftest import fake_response


@pytest.fixture
def database():
    db = Database("sqlite:///:memory:")
    yield db
    db.close()


@pytest.fixture
def paynym():
    session = MagicMock()
    session.post.return_value = fake_response(
        200, json.dumps({"nymName": "+tester", "codes": [{"code": "PM8Ttester"}]})
    )
    return PaynymClient("https://paynym.example", session=session)


@pytest.fixture
def guestbook(auth47, database, paynym):
    return Guestbook(auth47.store, GuestbookRepository(database), paynym, max_message_length=20)


@pytest.fixture
def signed_in(auth47, wallet):
    """A redeemed challenge plus the matching submission body."""
    issued = auth47.issue()
    proof = wallet.proof(issued.uri)
    assert auth47.redeem(Proof.from_mapping(proof)).ok
    return {
        "nonce": issued.nonce,
        "message": "gm from the terminal",
        "challenge": proof["challenge"],
        "signature": proof["signature"],
        "nym": proof["nym"],
    }


class TestSubmit:
    def test_submit_persists_and_consumes(self, guestbook, signed_in, auth47):
        entry = guestbook.submit(signed_in)

        assert entry["message"] == "gm from the terminal"
        assert entry["paymentCode"] == signed_in["nym"]
        assert entry["nymName"] == "+tester"
        assert entry["nymAvatar"] == "https://paynym.example/PM8Ttester/avatar"
        assert entry["verified"] is True
        assert auth47.status(signed_in["nonce"]) == {"status": "invalid"}
        assert [m["id"] for m in guestbook.messages()] == [entry["id"]]

    def test_submit_is_one_shot(self, guestbook, signed_in):
        guestbook.submit(signed_in)

        with pytest.raises(GuestbookError) as exc:
            guestbook.submit(signed_in)

        assert exc.value.status_code == 401

    def test_missing_fields(self, guestbook, signed_in):
        del signed_in["signature"]

        with pytest.raises(GuestbookError, match="Missing required fields") as exc:
            guestbook.submit(signed_in)

        assert exc.value.status_code == 400

    def test_message_too_long(self, guestbook, signed_in):
        signed_in["message"] = "x" * 21

        with pytest.raises(GuestbookError, match="exceeds 20 characters"):
            guestbook.submit(signed_in)

    def test_pending_challenge_rejected(self, guestbook, auth47, wallet):
        issued = auth47.issue()
        proof = wallet.proof(issued.uri)

        with pytest.raises(GuestbookError) as exc:
            guestbook.submit({"nonce": issued.nonce, "message": "hi", **proof})

        assert exc.value.status_code == 401

    def test_mismatched_proof_keeps_authentication(self, guestbook, signed_in, other_wallet):
        forged = dict(signed_in, nym=other_wallet.payment_code)

        with pytest.raises(GuestbookError) as exc:
            guestbook.submit(forged)
        assert exc.value.status_code == 401

        assert guestbook.submit(signed_in)["paymentCode"] == signed_in["nym"]

    def test_database_failure_releases_claim(self, guestbook, signed_in, auth47):
        with patch.object(guestbook.repository, "add", side_effect=OperationalError("INSERT", {}, Exception("locked"))):
            with pytest.raises(GuestbookError) as exc:
                guestbook.submit(signed_in)

        assert exc.value.status_code == 500
        assert auth47.status(signed_in["nonce"])["status"] == "verified"
        assert guestbook.submit(signed_in)["nonce"] == signed_in["nonce"]

    def test_unexpected_failure_releases_claim(self, guestbook, signed_in, auth47, clock):
        with patch.object(guestbook.repository, "add", side_effect=RuntimeError("driver crashed")):
            with pytest.raises(RuntimeError):
                guestbook.submit(signed_in)

        assert auth47.store.get(signed_in["nonce"]).consuming is False

        clock.advance(10_000)
        auth47.store.sweep()

        assert auth47.store.get(signed_in["nonce"]) is None

    def test_unavailable_without_repository(self, auth47, paynym, signed_in):
        guestbook = Guestbook(auth47.store, None, paynym)

        with pytest.raises(GuestbookError) as exc:
            guestbook.submit(signed_in)
        assert exc.value.status_code == 503

        with pytest.raises(GuestbookError):
            guestbook.messages()


class TestMessages:
    def test_messages_lists_every_entry(self, guestbook, auth47, wallet):
        for text in ("first", "second"):
            issued = auth47.issue()
            proof = wallet.proof(issued.uri)
            auth47.redeem(Proof.from_mapping(proof))
            guestbook.submit({"nonce": issued.nonce, "message": text, **proof})

        messages = [m["message"] for m in guestbook.messages()]

        assert sorted(messages) == ["first", "second"]
