"""
End-to-end Auth47 flow tests

Drives the full browser + wallet round trip over HTTP:
- Challenge issuance with a real QR encoder
- Wallet callback redemption and status polling
- Direct verification and replay protection
- Guestbook submission gated on a verified challenge
"""

import base64
import json
import time

import pytest

from bip47_terminal.factory import create_app
from conftest import CALLBACK_URL, fake_response


@pytest.fixture
def live_app(test_config):
    """Application with the default Auth47 bundle (real clock, real QR codes)."""
    app = create_app(test_config)
    yield app
    app.extensions["database"].close()


class TestWalletFlow:
    """Browser shows a QR code, wallet posts to the callback, browser polls."""

    def test_full_round_trip_with_real_qr(self, live_app, wallet):
        client = live_app.test_client()

        # Arrange
        issued = client.get("/start-auth").get_json()
        png = base64.b64decode(issued["qr"].split(",", 1)[1])
        assert png.startswith(b"\x89PNG")
        assert client.get(f"/check-auth/{issued['nonce']}").get_json() == {"status": "pending"}

        # Act
        response = client.post("/callback", json=wallet.proof(issued["uri"]))

        # Assert
        assert response.status_code == 302
        status = client.get(f"/check-auth/{issued['nonce']}").get_json()
        assert status["status"] == "verified"
        assert status["paymentCode"] == wallet.payment_code

    def test_callback_then_verify_is_replay(self, client, wallet):
        issued = client.get("/start-auth").get_json()
        proof = wallet.proof(issued["uri"])
        client.post("/callback", json=proof)

        response = client.post("/verify", json=proof)

        assert response.status_code == 400
        assert response.get_json()["code"] == "nonce_already_used"

    def test_form_encoded_callback(self, client, wallet):
        issued = client.get("/start-auth").get_json()

        response = client.post("/callback", data=wallet.proof(issued["uri"]))

        assert response.status_code == 302
        assert client.get(f"/check-auth/{issued['nonce']}").get_json()["status"] == "verified"


class TestChallengeLifetime:
    """The issue / redeem / replay / sweep timeline over HTTP."""

    def test_timeline(self, client, wallet, clock):
        issued = client.get("/start-auth").get_json()
        proof = wallet.proof(issued["uri"])
        assert issued["uri"].endswith(f"?c={CALLBACK_URL}&e={issued['expiry']}")

        clock.advance(290)
        assert client.post("/verify", json=proof).status_code == 200

        clock.advance(1)
        assert client.post("/verify", json=proof).get_json()["code"] == "nonce_already_used"

        clock.advance(10)
        client.get("/start-auth")
        assert client.post("/verify", json=proof).get_json()["code"] == "unknown_nonce"
        assert client.get(f"/check-auth/{issued['nonce']}").get_json() == {"status": "invalid"}

    def test_health_tracks_sweep(self, client, clock):
        client.get("/start-auth")
        clock.advance(301)
        client.get("/start-auth")

        data = client.get("/health").get_json()

        assert data["pendingAuths"] == 1

    def test_configured_lifetime_reaches_default_bundle(self, test_config, wallet):
        app = create_app({**test_config, "CHALLENGE_TTL": 600, "CHALLENGE_RETENTION": 600})
        client = app.test_client()
        auth = app.extensions["auth47"]

        issued = client.get("/start-auth").get_json()
        response = client.post("/verify", json=wallet.proof(issued["uri"]))

        assert auth.store.retention == 600
        assert auth.issuer.ttl == 600
        assert 599 <= issued["expiry"] - int(time.time()) <= 600
        assert response.status_code == 200
        app.extensions["database"].close()


class TestGuestbookFlow:
    """Sign in with Auth47, then leave a message."""

    def test_sign_in_and_post(self, client, wallet, paynym_session):
        # Arrange
        paynym_session.post.return_value = fake_response(
            200, json.dumps({"nymName": "+wallet", "codes": [{"code": wallet.payment_code}]})
        )
        issued = client.get("/start-auth").get_json()
        client.post("/callback", json=wallet.proof(issued["uri"]))
        status = client.get(f"/check-auth/{issued['nonce']}").get_json()

        # Act
        response = client.post(
            "/api/guestbook/submit",
            json={
                "nonce": issued["nonce"],
                "message": "  hello from a payment code  ",
                "challenge": status["challenge"],
                "signature": status["signature"],
                "nym": status["nym"],
            },
        )

        # Assert
        assert response.status_code == 200
        entry = response.get_json()["data"]
        assert entry["message"] == "hello from a payment code"
        assert entry["nymName"] == "+wallet"
        assert entry["nymAvatar"].endswith(f"/{wallet.payment_code}/avatar")
        assert client.get(f"/check-auth/{issued['nonce']}").get_json() == {"status": "invalid"}

    def test_guestbook_disabled_without_database(self, test_config, auth47):
        test_config["DATABASE_URL"] = None
        app = create_app(test_config, auth47=auth47)
        client = app.test_client()

        assert client.get("/api/guestbook/messages").status_code == 503
        assert client.get("/health").get_json()["database"]["status"] == "disabled"
