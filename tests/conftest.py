"""
Pytest configuration and shared fixtures for BIP47 Terminal tests.
"""

import hashlib
import hmac
import os
from unittest.mock import MagicMock

import pytest

# Set test environment before importing app
os.environ["FLASK_ENV"] = "testing"
os.environ["FLASK_SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CALLBACK_URL"] = "http://localhost:3000/callback"
os.environ["CHALLENGE_SWEEP_INTERVAL"] = "0"

from coincurve import PrivateKey  # noqa: E402

from bip47_terminal.auth47 import Auth47  # noqa: E402
from bip47_terminal.bip47 import encode_payment_code  # noqa: E402
from bip47_terminal.signing import sign_message  # noqa: E402

CALLBACK_URL = "http://localhost:3000/callback"
START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = START_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Wallet:
    """Plays the BIP47 wallet: owns a payment code and signs Auth47 challenges."""

    def __init__(self, secret: bytes = b"\x11" * 32, chaincode: bytes = b"\x22" * 32):
        self.master = PrivateKey(secret)
        self.chaincode = chaincode
        pubkey = self.master.public_key.format(compressed=True)
        self.payment_code = encode_payment_code(pubkey, chaincode)

        tweak = hmac.new(chaincode, pubkey + (0).to_bytes(4, "big"), hashlib.sha512).digest()[:32]
        self.notification_key = self.master.add(tweak)

    def sign(self, challenge: str) -> str:
        return sign_message(challenge, self.notification_key)

    def proof(self, challenge: str) -> dict:
        return {
            "auth47_response": "1.0",
            "challenge": challenge,
            "nym": self.payment_code,
            "signature": self.sign(challenge),
        }


def fake_qr(uri: str) -> str:
    return f"data:image/png;base64,{uri}"


def fake_response(status_code=200, text="", reason="OK"):
    """Minimal stand-in for ``requests.Response``."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.ok = 200 <= status_code < 400
    resp.reason = reason
    return resp


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wallet():
    return Wallet()


@pytest.fixture
def other_wallet():
    return Wallet(secret=b"\x33" * 32, chaincode=b"\x44" * 32)


@pytest.fixture
def auth47(clock):
    """Auth47 bundle with a fake clock and a trivial QR encoder."""
    return Auth47(CALLBACK_URL, encoder=fake_qr, clock=clock)


@pytest.fixture
def test_config():
    return {
        "TESTING": True,
        "FLASK_ENV": "testing",
        "FLASK_SECRET_KEY": "test_secret_key_12345",
        "CALLBACK_URL": CALLBACK_URL,
        "DATABASE_URL": "sqlite:///:memory:",
        "RATE_LIMIT_ENABLED": False,
        "FORCE_HTTPS": False,
        "CHALLENGE_SWEEP_INTERVAL": 0,
        "PAYNYM_API_URL": "https://paynym.example",
    }


@pytest.fixture
def app(test_config, auth47):
    """Create and configure a test Flask application instance."""
    from bip47_terminal.factory import create_app

    flask_app = create_app(test_config, auth47=auth47)

    with flask_app.app_context():
        yield flask_app

    database = flask_app.extensions.get("database")
    if database is not None:
        database.close()


@pytest.fixture
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()


@pytest.fixture
def paynym_session(app):
    """Replace the Paynym client's HTTP session with a mock."""
    session = MagicMock()
    session.post.return_value = fake_response(404, "")
    app.extensions["paynym"].session = session
    return session


# Pytest configuration hooks
def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Add 'unit' marker to tests in unit/ directory
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        # Add 'integration' marker to tests in integration/ directory
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
