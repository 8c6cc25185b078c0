"""
Unit tests for the paynym.rs client.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from bip47_terminal.paynym import PaynymClient, PaynymError, PaynymNotFound, primary_code
from conftest import fake_response

PROFILE = {
    "nymID": "nym123",
    "nymName": "+calmpaper",
    "codes": [{"code": "PM8Tcalm", "segwit": True}],
}


@pytest.fixture
def session():
    session = MagicMock()
    session.post.return_value = fake_response(200, json.dumps(PROFILE))
    return session


@pytest.fixture
def client(session):
    return PaynymClient("https://paynym.example/", timeout=3, session=session)


class TestLookup:
    def test_lookup_posts_nym(self, client, session):
        assert client.lookup("+calmpaper") == PROFILE

        session.post.assert_called_once_with(
            "https://paynym.example/api/v1/nym/", json={"nym": "+calmpaper"}, timeout=3
        )

    def test_transport_error(self, client, session):
        session.post.side_effect = requests.ConnectionError("down")

        with pytest.raises(PaynymError) as exc:
            client.lookup("+calmpaper")

        assert exc.value.status_code == 500
        assert exc.value.message == "Failed to lookup Paynym"

    def test_empty_body_is_not_found(self, client, session):
        session.post.return_value = fake_response(200, "  ")

        with pytest.raises(PaynymNotFound) as exc:
            client.lookup("+nobody")

        assert exc.value.status_code == 404

    def test_invalid_json(self, client, session):
        session.post.return_value = fake_response(200, "<html>")

        with pytest.raises(PaynymError, match="Invalid response"):
            client.lookup("+calmpaper")

    def test_upstream_error_status_is_forwarded(self, client, session):
        session.post.return_value = fake_response(429, json.dumps({"error": "slow down"}), reason="Too Many")

        with pytest.raises(PaynymError) as exc:
            client.lookup("+calmpaper")

        assert exc.value.status_code == 429
        assert exc.value.message == "slow down"


class TestFollowers:
    def test_follower_summary(self, client):
        summary = client.follower_summary("nym123")

        assert summary == {
            "nymId": "nym123",
            "nymName": "+calmpaper",
            "avatarUrl": "https://paynym.example/PM8Tcalm/avatar",
            "primaryCode": "PM8Tcalm",
        }

    def test_failed_followers_are_dropped(self, client, session):
        def respond(url, json, timeout):
            if json["nym"] == "bad":
                return fake_response(404, "")
            return fake_response(200, '{"nymID": "%s", "nymName": "+%s", "codes": []}' % (json["nym"], json["nym"]))

        session.post.side_effect = respond

        followers = client.followers(["a", "bad", "b"])

        assert [f["nymId"] for f in followers] == ["a", "b"]
        assert followers[0]["avatarUrl"] is None

    def test_no_followers(self, client, session):
        assert client.followers([]) == []
        session.post.assert_not_called()


class TestDisplayProfile:
    def test_display_profile(self, client):
        assert client.display_profile("PM8Tcalm") == {
            "nymName": "+calmpaper",
            "nymAvatar": "https://paynym.example/PM8Tcalm/avatar",
        }

    def test_display_profile_falls_back(self, client, session):
        session.post.side_effect = requests.Timeout("slow")

        assert client.display_profile("PM8Tcalm") == {"nymName": "PM8Tcalm", "nymAvatar": None}


def test_primary_code():
    assert primary_code(PROFILE) == "PM8Tcalm"
    assert primary_code({"codes": []}) is None
    assert primary_code({}) is None
