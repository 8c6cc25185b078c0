"""
Client for the paynym.rs social-graph API.

Only the ``/api/v1/nym/`` lookup is used: by the explorer proxy, the follower
batch endpoint and guestbook avatar enrichment.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://paynym.rs"
MAX_PARALLEL_LOOKUPS = 8


class PaynymError(Exception):
    """Lookup failure with the HTTP status the proxy should answer with."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PaynymNotFound(PaynymError):
    def __init__(self, message: str = "Paynym not found. Please check the nymID or nymName and try again."):
        super().__init__(message, 404)


def primary_code(profile: Dict[str, Any]) -> Optional[str]:
    """Return the first payment code listed on a Paynym profile."""
    codes = profile.get("codes") or []
    if codes and isinstance(codes[0], dict):
        return codes[0].get("code") or None
    return None


class PaynymClient:
    """Thin synchronous wrapper around the paynym.rs REST API."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 10, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def nym_url(self) -> str:
        return f"{self.base_url}/api/v1/nym/"

    def avatar_url(self, code: str) -> str:
        return f"{self.base_url}/{code}/avatar"

    def lookup(self, nym: str) -> Dict[str, Any]:
        """
        Look up a Paynym by nymID, nymName or payment code.

        Raises:
            PaynymNotFound: Empty body from the API
            PaynymError: Transport failure, unparseable body or upstream error status
        """
        try:
            resp = self.session.post(self.nym_url, json={"nym": nym}, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Paynym lookup failed for {nym}: {e}")
            raise PaynymError("Failed to lookup Paynym") from e

        text = resp.text or ""
        if not text.strip():
            logger.warning("Paynym lookup failed: empty response from API")
            raise PaynymNotFound()

        try:
            data = json.loads(text)
        except ValueError as e:
            logger.error(f"Failed to parse Paynym API response: {e}")
            raise PaynymError("Invalid response from Paynym API") from e

        if not resp.ok:
            error = data.get("error") if isinstance(data, dict) else None
            logger.warning(f"Paynym lookup failed: {error or resp.reason}")
            raise PaynymError(error or "Paynym not found", resp.status_code)

        logger.info(f"Paynym found: {data.get('nymName') if isinstance(data, dict) else data}")
        return data

    def follower_summary(self, nym_id: str) -> Optional[Dict[str, Any]]:
        """Condensed profile for one follower, or None if it cannot be fetched."""
        try:
            data = self.lookup(nym_id)
        except PaynymError as e:
            logger.warning(f"Error fetching follower {nym_id}: {e.message}")
            return None
        if not isinstance(data, dict):
            return None

        code = primary_code(data) or ""
        return {
            "nymId": data.get("nymID"),
            "nymName": data.get("nymName") or "Unknown",
            "avatarUrl": self.avatar_url(code) if code else None,
            "primaryCode": code,
        }

    def followers(self, nym_ids: List[str]) -> List[Dict[str, Any]]:
        """Fetch follower summaries in parallel, dropping failures."""
        if not nym_ids:
            return []

        workers = min(MAX_PARALLEL_LOOKUPS, len(nym_ids))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(self.follower_summary, nym_ids))

        followers = [r for r in results if r is not None]
        logger.info(f"Fetched {len(followers)} of {len(nym_ids)} follower details")
        return followers

    def display_profile(self, nym: str) -> Dict[str, Optional[str]]:
        """
        Best-effort name and avatar for guestbook entries.

        Never raises; falls back to the raw nym with no avatar.
        """
        try:
            data = self.lookup(nym)
        except PaynymError as e:
            logger.warning(f"Failed to fetch Paynym details: {e.message}")
            return {"nymName": nym, "nymAvatar": None}
        if not isinstance(data, dict):
            return {"nymName": nym, "nymAvatar": None}

        code = primary_code(data)
        return {
            "nymName": data.get("nymName") or nym,
            "nymAvatar": self.avatar_url(code) if code else None,
        }
