"""In-memory Auth47 challenge store.

Records live in a plain dictionary keyed by nonce and guarded by a single
lock.  Readers always receive a copy of the record so the only way to mutate
state is through the store's own methods.  One store is created per
application instance by ``create_app`` and shared by every handler.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from bip47_terminal.errors import NonceAlreadyUsed, UnknownOrExpiredNonce

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

DEFAULT_RETENTION = 300


@dataclass
class ChallengeRecord:
    """State for one issued challenge."""

    nonce: str
    issued_at: float
    expiry: int
    verified: bool = False
    claimed_identity: Optional[str] = None
    challenge_reference: Optional[str] = None
    signature: Optional[str] = None
    verified_at: Optional[float] = None
    consuming: bool = False


class ChallengeStore:
    """Owned nonce -> ChallengeRecord mapping with lifecycle operations."""

    def __init__(self, retention: int = DEFAULT_RETENTION, clock: Clock = time.time):
        self.retention = retention
        self.clock = clock
        self._records: Dict[str, ChallengeRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, nonce: str) -> bool:
        return nonce in self._records

    def insert(self, record: ChallengeRecord) -> bool:
        """Add a new record. Returns False if the nonce is already live."""
        with self._lock:
            if record.nonce in self._records:
                return False
            self._records[record.nonce] = dataclasses.replace(record)
            return True

    def get(self, nonce: str) -> Optional[ChallengeRecord]:
        with self._lock:
            record = self._records.get(nonce)
            return dataclasses.replace(record) if record else None

    def commit_verified(self, nonce: str, identity: str, challenge: str, signature: str) -> ChallengeRecord:
        """
        Transition a pending record to verified.

        The replay check is repeated under the lock so that of two concurrent
        redemptions exactly one commits.

        Raises:
            UnknownOrExpiredNonce: If the record was swept or consumed meanwhile
            NonceAlreadyUsed: If another redemption already committed
        """
        with self._lock:
            record = self._records.get(nonce)
            if record is None:
                raise UnknownOrExpiredNonce()
            if record.verified:
                raise NonceAlreadyUsed()

            record.verified = True
            record.claimed_identity = identity
            record.challenge_reference = challenge
            record.signature = signature
            record.verified_at = self.clock()
            return dataclasses.replace(record)

    def claim(self, nonce: str) -> Optional[ChallengeRecord]:
        """
        Reserve a verified record for a one-shot follow-on action.

        Returns:
            A copy of the claimed record, or None if it is missing, still
            pending, or already claimed by another request.
        """
        with self._lock:
            record = self._records.get(nonce)
            if record is None or not record.verified or record.consuming:
                return None
            record.consuming = True
            return dataclasses.replace(record)

    def release(self, nonce: str) -> None:
        """Drop a claim without consuming the record."""
        with self._lock:
            record = self._records.get(nonce)
            if record is not None:
                record.consuming = False

    def consume(self, nonce: str) -> bool:
        """Delete a record after the action it authenticated has been recorded."""
        with self._lock:
            return self._records.pop(nonce, None) is not None

    def sweep(self, now: Optional[float] = None) -> int:
        """Delete records older than the retention window. Returns the count removed."""
        now = self.clock() if now is None else now
        with self._lock:
            stale = [
                nonce
                for nonce, record in self._records.items()
                if now - record.issued_at > self.retention and not record.consuming
            ]
            for nonce in stale:
                del self._records[nonce]

        if stale:
            logger.debug("Swept %d stale challenge(s)", len(stale))
        return len(stale)

    def counts(self) -> Tuple[int, int]:
        """Return (live, verified) record counts."""
        with self._lock:
            records: List[ChallengeRecord] = list(self._records.values())
        return len(records), sum(1 for r in records if r.verified)


class ChallengeSweeper(threading.Thread):
    """Daemon thread that sweeps the store on a fixed interval."""

    def __init__(self, store: ChallengeStore, interval: float):
        super().__init__(name="challenge-sweeper", daemon=True)
        self.store = store
        self.interval = interval
        self._stopped = threading.Event()

    def run(self) -> None:
        logger.info("Challenge sweeper started (interval=%ss)", self.interval)
        while not self._stopped.wait(self.interval):
            try:
                self.store.sweep()
            except Exception as e:
                logger.error(f"Challenge sweep failed: {e}", exc_info=True)

    def stop(self) -> None:
        self._stopped.set()
