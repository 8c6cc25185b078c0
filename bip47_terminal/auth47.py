"""
Auth47 challenge lifecycle.

Challenge URIs have the stable wire format::

    auth47://<nonce>?c=<callback-url-unencoded>&e=<expiry-unix-seconds>

``ChallengeIssuer`` creates them, ``ProofVerifier`` redeems signed proofs
against the shared ``ChallengeStore``, and ``Auth47`` bundles the two with the
status lookup used by polling clients.
"""

import enum
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import parse_qsl, urlsplit

from bip47_terminal.bip47 import notification_pubkey_for
from bip47_terminal.challenges import ChallengeRecord, ChallengeStore, Clock
from bip47_terminal.errors import (
    ChallengeExpired,
    ExpiryMismatch,
    InvalidIdentity,
    InvalidSignature,
    IssuanceFailure,
    MalformedChallenge,
    MalformedProof,
    NonceAlreadyUsed,
    UnknownOrExpiredNonce,
    VerificationError,
)
from bip47_terminal.signing import message_digest, verify_digest
from bip47_terminal.utils import make_qr_data_url, secure_random_hex

logger = logging.getLogger(__name__)

SCHEME = "auth47"
CHALLENGE_TTL = 300
NONCE_BYTES = 16

_EXPIRY_RE = re.compile(r"^[0-9]+$")


def _raw_callback(query: str, params: Dict[str, str]) -> str:
    # The callback is embedded unencoded, so take it verbatim up to the trailing expiry.
    if query.startswith("c="):
        end = query.rfind("&e=")
        return query[2:end] if end != -1 else query[2:]
    return params.get("c", "")


@dataclass(frozen=True)
class Auth47Challenge:
    """Parsed components of an ``auth47://`` challenge URI."""

    nonce: str
    callback: str
    expiry: int

    def to_uri(self) -> str:
        # The callback is embedded verbatim; wallets parse it literally.
        return f"{SCHEME}://{self.nonce}?c={self.callback}&e={self.expiry}"

    @classmethod
    def parse(cls, uri: str) -> "Auth47Challenge":
        """
        Parse a challenge URI.

        Raises:
            MalformedChallenge: If the scheme, nonce or expiry is missing or invalid
        """
        try:
            parts = urlsplit(uri)
        except ValueError as exc:
            raise MalformedChallenge() from exc

        if parts.scheme != SCHEME or not parts.netloc:
            raise MalformedChallenge()

        params = dict(parse_qsl(parts.query, keep_blank_values=True))
        expiry = params.get("e")
        if not expiry:
            raise MalformedChallenge("Missing expiry parameter in challenge")
        if not _EXPIRY_RE.match(expiry):
            raise MalformedChallenge("Invalid expiry parameter in challenge")

        return cls(nonce=parts.netloc, callback=_raw_callback(parts.query, params), expiry=int(expiry))


def extract_nonce(uri: Any) -> Optional[str]:
    """Best-effort nonce extraction used for routing and logging."""
    if not isinstance(uri, str) or not uri:
        return None
    try:
        parts = urlsplit(uri)
    except ValueError:
        return None
    if parts.scheme != SCHEME:
        return None
    return parts.netloc or None


@dataclass(frozen=True)
class Proof:
    """A redeemer's (challenge, claimed identity, signature) triple."""

    challenge: str
    nym: str
    signature: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Proof":
        def field(name: str) -> str:
            value = data.get(name)
            return value if isinstance(value, str) else ""

        return cls(challenge=field("challenge"), nym=field("nym").strip(), signature=field("signature"))


@dataclass(frozen=True)
class IssuedChallenge:
    uri: str
    qr: str
    nonce: str
    expiry: int
    callback_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uri": self.uri,
            "qr": self.qr,
            "nonce": self.nonce,
            "callbackUrl": self.callback_url,
            "expiry": self.expiry,
        }


class RedemptionStatus(enum.Enum):
    REDEEMED = "redeemed"
    REJECTED = "rejected"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class RedemptionResult:
    """Tagged outcome of a redemption attempt on either ingress path."""

    status: RedemptionStatus
    nonce: Optional[str] = None
    identity: Optional[str] = None
    error: Optional[VerificationError] = None

    @property
    def ok(self) -> bool:
        return self.status is RedemptionStatus.REDEEMED

    @property
    def reason(self) -> Optional[str]:
        return self.error.code if self.error else None

    @classmethod
    def failed(cls, error: VerificationError, nonce: Optional[str]) -> "RedemptionResult":
        status = RedemptionStatus.MALFORMED if error.malformed else RedemptionStatus.REJECTED
        return cls(status=status, nonce=nonce, error=error)


Encoder = Callable[[str], str]
IdentityResolver = Callable[[str], bytes]
SignatureVerifier = Callable[[bytes, bytes, str], bool]


class ChallengeIssuer:
    """Creates challenges and registers them with the store."""

    def __init__(
        self,
        store: ChallengeStore,
        callback_url: str,
        encoder: Encoder = make_qr_data_url,
        ttl: int = CHALLENGE_TTL,
        clock: Clock = time.time,
    ):
        self.store = store
        self.callback_url = callback_url
        self.encoder = encoder
        self.ttl = ttl
        self.clock = clock

    def _new_nonce(self) -> str:
        nonce = secure_random_hex(NONCE_BYTES)
        while nonce in self.store:
            nonce = secure_random_hex(NONCE_BYTES)
        return nonce

    def issue(self) -> IssuedChallenge:
        """
        Issue a fresh challenge.

        The QR encoding is produced before the record is inserted so a failed
        encoding never leaves a dangling record.

        Raises:
            IssuanceFailure: If the encoder fails
        """
        now = self.clock()
        expiry = int(now) + self.ttl

        # Loop until the insert wins; a colliding nonce is regenerated.
        while True:
            challenge = Auth47Challenge(nonce=self._new_nonce(), callback=self.callback_url, expiry=expiry)
            uri = challenge.to_uri()

            try:
                qr = self.encoder(uri)
            except Exception as e:
                logger.error(f"Challenge encoding failed: {e}", exc_info=True)
                raise IssuanceFailure(f"Failed to encode challenge: {e}") from e

            record = ChallengeRecord(nonce=challenge.nonce, issued_at=now, expiry=expiry)
            if self.store.insert(record):
                break

        self.store.sweep(now)

        logger.info(f"Generated auth URI with nonce: {challenge.nonce}, expiry: {expiry}")
        return IssuedChallenge(
            uri=uri,
            qr=qr,
            nonce=challenge.nonce,
            expiry=expiry,
            callback_url=self.callback_url,
        )


class ProofVerifier:
    """
    Validates Auth47 proofs and commits successful redemptions.

    Checks run in a fixed order and stop at the first failure; no failure
    mutates the store.
    """

    def __init__(
        self,
        store: ChallengeStore,
        callback_url: Optional[str] = None,
        resolve_identity: IdentityResolver = notification_pubkey_for,
        verify_signature: SignatureVerifier = verify_digest,
        clock: Clock = time.time,
    ):
        self.store = store
        self.callback_url = callback_url
        self.resolve_identity = resolve_identity
        self.verify_signature = verify_signature
        self.clock = clock

    def verify(self, proof: Proof) -> ChallengeRecord:
        """
        Run the full verification sequence and commit on success.

        Returns:
            Copy of the committed record

        Raises:
            VerificationError: The first check that failed
        """
        if not (proof.challenge and proof.nym and proof.signature):
            raise MalformedProof()

        challenge = Auth47Challenge.parse(proof.challenge)
        if self.callback_url is not None and challenge.callback != self.callback_url:
            raise MalformedChallenge("Challenge callback does not match this server")

        record = self.store.get(challenge.nonce)
        if record is None:
            raise UnknownOrExpiredNonce()

        if challenge.expiry <= self.clock():
            raise ChallengeExpired()

        if challenge.expiry != record.expiry:
            raise ExpiryMismatch()

        if record.verified:
            raise NonceAlreadyUsed()

        try:
            pubkey = self.resolve_identity(proof.nym)
        except ValueError as exc:
            raise InvalidIdentity(f"Invalid payment code: {exc}") from exc

        digest = message_digest(proof.challenge)

        try:
            valid = self.verify_signature(digest, pubkey, proof.signature)
        except ValueError as exc:
            raise InvalidSignature(f"Invalid signature: {exc}") from exc
        if not valid:
            raise InvalidSignature()

        # Identity resolution and signature checks ran without the lock held,
        # so the store re-checks the replay condition while committing.
        return self.store.commit_verified(challenge.nonce, proof.nym, proof.challenge, proof.signature)

    def redeem(self, proof: Proof) -> RedemptionResult:
        """Verify ``proof`` and report the outcome as a value instead of raising."""
        nonce = extract_nonce(proof.challenge)
        try:
            record = self.verify(proof)
        except VerificationError as e:
            return RedemptionResult.failed(e, nonce)

        return RedemptionResult(
            status=RedemptionStatus.REDEEMED,
            nonce=record.nonce,
            identity=record.claimed_identity,
        )


class Auth47:
    """Per-application bundle of store, issuer and verifier."""

    def __init__(
        self,
        callback_url: str,
        store: Optional[ChallengeStore] = None,
        encoder: Encoder = make_qr_data_url,
        resolve_identity: IdentityResolver = notification_pubkey_for,
        verify_signature: SignatureVerifier = verify_digest,
        ttl: int = CHALLENGE_TTL,
        clock: Clock = time.time,
    ):
        self.store = store if store is not None else ChallengeStore(clock=clock)
        self.issuer = ChallengeIssuer(self.store, callback_url, encoder=encoder, ttl=ttl, clock=clock)
        self.verifier = ProofVerifier(
            self.store,
            callback_url=callback_url,
            resolve_identity=resolve_identity,
            verify_signature=verify_signature,
            clock=clock,
        )

    @property
    def callback_url(self) -> str:
        return self.issuer.callback_url

    def issue(self) -> IssuedChallenge:
        return self.issuer.issue()

    def redeem(self, proof: Proof) -> RedemptionResult:
        return self.verifier.redeem(proof)

    def status(self, nonce: str) -> Dict[str, Any]:
        """
        Poll a challenge.

        Missing records, swept records and bogus nonces all report ``invalid``.
        """
        record = self.store.get(nonce)
        if record is None:
            return {"status": "invalid"}

        if record.verified:
            return {
                "status": "verified",
                "nym": record.claimed_identity,
                "paymentCode": record.claimed_identity,
                "challenge": record.challenge_reference,
                "signature": record.signature,
            }

        return {"status": "pending"}

    def health(self) -> Dict[str, int]:
        live, verified = self.store.counts()
        return {"pendingAuths": live, "verified": verified}
