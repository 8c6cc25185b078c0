"""
Exception hierarchy for Auth47 issuance and proof verification.

Every verification failure carries a stable machine-readable ``code`` and a
human-readable message; the HTTP layer serializes both.
"""

from typing import Any, Dict, Optional


class Auth47Error(Exception):
    """Base class for all Auth47 errors."""

    code = "auth47_error"
    message = "Auth47 error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"result": "error", "error": self.message, "code": self.code}


class IssuanceFailure(Auth47Error):
    code = "issuance_failure"
    message = "Failed to generate authentication challenge"


class VerificationError(Auth47Error):
    """Raised by the proof verifier; never escapes ``ProofVerifier.redeem``."""

    code = "verification_error"
    message = "Verification failed"
    malformed = False


class MalformedProof(VerificationError):
    code = "malformed_proof"
    message = "Missing required fields: challenge, nym, signature"
    malformed = True


class MalformedChallenge(VerificationError):
    code = "malformed_challenge"
    message = "Invalid challenge format"
    malformed = True


class UnknownOrExpiredNonce(VerificationError):
    code = "unknown_nonce"
    message = "Invalid or expired nonce"


class ChallengeExpired(VerificationError):
    code = "challenge_expired"
    message = "Challenge has expired"


class ExpiryMismatch(VerificationError):
    code = "expiry_mismatch"
    message = "Expiry mismatch in challenge"


class NonceAlreadyUsed(VerificationError):
    code = "nonce_already_used"
    message = "Nonce already used"


class InvalidIdentity(VerificationError):
    code = "invalid_identity"
    message = "Invalid payment code"


class InvalidSignature(VerificationError):
    code = "invalid_signature"
    message = "Invalid signature"
