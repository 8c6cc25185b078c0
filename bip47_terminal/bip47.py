"""
BIP47 payment code parsing and inspection.

A version 1 payment code is the Base58Check encoding of a ``0x47`` prefix byte
followed by an 80-byte payload::

    version(1) | features(1) | pubkey(33) | chaincode(32) | reserved(13)

The notification key used for Auth47 is the first non-hardened child of the
payment code's extended public key.
"""

import hashlib
import hmac
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import base58
from coincurve import PublicKey

PAYMENT_CODE_PREFIX = b"\x47"
PAYMENT_CODE_VERSION = 0x01
PAYMENT_CODE_LENGTH = 116
PAYLOAD_LENGTH = 80
NOTIFICATION_PATH = "m/47'/0'/0'/0"

_BASE58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]+$")


class InvalidPaymentCode(ValueError):
    """Raised when a string cannot be decoded as a BIP47 payment code."""


@dataclass(frozen=True)
class PaymentCode:
    """Decoded BIP47 payment code."""

    version: int
    features: int
    pubkey: bytes
    chaincode: bytes
    encoded: str

    @property
    def sign(self) -> int:
        return self.pubkey[0]

    @classmethod
    def parse(cls, value: str) -> "PaymentCode":
        """
        Decode and validate a Base58Check payment code.

        Raises:
            InvalidPaymentCode: On bad encoding, checksum, prefix, version or key.
        """
        if not value or not isinstance(value, str):
            raise InvalidPaymentCode("Payment code required")

        try:
            raw = base58.b58decode_check(value)
        except ValueError as exc:
            raise InvalidPaymentCode(f"Invalid Base58Check encoding: {exc}") from exc

        if len(raw) != PAYLOAD_LENGTH + 1 or raw[:1] != PAYMENT_CODE_PREFIX:
            raise InvalidPaymentCode("Not a BIP47 payment code")

        payload = raw[1:]
        version = payload[0]
        if version != PAYMENT_CODE_VERSION:
            raise InvalidPaymentCode(f"Unsupported payment code version: {version}")

        pubkey = bytes(payload[2:35])
        if pubkey[0] not in (0x02, 0x03):
            raise InvalidPaymentCode("Payment code public key must be compressed")

        try:
            PublicKey(pubkey)
        except ValueError as exc:
            raise InvalidPaymentCode("Payment code public key is not on secp256k1") from exc

        return cls(
            version=version,
            features=payload[1],
            pubkey=pubkey,
            chaincode=bytes(payload[35:67]),
            encoded=value,
        )

    def notification_pubkey(self) -> bytes:
        """
        Derive the compressed notification public key (child index 0).

        Returns:
            33-byte compressed secp256k1 public key
        """
        digest = hmac.new(self.chaincode, self.pubkey + (0).to_bytes(4, "big"), hashlib.sha512).digest()
        try:
            child = PublicKey(self.pubkey).add(digest[:32])
        except ValueError as exc:
            raise InvalidPaymentCode("Notification key derivation failed") from exc
        return child.format(compressed=True)


def notification_pubkey_for(payment_code: str) -> bytes:
    """Resolve a payment code string to its notification public key."""
    return PaymentCode.parse(payment_code).notification_pubkey()


def encode_payment_code(pubkey: bytes, chaincode: bytes, features: int = 0) -> str:
    """
    Build a version 1 payment code from a compressed public key and chain code.

    Args:
        pubkey: 33-byte compressed public key
        chaincode: 32-byte BIP32 chain code
        features: Feature flags byte

    Returns:
        Base58Check encoded payment code
    """
    if len(pubkey) != 33 or len(chaincode) != 32:
        raise ValueError("pubkey must be 33 bytes and chaincode 32 bytes")
    payload = bytes([PAYMENT_CODE_VERSION, features]) + pubkey + chaincode + bytes(13)
    return base58.b58encode_check(PAYMENT_CODE_PREFIX + payload).decode()


def validate_payment_code(value: str) -> Dict[str, Any]:
    """
    Run the lab validator checks against a payment code string.

    Returns:
        Dict with ``valid``, ``checks`` and ``details`` keys
    """
    value = (value or "").strip()
    checks = {
        "prefix": value.startswith("PM8T"),
        "length": len(value) == PAYMENT_CODE_LENGTH,
        "base58": bool(_BASE58_RE.fullmatch(value)),
        "checksum": False,
        "structure": False,
        "version": False,
        "sign": False,
    }

    raw: Optional[bytes] = None
    if checks["base58"]:
        try:
            raw = base58.b58decode_check(value)
            checks["checksum"] = True
        except ValueError:
            raw = None

    details = None
    if raw is not None:
        checks["structure"] = len(raw) == PAYLOAD_LENGTH + 1 and raw[:1] == PAYMENT_CODE_PREFIX
        if checks["structure"]:
            payload = raw[1:]
            checks["version"] = payload[0] == PAYMENT_CODE_VERSION
            checks["sign"] = payload[2] in (0x02, 0x03)

    valid = all(checks.values())
    if valid:
        try:
            code = PaymentCode.parse(value)
            details = {
                "type": "BIP47 Payment Code v1",
                "version": f"0x{code.version:02x}",
                "features": f"0x{code.features:02x}",
                "sign": f"0x{code.sign:02x}",
                "pubkey": code.pubkey.hex(),
                "chaincode": code.chaincode.hex(),
                "notificationPath": NOTIFICATION_PATH,
                "notificationPubkey": code.notification_pubkey().hex(),
                "warning": "Always verify payment codes before use",
            }
        except InvalidPaymentCode:
            # x coordinate not on the curve
            checks["sign"] = False
            valid = False

    return {"valid": valid, "checks": checks, "details": details}
