"""
Bitcoin Signed Message verification.

Wallets sign Auth47 challenges with the legacy "Bitcoin Signed Message"
scheme: a 65-byte compact recoverable signature, base64 encoded, over the
double SHA-256 of the prefixed message.
"""

import base64
import binascii
import hashlib
import logging

from coincurve import PublicKey

logger = logging.getLogger(__name__)

MESSAGE_MAGIC = b"\x18Bitcoin Signed Message:\n"


def _varint(n: int) -> bytes:
    if n < 0xFD:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + n.to_bytes(2, "little")
    if n <= 0xFFFFFFFF:
        return b"\xfe" + n.to_bytes(4, "little")
    return b"\xff" + n.to_bytes(8, "little")


def message_digest(message: str) -> bytes:
    """
    Compute the Bitcoin Signed Message digest of ``message``.

    The message is encoded as UTF-8 exactly as given; no normalisation.
    """
    data = message.encode("utf-8")
    preimage = MESSAGE_MAGIC + _varint(len(data)) + data
    return hashlib.sha256(hashlib.sha256(preimage).digest()).digest()


def decode_compact_signature(signature: str):
    """
    Split a base64 compact signature into (recoverable_sig, compressed).

    Returns:
        Tuple of 65-byte ``r || s || recid`` signature and compressed flag

    Raises:
        ValueError: If the signature is not a valid compact signature
    """
    try:
        raw = base64.b64decode(signature, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Signature is not valid base64") from exc

    if len(raw) != 65:
        raise ValueError(f"Signature must be 65 bytes (got {len(raw)})")

    header = raw[0]
    if not 27 <= header <= 42:
        raise ValueError(f"Invalid signature header byte: {header}")

    # 27-30 uncompressed P2PKH, 31-34 compressed P2PKH, 35-42 segwit (compressed)
    compressed = header >= 31
    recid = (header - 27) & 3
    return raw[1:] + bytes([recid]), compressed


def recover_pubkey(digest: bytes, signature: str) -> bytes:
    """Recover the serialized public key that produced ``signature``."""
    recoverable, compressed = decode_compact_signature(signature)
    pubkey = PublicKey.from_signature_and_message(recoverable, digest, hasher=None)
    return pubkey.format(compressed=compressed)


def verify_digest(digest: bytes, pubkey: bytes, signature: str) -> bool:
    """
    Verify a compact signature over ``digest`` against ``pubkey``.

    Returns:
        True if the recovered key matches, False on mismatch or malformed input
    """
    try:
        return recover_pubkey(digest, signature) == pubkey
    except ValueError as e:
        logger.debug("Signature recovery failed: %s", e)
        return False


def sign_message(message: str, private_key) -> str:
    """
    Produce a compressed-key compact signature with a coincurve ``PrivateKey``.

    Used by the test-suite and local tooling to play the wallet's role.
    """
    sig = private_key.sign_recoverable(message_digest(message), hasher=None)
    header = 27 + 4 + sig[64]
    return base64.b64encode(bytes([header]) + sig[:64]).decode()
