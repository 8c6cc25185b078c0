"""
Utility functions for the BIP47 Terminal.

Shared helpers for QR encoding, random identifiers and request parsing.
"""

import base64
import secrets
from io import BytesIO
from typing import Any, Dict

import qrcode
from flask import Request


def generate_qr_code(data: str, *, box_size: int = 8, border: int = 4) -> str:
    """
    Render ``data`` as a PNG QR code.

    Args:
        data: Payload to encode (kept verbatim)
        box_size: Module size in pixels
        border: Quiet zone in modules (4 is the ISO minimum)

    Returns:
        Base64-encoded PNG
    """
    qr = qrcode.QRCode(
        version=None,  # let it grow as needed
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = BytesIO()
    img.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("utf-8")


def make_qr_data_url(data: str) -> str:
    """Encode ``data`` as a ``data:image/png;base64,...`` URL for <img> tags."""
    return f"data:image/png;base64,{generate_qr_code(data)}"


def secure_random_hex(nbytes: int = 16) -> str:
    """
    Generate cryptographically secure random hex string.

    Args:
        nbytes: Number of random bytes

    Returns:
        Hex-encoded random string
    """
    return secrets.token_hex(nbytes)


def request_payload(request: Request) -> Dict[str, Any]:
    """Return the JSON body of ``request`` or, failing that, its form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()
