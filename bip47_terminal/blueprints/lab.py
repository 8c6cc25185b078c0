"""
BIP47 Lab Blueprint - payment code tooling
"""

import logging

from flask import Blueprint, jsonify, request

from bip47_terminal.bip47 import validate_payment_code
from bip47_terminal.security import limiter

logger = logging.getLogger(__name__)

lab_bp = Blueprint("lab", __name__)


@lab_bp.route("/validate", methods=["POST"])
@limiter.limit("60 per minute")
def validate():
    """
    Validate a payment code and break it into its components.

    Expected JSON body:
        - paymentCode: Base58Check payment code

    Returns:
        JSON with ``valid``, per-check results and decoded ``details``
    """
    data = request.get_json(silent=True) or {}
    payment_code = data.get("paymentCode") if isinstance(data, dict) else None
    if not payment_code or not isinstance(payment_code, str):
        return jsonify({"error": "Payment code required"}), 400

    result = validate_payment_code(payment_code)
    logger.info(f"Validation complete: {'VALID' if result['valid'] else 'INVALID'}")
    return jsonify(result)
