"""
Paynym Blueprint - proxy to the paynym.rs API

Keeps the browser on a single origin and normalises upstream failures into
JSON errors.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from bip47_terminal.paynym import PaynymClient, PaynymError
from bip47_terminal.security import limiter

logger = logging.getLogger(__name__)

paynym_bp = Blueprint("paynym", __name__)

PAYNYM_RATE_LIMIT = "60 per minute"
MAX_FOLLOWERS = 100


def get_paynym_client() -> PaynymClient:
    return current_app.extensions["paynym"]


@paynym_bp.route("/lookup", methods=["POST"])
@limiter.limit(PAYNYM_RATE_LIMIT)
def lookup():
    """
    Look up a single Paynym.

    Expected JSON body:
        - nym: nymID, nymName or payment code

    Returns:
        Upstream profile JSON, or an error with the mapped status
    """
    data = request.get_json(silent=True) or {}
    nym = data.get("nym") if isinstance(data, dict) else None
    if not nym or not isinstance(nym, str):
        return jsonify({"error": "Missing nym parameter"}), 400

    logger.info(f"Looking up Paynym: {nym}")
    try:
        return jsonify(get_paynym_client().lookup(nym.strip()))
    except PaynymError as e:
        return jsonify({"error": e.message}), e.status_code


@paynym_bp.route("/followers", methods=["POST"])
@limiter.limit(PAYNYM_RATE_LIMIT)
def followers():
    """
    Fetch display details for a batch of followers.

    Expected JSON body:
        - nymIds: List of nymIDs

    Returns:
        JSON list of ``{nymId, nymName, avatarUrl, primaryCode}``
    """
    data = request.get_json(silent=True) or {}
    nym_ids = data.get("nymIds") if isinstance(data, dict) else None
    if nym_ids is None or not isinstance(nym_ids, list):
        return jsonify({"error": "Missing or invalid nymIds parameter"}), 400

    nym_ids = [n for n in nym_ids if isinstance(n, str) and n.strip()][:MAX_FOLLOWERS]
    logger.info(f"Fetching details for {len(nym_ids)} followers")
    return jsonify(get_paynym_client().followers(nym_ids))
