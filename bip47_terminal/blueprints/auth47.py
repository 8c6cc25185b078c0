"""
Auth47 Blueprint - BIP47 Payment Code Authentication

Challenge issuance, status polling, and the two redemption paths: a direct
``POST /verify`` from the browser and the wallet's ``POST /callback``.  Both
paths hand the proof to the same ``ProofVerifier.redeem``.
"""

import logging

from flask import Blueprint, current_app, jsonify, redirect, request, url_for

from bip47_terminal import metrics
from bip47_terminal.audit_logger import get_audit_logger
from bip47_terminal.auth47 import Auth47, Proof, RedemptionResult
from bip47_terminal.blueprints.ui import render_callback_page
from bip47_terminal.errors import IssuanceFailure
from bip47_terminal.security import limiter
from bip47_terminal.utils import request_payload

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

auth47_bp = Blueprint("auth47", __name__)

AUTH47_RATE_LIMIT = "30 per minute"
POLL_RATE_LIMIT = "120 per minute"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
}


def get_auth47() -> Auth47:
    return current_app.extensions["auth47"]


def _update_gauges(auth47: Auth47) -> None:
    live, verified = auth47.store.counts()
    metrics.live_challenges.set(live)
    metrics.verified_challenges.set(verified)


def _record_outcome(result: RedemptionResult, proof: Proof, path: str) -> None:
    metrics.redemptions.labels(path=path, outcome=result.status.value).inc()
    audit_logger.log_redemption(
        result.nonce,
        path=path,
        success=result.ok,
        reason=result.reason,
        nym=proof.nym or None,
        ip_address=request.remote_addr,
    )


@auth47_bp.route("/start-auth", methods=["GET"])
@limiter.limit(AUTH47_RATE_LIMIT)
def start_auth():
    """
    Issue a new Auth47 challenge.

    Returns:
        JSON with uri, qr (data URL), nonce, callbackUrl and expiry
    """
    auth47 = get_auth47()
    try:
        issued = auth47.issue()
    except IssuanceFailure as e:
        return jsonify({"error": e.message}), 500

    metrics.challenges_issued.inc()
    _update_gauges(auth47)
    audit_logger.log_challenge_issued(issued.nonce, issued.expiry, ip_address=request.remote_addr)

    return jsonify(issued.to_dict())


@auth47_bp.route("/check-auth/<nonce>", methods=["GET"])
@limiter.limit(POLL_RATE_LIMIT)
def check_auth(nonce: str):
    """
    Poll the state of a challenge.

    Returns:
        JSON ``{"status": "pending" | "verified" | "invalid", ...}``, never cached
    """
    response = jsonify(get_auth47().status(nonce))
    response.headers.update(NO_CACHE_HEADERS)
    return response


@auth47_bp.route("/verify", methods=["POST"])
@limiter.limit(AUTH47_RATE_LIMIT)
def verify():
    """
    Direct redemption of an Auth47 proof.

    Expected JSON body:
        - challenge: The exact auth47:// URI that was signed
        - nym: Payment code of the signer
        - signature: Base64 Bitcoin message signature
        - auth47_response: Protocol version (optional, ignored)

    Returns:
        JSON ``{"result": "ok", ...}`` or ``{"result": "error", ...}`` with 400
    """
    proof = Proof.from_mapping(request_payload(request))
    auth47 = get_auth47()

    result = auth47.redeem(proof)
    _record_outcome(result, proof, "verify")
    _update_gauges(auth47)

    if not result.ok:
        logger.warning(f"Verification failed ({result.reason}): {result.error.message}")
        return jsonify(result.error.to_dict()), 400

    logger.info(f"Authentication successful for {result.identity}")
    return jsonify({"result": "ok", "nym": result.identity, "payment_code": result.identity})


@auth47_bp.route("/callback", methods=["GET"])
def callback_page():
    """Human-facing status page; polls ``/check-auth/<nonce>`` when a nonce is given."""
    return render_callback_page()


@auth47_bp.route("/callback", methods=["POST"])
@limiter.limit(AUTH47_RATE_LIMIT)
def wallet_callback():
    """
    Wallet-initiated redemption.

    The wallet is not a programmatic consumer of the outcome, so every path
    ends at the status page: a redirect carrying the nonce when one could be
    read from the challenge, otherwise the page itself.
    """
    result = None
    try:
        proof = Proof.from_mapping(request_payload(request))
        auth47 = get_auth47()
        result = auth47.redeem(proof)
        _record_outcome(result, proof, "callback")
        _update_gauges(auth47)

        if result.ok:
            logger.info(f"Authentication successful via callback for {result.identity}")
        else:
            logger.warning(f"Callback verification {result.status.value} ({result.reason}): {result.error.message}")
    except Exception as e:
        logger.error(f"Callback error: {e}", exc_info=True)
        audit_logger.log_error(type(e).__name__, str(e), context={"path": "callback"})

    if result is not None and result.nonce:
        return redirect(url_for("auth47.callback_page", nonce=result.nonce))
    return render_callback_page()
