"""
Guestbook Blueprint - messages signed in with Auth47
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from bip47_terminal import metrics
from bip47_terminal.guestbook import Guestbook, GuestbookError
from bip47_terminal.security import limiter

logger = logging.getLogger(__name__)

guestbook_bp = Blueprint("guestbook", __name__)


def get_guestbook() -> Guestbook:
    return current_app.extensions["guestbook"]


@guestbook_bp.route("/messages", methods=["GET"])
def list_messages():
    """List verified messages, newest first."""
    try:
        return jsonify(get_guestbook().messages())
    except GuestbookError as e:
        return jsonify({"error": e.message}), e.status_code


@guestbook_bp.route("/submit", methods=["POST"])
@limiter.limit("10 per minute")
def submit():
    """
    Submit a message authenticated by a verified Auth47 challenge.

    Expected JSON body:
        - nonce, challenge, signature, nym: As returned by ``/check-auth``
        - message: Text to publish

    Returns:
        JSON with the stored entry
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    try:
        entry = get_guestbook().submit(data)
    except GuestbookError as e:
        metrics.guestbook_submissions.labels(outcome="rejected").inc()
        return jsonify({"error": e.message}), e.status_code

    metrics.guestbook_submissions.labels(outcome="accepted").inc()
    return jsonify({"success": True, "message": "Message submitted successfully", "data": entry})
