"""
Admin Blueprint - Health Checks and Metrics

Provides monitoring endpoints for the challenge store and guestbook database.
"""

import logging
import time
from typing import Any, Dict

from flask import Blueprint, Response, current_app, jsonify
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from bip47_terminal import metrics

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__)


@admin_bp.route("/health")
def health():
    """
    Health check with challenge store counts.

    Returns:
        JSON with ``status``, ``pendingAuths`` (live records) and ``verified``
    """
    cfg = current_app.config.get("APP_CONFIG", {})
    auth47 = current_app.extensions["auth47"]

    health_status: Dict[str, Any] = {
        "status": "ok",
        "timestamp": time.time(),
        "service": cfg.get("APP_NAME", "BIP47 Terminal"),
        "version": cfg.get("APP_VERSION", "1.0.0"),
        **auth47.health(),
    }

    database = current_app.extensions.get("database")
    if database is not None:
        health_status["database"] = database.check_health()
    else:
        health_status["database"] = {"status": "disabled", "connected": False}

    return jsonify(health_status)


@admin_bp.route("/health/live")
def liveness():
    """
    Liveness probe - checks if app is running.

    Returns:
        200 if process is alive
    """
    return jsonify({"status": "alive"}), 200


@admin_bp.route("/metrics")
def prometheus_metrics():
    """Prometheus exposition of issuance and redemption counters."""
    live, verified = current_app.extensions["auth47"].store.counts()
    metrics.live_challenges.set(live)
    metrics.verified_challenges.set(verified)
    return Response(generate_latest(metrics.registry), content_type=CONTENT_TYPE_LATEST)
