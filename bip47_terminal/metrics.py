"""Prometheus metrics for challenge issuance and redemption."""

from prometheus_client import CollectorRegistry, Counter, Gauge

registry = CollectorRegistry()

challenges_issued = Counter(
    "auth47_challenges_issued_total",
    "Total Auth47 challenges issued",
    registry=registry,
)
redemptions = Counter(
    "auth47_redemptions_total",
    "Auth47 redemption attempts",
    ["path", "outcome"],
    registry=registry,
)
live_challenges = Gauge(
    "auth47_live_challenges",
    "Challenge records currently held in memory",
    registry=registry,
)
verified_challenges = Gauge(
    "auth47_verified_challenges",
    "Verified challenge records not yet consumed or swept",
    registry=registry,
)
guestbook_submissions = Counter(
    "guestbook_submissions_total",
    "Guestbook submission attempts",
    ["outcome"],
    registry=registry,
)
