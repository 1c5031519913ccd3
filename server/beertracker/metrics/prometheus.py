# pyright: reportMissingImports=false
# pyright: reportUnknownMemberType=false

from __future__ import annotations

from typing import Literal

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, generate_latest


VerificationResult = Literal["accepted", "rejected", "failed_open", "failed_closed", "skipped"]

_DRINKS_RECORDED = Counter(
    "beertracker_drinks_recorded_total",
    "Total drinks added to the ledger.",
)
_VERIFICATIONS = Counter(
    "beertracker_drink_verifications_total",
    "Drink photo verification outcomes.",
    labelnames=("result",),
)
_COLLABORATOR_FAILURES = Counter(
    "beertracker_collaborator_failures_total",
    "Failed or timed-out calls to external collaborators.",
    labelnames=("collaborator",),
)
_REGISTRATIONS = Counter(
    "beertracker_registrations_total",
    "Accounts created through an invite.",
    labelnames=("admin",),
)
_ADMIN_RESETS = Counter(
    "beertracker_admin_resets_total",
    "Times the drink ledger was reset by an admin.",
)


def record_drink_recorded() -> None:
    _DRINKS_RECORDED.inc()


def record_verification(result: VerificationResult) -> None:
    _VERIFICATIONS.labels(result).inc()


def record_collaborator_failure(collaborator: str) -> None:
    _COLLABORATOR_FAILURES.labels(collaborator).inc()


def record_registration(*, is_admin: bool) -> None:
    _REGISTRATIONS.labels("true" if is_admin else "false").inc()


def record_admin_reset() -> None:
    _ADMIN_RESETS.inc()


def metrics_payload() -> tuple[bytes, str]:
    payload = generate_latest(REGISTRY)
    content_type = str(CONTENT_TYPE_LATEST)
    return payload, content_type
