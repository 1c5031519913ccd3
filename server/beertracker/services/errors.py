from __future__ import annotations


class LedgerError(Exception):
    """Base for every failure the services report to the HTTP layer."""

    status_code: int = 500
    default_reason: str = "internal_error"

    def __init__(self, reason: str | None = None) -> None:
        self.reason: str = reason or self.default_reason
        super().__init__(self.reason)


class InvalidInput(LedgerError):
    status_code = 400
    default_reason = "invalid_input"


class Unauthenticated(LedgerError):
    status_code = 401
    default_reason = "not_authenticated"


class NotFound(LedgerError):
    status_code = 404
    default_reason = "not_found"


class Conflict(LedgerError):
    status_code = 409
    default_reason = "conflict"


class AlreadyUsed(LedgerError):
    status_code = 400
    default_reason = "invite_already_used"


class StoreFailure(LedgerError):
    status_code = 500
    default_reason = "store_failure"


class CollaboratorUnavailable(LedgerError):
    """An external collaborator failed; callers resolve this locally."""

    status_code = 502
    default_reason = "collaborator_unavailable"
