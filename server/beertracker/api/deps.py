# pyright: reportMissingImports=false
# pyright: reportCallInDefaultInitializer=false
from __future__ import annotations

from typing import NoReturn

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from beertracker.core.config import settings
from beertracker.db.session import SessionLocal
from beertracker.services.accounts import AccountService
from beertracker.services.drinks import DrinkRecorder
from beertracker.services.errors import NotFound
from beertracker.services.flavor_text import RoastWriter, build_roast_writer
from beertracker.services.invites import InviteManager
from beertracker.services.ledger import LedgerStore, UserRecord
from beertracker.services.sessions import SessionManager
from beertracker.services.stats import StatsAggregator
from beertracker.services.verification import DrinkVerifier, build_drink_verifier


bearer_scheme = HTTPBearer(auto_error=False)

_ledger = LedgerStore(SessionLocal)


def _unauthorized(detail: str = "not_authenticated") -> NoReturn:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _forbidden(detail: str = "forbidden") -> NoReturn:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def get_ledger() -> LedgerStore:
    return _ledger


def get_invite_manager(ledger: LedgerStore = Depends(get_ledger)) -> InviteManager:
    return InviteManager(ledger)


def get_session_manager(ledger: LedgerStore = Depends(get_ledger)) -> SessionManager:
    return SessionManager(ledger, ttl_days=settings.session_ttl_days)


def get_account_service(
    ledger: LedgerStore = Depends(get_ledger),
    invites: InviteManager = Depends(get_invite_manager),
) -> AccountService:
    return AccountService(ledger, invites)


def get_drink_verifier() -> DrinkVerifier:
    return build_drink_verifier(settings)


def get_roast_writer() -> RoastWriter | None:
    return build_roast_writer(settings)


def get_drink_recorder(
    ledger: LedgerStore = Depends(get_ledger),
    verifier: DrinkVerifier = Depends(get_drink_verifier),
    roast_writer: RoastWriter | None = Depends(get_roast_writer),
) -> DrinkRecorder:
    policy = "open" if settings.verification_failure_policy == "open" else "closed"
    return DrinkRecorder(
        ledger,
        verifier=verifier,
        roast_writer=roast_writer,
        goal=settings.drink_goal,
        photo_required=settings.drink_photo_required,
        photo_max_bytes=settings.drink_photo_max_bytes,
        label_max_length=settings.drink_label_max_length,
        failure_policy=policy,
        verification_timeout_s=settings.verification_timeout_seconds,
        roast_timeout_s=settings.flavor_text_timeout_seconds,
    )


def get_stats_aggregator(ledger: LedgerStore = Depends(get_ledger)) -> StatsAggregator:
    return StatsAggregator(ledger, goal=settings.drink_goal)


def session_token_from_request(
    request: Request, creds: HTTPAuthorizationCredentials | None
) -> str:
    """The cookie wins; an ``Authorization: Bearer`` header is accepted for API clients."""
    cookie = request.cookies.get(settings.session_cookie_name, "")
    if cookie != "":
        return cookie
    if creds is not None and creds.scheme.lower() == "bearer":
        return creds.credentials
    return ""


def get_current_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    sessions: SessionManager = Depends(get_session_manager),
    ledger: LedgerStore = Depends(get_ledger),
) -> UserRecord:
    token = session_token_from_request(request, creds)
    if token == "":
        _unauthorized()
    try:
        user_id = sessions.resolve(token)
    except NotFound:
        _unauthorized("invalid_session")
    user = ledger.get_user(user_id)
    if user is None:
        _unauthorized("invalid_session")
    request.state.user_id = user.id
    return user


def require_admin(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    if not user.is_admin:
        _forbidden("admin_required")
    return user
