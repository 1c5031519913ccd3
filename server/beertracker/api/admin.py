# pyright: reportMissingImports=false
# pyright: reportCallInDefaultInitializer=false
from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from beertracker.api.auth import SuccessResponse
from beertracker.api.deps import get_account_service, get_ledger, require_admin
from beertracker.core.config import settings
from beertracker.metrics.prometheus import record_admin_reset
from beertracker.services.accounts import AccountService
from beertracker.services.ledger import LedgerStore, UserRecord


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class InviteListItem(BaseModel):
    code: str
    is_admin: bool
    created_by: str | None
    used_by: str | None
    created_at: datetime
    used_at: datetime | None


class InviteListResponse(BaseModel):
    items: list[InviteListItem] = Field(default_factory=list)
    next_offset: int | None = None


class PasswordResetIssueRequest(BaseModel):
    username: str | None = None
    email: str | None = None


class PasswordResetIssueResponse(BaseModel):
    code: str
    expires_at: datetime


@router.post("/reset", response_model=SuccessResponse)
async def admin_reset(
    admin: UserRecord = Depends(require_admin),
    ledger: LedgerStore = Depends(get_ledger),
) -> SuccessResponse:
    ledger.reset_drinks()
    record_admin_reset()
    logger.info("drink ledger reset by admin user_id=%s", admin.id)
    return SuccessResponse()


@router.get("/invites", response_model=InviteListResponse)
async def admin_invites_list(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _admin: UserRecord = Depends(require_admin),
    ledger: LedgerStore = Depends(get_ledger),
) -> InviteListResponse:
    # One extra row tells whether another page exists.
    rows = ledger.list_invites(limit=limit + 1, offset=offset)
    has_more = len(rows) > limit
    items = [
        InviteListItem(
            code=i.code,
            is_admin=i.is_admin,
            created_by=i.created_by_id,
            used_by=i.used_by_id,
            created_at=i.created_at,
            used_at=i.used_at,
        )
        for i in rows[:limit]
    ]
    return InviteListResponse(items=items, next_offset=offset + limit if has_more else None)


@router.post("/password-resets", response_model=PasswordResetIssueResponse)
async def admin_password_reset_issue(
    payload: PasswordResetIssueRequest,
    _admin: UserRecord = Depends(require_admin),
    accounts: AccountService = Depends(get_account_service),
) -> PasswordResetIssueResponse:
    code, expires_at = accounts.issue_reset_code(
        username=payload.username,
        email=payload.email,
        ttl_minutes=settings.password_reset_ttl_minutes,
    )
    return PasswordResetIssueResponse(code=code, expires_at=expires_at)
