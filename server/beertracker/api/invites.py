# pyright: reportMissingImports=false
# pyright: reportCallInDefaultInitializer=false
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from beertracker.api.deps import get_current_user, get_invite_manager
from beertracker.core.config import settings
from beertracker.services.invites import InviteManager, invite_link
from beertracker.services.ledger import UserRecord


router = APIRouter(prefix="/invite", tags=["invites"])


class InviteCheckResponse(BaseModel):
    valid: bool


class InviteCreateResponse(BaseModel):
    code: str
    link: str


@router.get("/{code}", response_model=InviteCheckResponse)
async def invite_check(
    code: str,
    invites: InviteManager = Depends(get_invite_manager),
) -> InviteCheckResponse:
    if not invites.is_valid(code):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="invite_code_invalid")
    return InviteCheckResponse(valid=True)


@router.post("", response_model=InviteCreateResponse)
async def invite_create(
    user: UserRecord = Depends(get_current_user),
    invites: InviteManager = Depends(get_invite_manager),
) -> InviteCreateResponse:
    inv = invites.create_random(user.id)
    return InviteCreateResponse(
        code=inv.code, link=invite_link(inv.code, base_url=settings.public_base_url)
    )
