# pyright: reportMissingImports=false
# pyright: reportCallInDefaultInitializer=false
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, ConfigDict, Field

from beertracker.api.deps import (
    bearer_scheme,
    get_account_service,
    get_current_user,
    get_session_manager,
    session_token_from_request,
)
from beertracker.core.config import settings
from beertracker.services.accounts import AccountService
from beertracker.services.ledger import UserRecord
from beertracker.services.sessions import SessionManager


router = APIRouter(tags=["auth"])


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str | None = Field(None, examples=["alice"])
    email: str | None = Field(None, examples=["alice@example.com"])
    display_name: str | None = Field(None, alias="displayName", examples=["Alice"])
    password: str | None = Field(None, examples=["hunter22"])
    invite_code: str | None = Field(None, alias="inviteCode", examples=["FIRSTBEER"])


class LoginRequest(BaseModel):
    username: str | None = None
    email: str | None = None
    password: str | None = None


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: str | None = Field(None, alias="displayName")
    beer_fact: str | None = Field(None, alias="beerFact")


class PasswordResetConfirmRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str | None = None
    email: str | None = None
    code: str | None = None
    new_password: str | None = Field(None, alias="newPassword")


class UserOut(BaseModel):
    id: str
    username: str | None
    email: str | None
    display_name: str
    beer_count: int
    is_admin: bool
    beer_fact: str | None
    created_at: datetime


class UserResponse(BaseModel):
    user: UserOut


class AuthResponse(BaseModel):
    success: bool = True
    user: UserOut


class SuccessResponse(BaseModel):
    success: bool = True


def user_out(u: UserRecord) -> UserOut:
    return UserOut(
        id=u.id,
        username=u.username,
        email=u.email,
        display_name=u.display_name,
        beer_count=u.beer_count,
        is_admin=u.is_admin,
        beer_fact=u.beer_fact,
        created_at=u.created_at,
    )


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_max_age_seconds,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


@router.post("/register", response_model=AuthResponse)
async def register(
    payload: RegisterRequest,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
    sessions: SessionManager = Depends(get_session_manager),
) -> AuthResponse:
    user = accounts.register(
        username=payload.username,
        email=payload.email,
        display_name=payload.display_name,
        password=payload.password,
        invite_code=payload.invite_code,
    )
    _set_session_cookie(response, sessions.create(user.id))
    return AuthResponse(user=user_out(user))


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
    sessions: SessionManager = Depends(get_session_manager),
) -> AuthResponse:
    user = accounts.authenticate(
        username=payload.username, email=payload.email, password=payload.password
    )
    _set_session_cookie(response, sessions.create(user.id))
    return AuthResponse(user=user_out(user))


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    request: Request,
    response: Response,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    sessions: SessionManager = Depends(get_session_manager),
) -> SuccessResponse:
    sessions.revoke(session_token_from_request(request, creds))
    response.delete_cookie(key=settings.session_cookie_name, path="/")
    return SuccessResponse()


@router.get("/me", response_model=UserResponse)
async def me(user: UserRecord = Depends(get_current_user)) -> UserResponse:
    return UserResponse(user=user_out(user))


@router.patch("/me", response_model=UserResponse)
async def update_me(
    payload: ProfileUpdateRequest,
    user: UserRecord = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> UserResponse:
    updated = accounts.update_profile(
        user.id, display_name=payload.display_name, beer_fact=payload.beer_fact
    )
    return UserResponse(user=user_out(updated))


@router.post("/password-reset", response_model=SuccessResponse)
async def password_reset_confirm(
    payload: PasswordResetConfirmRequest,
    accounts: AccountService = Depends(get_account_service),
) -> SuccessResponse:
    accounts.reset_password(
        username=payload.username,
        email=payload.email,
        code=payload.code,
        new_password=payload.new_password,
    )
    return SuccessResponse()
