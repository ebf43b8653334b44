"""Auth endpoints -- login, current user, logout, password change."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth import RequestContext, current_context
from backend.database import get_session
from backend.schemas import ChangePasswordRequest, LoginRequest, LoginResponse, UserOut
from backend.services import accounts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, session: AsyncSession = Depends(get_session)):
    auth, user = await accounts.login(session, body.username, body.password)
    return LoginResponse(token=auth.token, expires_at=auth.expires_at, user=UserOut.model_validate(user))


@router.get("/me", response_model=UserOut)
async def me(ctx: RequestContext = Depends(current_context)):
    return ctx.user


@router.post("/logout")
async def logout(ctx: RequestContext = Depends(current_context)):
    await accounts.logout(ctx.session, ctx.token)
    logger.info("User logged out: %s", ctx.principal.username)
    return {"message": "Logged out successfully"}


@router.post("/change-password")
async def change_password(body: ChangePasswordRequest, ctx: RequestContext = Depends(current_context)):
    await accounts.change_password(ctx.session, ctx.principal.id, body.current_password, body.new_password)
    return {"message": "Password changed successfully"}
