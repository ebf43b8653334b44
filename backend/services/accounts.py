"""Login sessions, bearer-token resolution and the admin bootstrap."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

import config_env
from backend.errors import AuthenticationError, PermissionDenied, ValidationError
from backend.models import AuthSession, User, utcnow
from backend.policy import Principal
from backend.security import hash_password, new_token, verify_password
from backend.services._store import commit
from utils.field_mapping import normalize_username

logger = logging.getLogger(__name__)


def to_principal(user: User) -> Principal:
    return Principal(id=user.id, username=user.username, role=user.role, name=user.name or "")


async def get_user_by_username(session: AsyncSession, username: str) -> Optional[User]:
    return (
        await session.execute(select(User).where(User.username == normalize_username(username)))
    ).scalar_one_or_none()


async def login(session: AsyncSession, username: str, password: str) -> tuple[AuthSession, User]:
    user = await get_user_by_username(session, username)
    if user is None or not verify_password(password, user.password):
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise PermissionDenied("Account is deactivated. Contact the administrator.")

    now = utcnow()
    user.last_login = now
    auth = AuthSession(
        token=new_token(),
        user_id=user.id,
        created_at=now,
        expires_at=now + dt.timedelta(hours=config_env.SESSION_TTL_HOURS),
    )
    session.add(auth)
    await commit(session)
    await session.refresh(user)

    logger.info("User logged in: %s (%s)", user.username, user.role)
    return auth, user


async def resolve_token(session: AsyncSession, token: str) -> tuple[Principal, User]:
    """Active account behind a bearer token, or AuthenticationError."""
    row = (
        await session.execute(
            select(AuthSession, User).join(User, User.id == AuthSession.user_id).where(AuthSession.token == token)
        )
    ).first()
    if row is None:
        raise AuthenticationError("Not authorized, token failed")
    auth, user = row
    if auth.expires_at <= utcnow():
        raise AuthenticationError("Session expired. Please login again.")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated. Contact the administrator.")
    return to_principal(user), user


async def logout(session: AsyncSession, token: str):
    await session.execute(delete(AuthSession).where(AuthSession.token == token))
    await commit(session)


async def change_password(session: AsyncSession, user_id: str, current_password: str, new_password: str):
    user = await session.get(User, user_id)
    if user is None or not verify_password(current_password, user.password):
        raise ValidationError("Current password is incorrect")
    user.password = hash_password(new_password)
    await commit(session)
    logger.info("Password changed for %s", user.username)


async def ensure_admin(
    session: AsyncSession,
    username: str | None = None,
    password: str | None = None,
    email: str | None = None,
) -> tuple[User, bool]:
    """Create the admin account unless it exists. Returns (user, created)."""
    uname = normalize_username(username or config_env.ADMIN_USERNAME)
    existing = await get_user_by_username(session, uname)
    if existing is not None:
        return existing, False

    admin = User(
        username=uname,
        password=hash_password(password or config_env.ADMIN_PASSWORD),
        email=(email or config_env.ADMIN_EMAIL).lower(),
        name="Administrator",
        role="admin",
        is_active=True,
    )
    session.add(admin)
    await commit(session, "Admin user already exists")
    await session.refresh(admin)
    logger.info("Admin user created: %s", admin.username)
    return admin, True
