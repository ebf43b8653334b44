"""Guest accounts: CRUD and activation toggle, admin-triggered."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.errors import ConflictError, NotFoundError, ValidationError
from backend.models import User
from backend.schemas import GuestCreate, GuestUpdate
from backend.security import hash_password
from backend.services._store import commit
from utils.field_mapping import is_reserved_username, normalize_guest, normalize_username

logger = logging.getLogger(__name__)

GUEST_ROLE = "guest"


async def list_guests(session: AsyncSession) -> list[User]:
    stmt = select(User).where(User.role == GUEST_ROLE).order_by(User.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


async def _get_guest(session: AsyncSession, guest_id: str) -> User:
    guest = (
        await session.execute(select(User).where(User.id == guest_id, User.role == GUEST_ROLE))
    ).scalar_one_or_none()
    if guest is None:
        raise NotFoundError("Guest user not found")
    return guest


async def ensure_available(
    session: AsyncSession,
    username: Optional[str] = None,
    email: Optional[str] = None,
    exclude_id: Optional[str] = None,
):
    """ConflictError when the username or email belongs to another account."""
    clauses = []
    if username:
        clauses.append(User.username == username)
    if email:
        clauses.append(User.email == email)
    if not clauses:
        return
    stmt = select(User).where(or_(*clauses))
    if exclude_id:
        stmt = stmt.where(User.id != exclude_id)
    clash = (await session.execute(stmt.limit(1))).scalar_one_or_none()
    if clash is not None:
        if username and clash.username == username:
            raise ConflictError("Username already exists")
        raise ConflictError("Email already exists")


async def create_guest(session: AsyncSession, body: GuestCreate, actor: Optional[str] = None) -> User:
    fields = normalize_guest(body.username, body.email, body.name)
    await ensure_available(session, fields["username"], fields["email"])

    guest = User(
        username=fields["username"],
        email=fields["email"],
        name=fields["name"],
        password=hash_password(body.password),
        role=GUEST_ROLE,
        is_active=True,
    )
    session.add(guest)
    await commit(session, "Username or email already exists")
    await session.refresh(guest)

    logger.info("Guest user created: %s by admin %s", guest.username, actor or "system")
    return guest


async def update_guest(
    session: AsyncSession, guest_id: str, body: GuestUpdate, actor: Optional[str] = None
) -> User:
    guest = await _get_guest(session, guest_id)
    sent = body.model_fields_set

    username = normalize_username(body.username) if body.username else None
    email = body.email.lower() if body.email else None
    if username and is_reserved_username(username):
        raise ValidationError(f'Cannot use "{username}" as guest username')
    await ensure_available(session, username, email, exclude_id=guest.id)

    if username:
        guest.username = username
    if email:
        guest.email = email
    if "name" in sent:
        guest.name = body.name
    if body.is_active is not None:
        guest.is_active = body.is_active
    if body.password:
        guest.password = hash_password(body.password)

    await commit(session, "Username or email already exists")
    await session.refresh(guest)

    logger.info("Guest user updated: %s by admin %s", guest.username, actor or "system")
    return guest


async def delete_guest(session: AsyncSession, guest_id: str, actor: Optional[str] = None) -> dict:
    guest = await _get_guest(session, guest_id)
    username = guest.username
    await session.delete(guest)
    await commit(session)

    logger.info("Guest user deleted: %s by admin %s", username, actor or "system")
    return {"message": "Guest user deleted successfully"}


async def toggle_guest_status(session: AsyncSession, guest_id: str, actor: Optional[str] = None) -> tuple[User, str]:
    guest = await _get_guest(session, guest_id)
    guest.is_active = not guest.is_active
    await commit(session)
    await session.refresh(guest)

    state = "activated" if guest.is_active else "deactivated"
    logger.info("Guest user %s: %s by admin %s", state, guest.username, actor or "system")
    return guest, f"Guest user {state} successfully"
