"""Startup records: CRUD, nested collections, stats and bulk import."""

from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path
from typing import Iterable, Mapping, Optional

from pydantic.alias_generators import to_snake
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

import config_env
from backend.errors import AppError, ConflictError, NotFoundError, ValidationError
from backend.models import (
    Achievement,
    Agreement,
    ProgressEntry,
    RevenueEntry,
    Startup,
    User,
    utcnow,
)
from backend.schemas import AchievementCreate, ProgressCreate, RevenueCreate
from backend.services._store import commit, row_to_dict
from utils.field_mapping import CANONICAL_KEYS, StartupPayload, expand, normalize, placeholder_email
from utils.filters import filter_startups

logger = logging.getLogger(__name__)

EMAIL_CONFLICT = "Startup with this email already exists"

# wire key -> relationship attribute
NESTED = {
    "achievements": "achievements",
    "progressHistory": "progress_history",
    "revenueHistory": "revenue_history",
    "agreements": "agreements",
}

LIST_NESTED = ("achievements", "progressHistory")
LIST_NESTED_LIMIT = 5


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def startup_to_record(
    startup: Startup,
    nested: Iterable[str] = (),
    limit: Optional[int] = None,
) -> dict:
    """Canonical camelCase record; only the listed collections are touched."""
    record = {"id": startup.id}
    for key in CANONICAL_KEYS:
        record[key] = getattr(startup, to_snake(key))
    record["createdAt"] = startup.created_at
    record["updatedAt"] = startup.updated_at
    for key in nested:
        items = list(getattr(startup, NESTED[key]))
        if limit is not None:
            items = items[:limit]
        record[key] = [row_to_dict(item) for item in items]
    return record


def _loader_options(nested: Iterable[str]):
    return [selectinload(getattr(Startup, NESTED[key])) for key in nested]


# ---------------------------------------------------------------------------
# Lookups / checks
# ---------------------------------------------------------------------------

async def _load(session: AsyncSession, startup_id: str, nested: Iterable[str] = ()) -> Startup:
    stmt = (
        select(Startup)
        .options(*_loader_options(nested))
        .where(Startup.id == startup_id)
        .execution_options(populate_existing=True)
    )
    startup = (await session.execute(stmt)).scalar_one_or_none()
    if startup is None:
        raise NotFoundError("Startup not found")
    return startup


async def _ensure_exists(session: AsyncSession, startup_id: str):
    found = (
        await session.execute(select(Startup.id).where(Startup.id == startup_id))
    ).scalar_one_or_none()
    if found is None:
        raise NotFoundError("Startup not found")


async def ensure_email_available(
    session: AsyncSession, email: Optional[str], exclude_id: Optional[str] = None
):
    """ConflictError when ``email`` already belongs to a different startup."""
    if not email:
        return
    stmt = select(Startup.id).where(func.lower(Startup.email) == email.lower())
    if exclude_id:
        stmt = stmt.where(Startup.id != exclude_id)
    if (await session.execute(stmt.limit(1))).scalar_one_or_none() is not None:
        raise ConflictError(EMAIL_CONFLICT)


async def _linked_guest(session: AsyncSession, guest_id: str) -> User:
    guest = await session.get(User, guest_id)
    if guest is None:
        raise ValidationError("Linked guest account not found")
    return guest


def _apply(startup: Startup, data: Mapping):
    for key, value in data.items():
        setattr(startup, to_snake(key), value)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def list_startups(
    session: AsyncSession,
    stage: Optional[str] = None,
    sector: Optional[str] = None,
    search: Optional[str] = None,
    nested: Iterable[str] = LIST_NESTED,
    limit: Optional[int] = LIST_NESTED_LIMIT,
) -> list[dict]:
    """Expanded records, newest first."""
    nested = tuple(nested)
    stmt = select(Startup).options(*_loader_options(nested)).order_by(Startup.created_at.desc())
    if stage and stage != "all":
        stmt = stmt.where(Startup.stage == stage)
    if sector and sector != "all":
        stmt = stmt.where(Startup.sector == sector)
    startups = (await session.execute(stmt)).scalars().all()
    records = [expand(startup_to_record(s, nested, limit)) for s in startups]
    return filter_startups(records, search=search)


async def get_startup(session: AsyncSession, startup_id: str) -> dict:
    startup = await _load(session, startup_id, NESTED)
    return expand(startup_to_record(startup, NESTED))


async def stage_overview(session: AsyncSession) -> dict:
    rows = (
        await session.execute(
            select(Startup.stage, func.count(Startup.id)).group_by(Startup.stage).order_by(Startup.stage)
        )
    ).all()
    total = (await session.execute(select(func.count(Startup.id)))).scalar() or 0
    return {
        "stage_stats": [{"stage": stage, "count": count} for stage, count in rows],
        "total_count": total,
    }


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_startup(
    session: AsyncSession,
    payload: Mapping | StartupPayload,
    actor: Optional[str] = None,
) -> dict:
    data = normalize(payload)
    if data.get("guestId"):
        guest = await _linked_guest(session, data["guestId"])
        if not data.get("email"):
            data["email"] = placeholder_email(guest.username)
    await ensure_email_available(session, data.get("email"))

    startup = Startup()
    _apply(startup, data)
    session.add(startup)
    await commit(session, EMAIL_CONFLICT)
    await session.refresh(startup)

    logger.info("Startup created: %s (%s) by %s", startup.name, startup.id, actor or "system")
    return expand(startup_to_record(startup))


async def update_startup(
    session: AsyncSession,
    startup_id: str,
    payload: Mapping | StartupPayload,
    actor: Optional[str] = None,
) -> dict:
    startup = await _load(session, startup_id)
    data = normalize(payload, partial=True)
    if data.get("email"):
        await ensure_email_available(session, data["email"], exclude_id=startup_id)
    if data.get("guestId"):
        await _linked_guest(session, data["guestId"])

    _apply(startup, data)
    await commit(session, EMAIL_CONFLICT)
    await session.refresh(startup)

    logger.info("Startup updated: %s (%s) by %s", startup.name, startup.id, actor or "system")
    return expand(startup_to_record(startup))


async def delete_startup(session: AsyncSession, startup_id: str, actor: Optional[str] = None) -> dict:
    startup = await _load(session, startup_id)
    await session.delete(startup)
    await commit(session)
    logger.info("Startup deleted: %s (%s) by %s", startup.name, startup_id, actor or "system")
    return {"message": "Startup deleted successfully"}


async def add_achievement(session: AsyncSession, startup_id: str, body: AchievementCreate) -> dict:
    await _ensure_exists(session, startup_id)
    achievement = Achievement(
        startup_id=startup_id,
        title=body.title,
        description=body.description,
        type=body.type or "General",
        date=body.date or utcnow(),
        media_url=body.media_url,
        is_graduated=body.is_graduated,
    )
    session.add(achievement)
    await commit(session)
    return row_to_dict(achievement)


async def delete_achievement(session: AsyncSession, startup_id: str, achievement_id: str) -> dict:
    achievement = (
        await session.execute(
            select(Achievement).where(
                Achievement.id == achievement_id, Achievement.startup_id == startup_id
            )
        )
    ).scalar_one_or_none()
    if achievement is None:
        raise NotFoundError("Achievement not found")
    await session.delete(achievement)
    await commit(session)
    return {"message": "Achievement deleted successfully"}


async def add_progress(session: AsyncSession, startup_id: str, body: ProgressCreate) -> dict:
    await _ensure_exists(session, startup_id)
    entry = ProgressEntry(
        startup_id=startup_id,
        metric=body.metric,
        value=body.value,
        date=body.date or utcnow(),
        notes=body.notes,
    )
    session.add(entry)
    await commit(session)
    return row_to_dict(entry)


async def add_revenue(session: AsyncSession, startup_id: str, body: RevenueCreate) -> dict:
    await _ensure_exists(session, startup_id)
    entry = RevenueEntry(
        startup_id=startup_id,
        amount=body.amount,
        source=body.source,
        date=body.date or utcnow(),
        description=body.description,
    )
    session.add(entry)
    await commit(session)
    return row_to_dict(entry)


def _stored_name(filename: str) -> str:
    safe = re.sub(r"[^A-Za-z0-9._-]+", "_", Path(filename or "document").name).strip("._") or "document"
    return f"{uuid.uuid4().hex[:12]}-{safe}"


async def add_document(
    session: AsyncSession,
    startup_id: str,
    filename: str,
    content: bytes,
    title: Optional[str] = None,
    doc_type: Optional[str] = None,
    expiry_date=None,
    upload_dir: Optional[str] = None,
) -> dict:
    """Write the upload under ``upload_dir`` and record it as an agreement."""
    await _ensure_exists(session, startup_id)
    target_dir = Path(upload_dir or config_env.UPLOAD_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)
    stored = _stored_name(filename)
    (target_dir / stored).write_bytes(content)

    agreement = Agreement(
        startup_id=startup_id,
        title=title or filename or stored,
        type=doc_type or "Document",
        file_url=f"/uploads/{stored}",
        upload_date=utcnow(),
        expiry_date=expiry_date,
    )
    session.add(agreement)
    await commit(session)
    return row_to_dict(agreement)


async def import_startups(
    session: AsyncSession,
    rows: list[dict],
    actor: Optional[str] = None,
) -> dict:
    """Create each row on its own; one bad row does not stop the rest."""
    results = []
    for idx, row in enumerate(rows, start=1):
        name = row.get("name") or row.get("companyName")
        try:
            created = await create_startup(session, row, actor=actor)
        except AppError as exc:
            await session.rollback()
            results.append({"row": idx, "status": "failed", "name": name, "message": exc.message})
            logger.warning("Import row %d (%s) failed: %s", idx, name, exc.message)
            continue
        results.append({"row": idx, "status": "created", "id": created["id"], "name": created["name"]})

    created_count = sum(1 for r in results if r["status"] == "created")
    logger.info("Imported %d of %d startup(s) by %s", created_count, len(rows), actor or "system")
    return {
        "total": len(rows),
        "created": created_count,
        "failed": len(rows) - created_count,
        "results": results,
    }
