"""Startup endpoints -- CRUD, nested collections, stats, exports, import."""

from __future__ import annotations

import datetime as dt
import logging
import re
import unicodedata
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Body, Depends, File, Form, Query, Response, UploadFile

from backend.auth import RequestContext, require
from backend.errors import NotFoundError, ValidationError
from backend.policy import Capability
from backend.schemas import (
    AchievementCreate,
    ImportSummary,
    ProgressCreate,
    RevenueCreate,
    StageStat,
    StatsOverview,
)
from backend.services import startups
from utils.exporters import (
    ExportArtifact,
    NothingToExport,
    achievements_report,
    export_startups,
    revenue_report,
    startup_detail_pdf,
)
from utils.formatters import parse_date
from utils.importer import parse_import_file

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/startups", tags=["startups"])

read = require(Capability.READ)
manage = require(Capability.MANAGE_STARTUPS)
export = require(Capability.EXPORT)
bulk_import = require(Capability.IMPORT)


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII ``filename`` and the exact UTF-8 ``filename*``."""
    fallback = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    fallback = re.sub(r'["\\\x00-\x1f\x7f]', "", fallback)
    fallback = re.sub(r"-{2,}", "-", fallback).strip() or "export"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def _download(build, *args, **kwargs) -> Response:
    """Run an exporter and wrap its artifact as an attachment."""
    try:
        artifact: ExportArtifact = build(*args, **kwargs)
    except NothingToExport as exc:
        raise NotFoundError(str(exc)) from exc
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": content_disposition(artifact.filename)},
    )


# ---------------------------------------------------------------------------
# Collection-level routes (declared before /{startup_id})
# ---------------------------------------------------------------------------

@router.get("")
@router.get("/", include_in_schema=False)
async def list_startups(
    stage: Optional[str] = None,
    sector: Optional[str] = None,
    search: Optional[str] = None,
    ctx: RequestContext = Depends(read),
):
    return await startups.list_startups(ctx.session, stage=stage, sector=sector, search=search)


@router.post("", status_code=201)
@router.post("/", status_code=201, include_in_schema=False)
async def create_startup(payload: dict = Body(...), ctx: RequestContext = Depends(manage)):
    return await startups.create_startup(ctx.session, payload, actor=ctx.principal.username)


@router.get("/stats/overview", response_model=StatsOverview)
async def stats_overview(ctx: RequestContext = Depends(read)):
    stats = await startups.stage_overview(ctx.session)
    return StatsOverview(
        stage_stats=[StageStat(**row) for row in stats["stage_stats"]],
        total_count=stats["total_count"],
    )


@router.get("/export")
async def export_collection(
    format: str = Query("pdf"),
    title: str = Query("Startups"),
    stage: Optional[str] = None,
    sector: Optional[str] = None,
    search: Optional[str] = None,
    ctx: RequestContext = Depends(export),
):
    records = await startups.list_startups(
        ctx.session, stage=stage, sector=sector, search=search, nested=startups.NESTED, limit=None
    )
    logger.info("Export %s of %d startup(s) by %s", format, len(records), ctx.principal.username)
    return _download(export_startups, records, format, title=title)


@router.get("/reports/achievements")
async def achievements_export(format: str = Query("pdf"), ctx: RequestContext = Depends(export)):
    records = await startups.list_startups(ctx.session, nested=("achievements",), limit=None)
    return _download(achievements_report, records, format)


@router.get("/reports/revenue")
async def revenue_export(format: str = Query("pdf"), ctx: RequestContext = Depends(export)):
    records = await startups.list_startups(ctx.session, nested=("revenueHistory",), limit=None)
    return _download(revenue_report, records, format)


@router.post("/import", response_model=ImportSummary)
async def import_file(file: UploadFile = File(...), ctx: RequestContext = Depends(bulk_import)):
    content = await file.read()
    try:
        rows = parse_import_file(file.filename or "", content)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if not rows:
        raise ValidationError("Import file contains no rows")
    return await startups.import_startups(ctx.session, rows, actor=ctx.principal.username)


# ---------------------------------------------------------------------------
# Single startup
# ---------------------------------------------------------------------------

@router.get("/{startup_id}")
async def get_startup(startup_id: str, ctx: RequestContext = Depends(read)):
    return await startups.get_startup(ctx.session, startup_id)


@router.put("/{startup_id}")
async def update_startup(startup_id: str, payload: dict = Body(...), ctx: RequestContext = Depends(manage)):
    return await startups.update_startup(ctx.session, startup_id, payload, actor=ctx.principal.username)


@router.delete("/{startup_id}")
async def delete_startup(startup_id: str, ctx: RequestContext = Depends(manage)):
    return await startups.delete_startup(ctx.session, startup_id, actor=ctx.principal.username)


@router.get("/{startup_id}/export")
async def export_one(startup_id: str, ctx: RequestContext = Depends(export)):
    record = await startups.get_startup(ctx.session, startup_id)
    return _download(startup_detail_pdf, record)


@router.post("/{startup_id}/achievements", status_code=201)
async def add_achievement(startup_id: str, body: AchievementCreate, ctx: RequestContext = Depends(manage)):
    return await startups.add_achievement(ctx.session, startup_id, body)


@router.delete("/{startup_id}/achievements/{achievement_id}")
async def delete_achievement(startup_id: str, achievement_id: str, ctx: RequestContext = Depends(manage)):
    return await startups.delete_achievement(ctx.session, startup_id, achievement_id)


@router.post("/{startup_id}/progress", status_code=201)
async def add_progress(startup_id: str, body: ProgressCreate, ctx: RequestContext = Depends(manage)):
    return await startups.add_progress(ctx.session, startup_id, body)


@router.post("/{startup_id}/revenue", status_code=201)
async def add_revenue(startup_id: str, body: RevenueCreate, ctx: RequestContext = Depends(manage)):
    return await startups.add_revenue(ctx.session, startup_id, body)


@router.post("/{startup_id}/upload", status_code=201)
async def upload_document(
    startup_id: str,
    document: UploadFile = File(...),
    title: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    expiry_date: Optional[str] = Form(None, alias="expiryDate"),
    ctx: RequestContext = Depends(manage),
):
    expiry = parse_date(expiry_date)
    content = await document.read()
    return await startups.add_document(
        ctx.session,
        startup_id,
        document.filename or "document",
        content,
        title=title,
        doc_type=type,
        expiry_date=dt.datetime.combine(expiry, dt.time()) if expiry else None,
    )
