"""Guest account management (admin only)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.auth import RequestContext, require
from backend.policy import Capability
from backend.schemas import GuestCreate, GuestEnvelope, GuestUpdate, UserOut
from backend.services import guests

router = APIRouter(prefix="/guests", tags=["guests"])

manage = require(Capability.MANAGE_GUESTS)


@router.get("", response_model=list[UserOut])
@router.get("/", response_model=list[UserOut], include_in_schema=False)
async def list_guests(ctx: RequestContext = Depends(manage)):
    return await guests.list_guests(ctx.session)


@router.post("", response_model=GuestEnvelope, status_code=201)
@router.post("/", response_model=GuestEnvelope, status_code=201, include_in_schema=False)
async def create_guest(body: GuestCreate, ctx: RequestContext = Depends(manage)):
    guest = await guests.create_guest(ctx.session, body, actor=ctx.principal.username)
    return GuestEnvelope(message="Guest user created successfully", guest=UserOut.model_validate(guest))


@router.put("/{guest_id}", response_model=GuestEnvelope)
async def update_guest(guest_id: str, body: GuestUpdate, ctx: RequestContext = Depends(manage)):
    guest = await guests.update_guest(ctx.session, guest_id, body, actor=ctx.principal.username)
    return GuestEnvelope(message="Guest user updated successfully", guest=UserOut.model_validate(guest))


@router.delete("/{guest_id}")
async def delete_guest(guest_id: str, ctx: RequestContext = Depends(manage)):
    return await guests.delete_guest(ctx.session, guest_id, actor=ctx.principal.username)


@router.post("/{guest_id}/toggle-status", response_model=GuestEnvelope)
async def toggle_guest_status(guest_id: str, ctx: RequestContext = Depends(manage)):
    guest, message = await guests.toggle_guest_status(ctx.session, guest_id, actor=ctx.principal.username)
    return GuestEnvelope(message=message, guest=UserOut.model_validate(guest))
