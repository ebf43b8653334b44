"""Request authentication: bearer token -> Principal, plus capability guards."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_session
from backend.errors import AuthenticationError, PermissionDenied
from backend.models import User
from backend.policy import Capability, Principal, authorize
from backend.services import accounts

bearer = HTTPBearer(auto_error=False)


@dataclass
class RequestContext:
    principal: Principal
    user: User
    session: AsyncSession
    token: str


async def current_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    session: AsyncSession = Depends(get_session),
) -> RequestContext:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authorized, no token")
    principal, user = await accounts.resolve_token(session, credentials.credentials)
    return RequestContext(principal=principal, user=user, session=session, token=credentials.credentials)


def require(capability: Capability):
    """Dependency factory: the caller's context, or 403 when ``capability`` is denied."""

    async def _guard(ctx: RequestContext = Depends(current_context)) -> RequestContext:
        result = authorize(ctx.principal, capability)
        if not result.allowed:
            raise PermissionDenied(result.reason or "Access denied")
        return ctx

    return _guard
