"""
Capability gate.

Every route names the capability it needs; ``authorize`` is the only place
that maps roles to capabilities. Services never branch on roles -- the
principal only reaches them for audit attribution.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Capability(str, Enum):
    READ = "read"
    MANAGE_STARTUPS = "manage_startups"
    MANAGE_GUESTS = "manage_guests"
    EXPORT = "export"
    IMPORT = "import"


ROLE_CAPABILITIES: dict[str, frozenset] = {
    "admin": frozenset(Capability),
    "guest": frozenset({Capability.READ}),
}


@dataclass(frozen=True)
class Principal:
    id: str
    username: str
    role: str
    name: str = ""


@dataclass(frozen=True)
class AuthorizationResult:
    allowed: bool
    capability: Capability
    reason: Optional[str] = None


def capabilities_for(role: str) -> frozenset:
    return ROLE_CAPABILITIES.get(role, frozenset())


def authorize(principal: Optional[Principal], capability: Capability) -> AuthorizationResult:
    if principal is None:
        return AuthorizationResult(False, capability, "Not authorized")
    if capability in capabilities_for(principal.role):
        return AuthorizationResult(True, capability)
    if capability is Capability.READ:
        reason = "Not authorized"
    else:
        reason = "Access denied. Admin only."
    return AuthorizationResult(False, capability, reason)
