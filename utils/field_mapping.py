"""
Field mapping between the dashboard's legacy keys and the canonical schema.

Write path: ``normalize`` turns a payload that may mix canonical keys
(``name``, ``founder``, ``email``, ``phone`` ...) and legacy aliases
(``companyName``, ``founderName``, ``founderEmail``, ``founderMobile`` ...)
into a canonical record. Canonical keys always win; aliases are never
persisted.

Read path: ``expand`` adds the legacy keys (and the display code) back so
old and new clients can both read the response.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

import config_env
from backend.errors import ValidationError, format_validation_errors

STAGES = ("S0", "S1", "S2", "S3", "One-on-One")
OTHER_SECTOR = "Other"

# (canonical, legacy) attribute pairs on StartupPayload, in precedence order
FIELD_PAIRS = (
    ("name", "company_name"),
    ("founder", "founder_name"),
    ("email", "founder_email"),
    ("phone", "founder_mobile"),
    ("funding_received", "revenue"),
    ("employee_count", "team_size"),
    ("revenue_generated", "revenue"),
    ("onboarded_date", "registration_date"),
)

PLAIN_FIELDS = (
    "sector",
    "stage",
    "status",
    "city",
    "domain",
    "website",
    "description",
    "recognition_date",
    "graduated_date",
    "dpiit_no",
    "bhaskar_id",
    "guest_id",
)

# legacy key on the wire -> canonical key it mirrors on read
LEGACY_READ_KEYS = {
    "companyName": "name",
    "founderName": "founder",
    "founderEmail": "email",
    "founderMobile": "phone",
    "teamSize": "employeeCount",
    "registrationDate": "onboardedDate",
}

# writable canonical keys, camelCase, in a stable order
CANONICAL_KEYS = tuple(dict.fromkeys(
    [to_camel(canonical) for canonical, _ in FIELD_PAIRS] + [to_camel(f) for f in PLAIN_FIELDS]
))

REQUIRED_MESSAGES = {
    "name": "Company name is required",
    "founder": "Founder name is required",
    "sector": "Sector is required",
}

_DATE_FIELDS = ("onboarded_date", "registration_date", "recognition_date", "graduated_date")


def _defaults() -> dict:
    return {
        "stage": "S0",
        "status": "Active",
        "fundingReceived": 0.0,
        "revenueGenerated": 0.0,
        "employeeCount": 0,
        "onboardedDate": dt.datetime.now(dt.timezone.utc).replace(tzinfo=None),
    }


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class StartupPayload(BaseModel):
    """Every key a startup write may carry, canonical and legacy alike."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    # canonical
    name: Optional[str] = None
    founder: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    sector: Optional[str] = None
    sector_other: Optional[str] = None
    stage: Optional[Literal["S0", "S1", "S2", "S3", "One-on-One"]] = None
    status: Optional[str] = None
    city: Optional[str] = None
    domain: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    problem_solving: Optional[str] = None
    solution: Optional[str] = None
    funding_received: Optional[float] = Field(None, ge=0)
    revenue_generated: Optional[float] = Field(None, ge=0)
    employee_count: Optional[int] = Field(None, ge=0)
    onboarded_date: Optional[dt.datetime] = None
    recognition_date: Optional[dt.datetime] = None
    graduated_date: Optional[dt.datetime] = None
    dpiit_no: Optional[str] = None
    bhaskar_id: Optional[str] = None
    guest_id: Optional[str] = None

    # legacy aliases (write-only)
    company_name: Optional[str] = None
    founder_name: Optional[str] = None
    founder_email: Optional[EmailStr] = None
    founder_mobile: Optional[str] = None
    revenue: Optional[float] = Field(None, ge=0)
    team_size: Optional[int] = Field(None, ge=0)
    registration_date: Optional[dt.datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _blank_strings_to_none(cls, data):
        if isinstance(data, Mapping):
            return {k: (None if _is_empty(v) else v) for k, v in data.items()}
        return data

    @field_validator(*_DATE_FIELDS)
    @classmethod
    def _naive_utc(cls, v):
        if v is not None and v.tzinfo is not None:
            v = v.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return v


def parse_payload(payload: Mapping | StartupPayload | None) -> StartupPayload:
    if isinstance(payload, StartupPayload):
        return payload
    try:
        return StartupPayload.model_validate(payload or {})
    except PydanticValidationError as exc:
        raise ValidationError(format_validation_errors(exc.errors())) from exc


def normalize(payload: Mapping | StartupPayload | None, partial: bool = False) -> dict:
    """
    Merge canonical and legacy keys into a canonical record (camelCase keys).

    ``partial=False`` (create): every canonical key is present, missing values
    take their defaults and name/founder/sector are required.
    ``partial=True`` (update): only keys the caller sent are emitted.
    """
    p = parse_payload(payload)
    sent = p.model_fields_set
    record: dict = {}

    for canonical, legacy in FIELD_PAIRS:
        value = getattr(p, canonical)
        if _is_empty(value):
            value = getattr(p, legacy)
        if partial and canonical not in sent and legacy not in sent:
            continue
        record[to_camel(canonical)] = value

    for field in PLAIN_FIELDS:
        if partial and field not in sent:
            continue
        record[to_camel(field)] = getattr(p, field)

    if record.get("sector") == OTHER_SECTOR:
        record["sector"] = p.sector_other or OTHER_SECTOR

    if _is_empty(record.get("description")) and p.problem_solving and p.solution:
        record["description"] = f"Problem: {p.problem_solving}\nSolution: {p.solution}"

    if record.get("email"):
        record["email"] = record["email"].lower()

    for key, message in REQUIRED_MESSAGES.items():
        if key in record or not partial:
            if _is_empty(record.get(key)):
                raise ValidationError(message)

    defaults = _defaults()
    for key, default in defaults.items():
        if key in record and record[key] is not None:
            continue
        if partial:
            record.pop(key, None)
        else:
            record[key] = default

    return record


def expand(record: Mapping) -> dict:
    """Add the legacy read keys and the display code to a canonical record."""
    out = dict(record)
    for legacy, canonical in LEGACY_READ_KEYS.items():
        out[legacy] = record.get(canonical)
    if record.get("id"):
        out["magicCode"] = display_code(record["id"])
    return out


def display_code(identifier) -> str:
    """Last six characters of the id, uppercased. Never stored."""
    return str(identifier or "")[-6:].upper()


# ---------------------------------------------------------------------------
# Guest accounts
# ---------------------------------------------------------------------------

def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


def placeholder_email(username: str, domain: str | None = None) -> str:
    return f"{normalize_username(username)}@{domain or config_env.GUEST_EMAIL_DOMAIN}"


def is_reserved_username(username: str) -> bool:
    reserved = {normalize_username(u) for u in config_env.RESERVED_USERNAMES}
    return normalize_username(username) in reserved


def normalize_guest(username: str, email: str | None = None, name: str | None = None) -> dict:
    """Canonical guest fields for a new account (password handled separately)."""
    uname = normalize_username(username)
    if is_reserved_username(uname):
        raise ValidationError(f'Cannot use "{uname}" as guest username')
    return {
        "username": uname,
        "email": email.strip().lower() if not _is_empty(email) else placeholder_email(uname),
        "name": name.strip() if not _is_empty(name) else (username or "").strip(),
    }
