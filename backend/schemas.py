"""Pydantic schemas for FastAPI request / response models."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from utils.field_mapping import StartupPayload  # noqa: F401  (re-exported for routes)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


def _naive_utc(v: Optional[dt.datetime]) -> Optional[dt.datetime]:
    if v is not None and v.tzinfo is not None:
        v = v.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return v


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _check_username(v: Optional[str]) -> Optional[str]:
    if v is not None and len(v) < 3:
        raise PydanticCustomError("magic_username", "Username must be at least 3 characters")
    return v


def _check_password(v: Optional[str]) -> Optional[str]:
    if v is not None and len(v) < 6:
        raise PydanticCustomError("magic_password", "Password must be at least 6 characters")
    return v


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

class UserOut(CamelModel):
    id: str
    username: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: str
    is_active: bool
    last_login: Optional[dt.datetime] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


class GuestCreate(CamelModel):
    username: str
    password: str
    email: Optional[EmailStr] = None
    name: Optional[str] = None

    @field_validator("email", "name", mode="before")
    @classmethod
    def _blank(cls, v):
        return _blank_to_none(v)

    @field_validator("username")
    @classmethod
    def _username(cls, v):
        return _check_username(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v):
        return _check_password(v)


class GuestUpdate(CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("email", "username", "password", mode="before")
    @classmethod
    def _blank(cls, v):
        return _blank_to_none(v)

    @field_validator("username")
    @classmethod
    def _username(cls, v):
        return _check_username(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v):
        return _check_password(v)


class GuestEnvelope(BaseModel):
    message: str
    guest: UserOut


class LoginRequest(CamelModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    token: str
    expires_at: dt.datetime = Field(serialization_alias="expiresAt")
    user: UserOut


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _password(cls, v):
        return _check_password(v)


# ---------------------------------------------------------------------------
# Startup sub-collections
# ---------------------------------------------------------------------------

class AchievementCreate(CamelModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    type: Optional[str] = "General"
    date: Optional[dt.datetime] = None
    media_url: Optional[str] = None
    is_graduated: bool = False

    @field_validator("date")
    @classmethod
    def _date(cls, v):
        return _naive_utc(v)


class ProgressCreate(CamelModel):
    metric: str = Field(min_length=1)
    value: float
    date: Optional[dt.datetime] = None
    notes: Optional[str] = None

    @field_validator("date")
    @classmethod
    def _date(cls, v):
        return _naive_utc(v)


class RevenueCreate(CamelModel):
    amount: float = Field(ge=0)
    source: Optional[str] = None
    date: Optional[dt.datetime] = None
    description: Optional[str] = None

    @field_validator("date")
    @classmethod
    def _date(cls, v):
        return _naive_utc(v)


# ---------------------------------------------------------------------------
# Stats / import
# ---------------------------------------------------------------------------

class StageStat(BaseModel):
    stage: Optional[str] = Field(serialization_alias="_id")
    count: int


class StatsOverview(BaseModel):
    stage_stats: list[StageStat] = Field(serialization_alias="stageStats")
    total_count: int = Field(serialization_alias="totalCount")


class ImportRowResult(BaseModel):
    row: int
    status: str  # created | failed
    id: Optional[str] = None
    name: Optional[str] = None
    message: Optional[str] = None


class ImportSummary(BaseModel):
    total: int
    created: int
    failed: int
    results: list[ImportRowResult]
