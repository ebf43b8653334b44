"""
SQLAlchemy ORM models -- relational schema for the incubator admin backend.

Tables
------
users               -- admin + guest accounts
auth_sessions       -- bearer tokens issued at login
startups            -- canonical startup records
achievements        -- per-startup achievements (cascade with startup)
progress_history    -- per-startup metric snapshots (cascade with startup)
revenue_entries     -- per-startup revenue history (cascade with startup)
agreements          -- uploaded documents / agreements (cascade with startup)
"""

from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> dt.datetime:
    """Naive UTC timestamp, the form stored in DateTime columns."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_id)
    username = Column(String(150), unique=True, nullable=False, index=True)
    email = Column(String(320), unique=True, nullable=True, index=True)
    password = Column(String(128), nullable=False)  # bcrypt hash
    name = Column(String(255), default="")
    role = Column(String(20), nullable=False, default="guest", index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    sessions = relationship(
        "AuthSession", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class AuthSession(Base):
    __tablename__ = "auth_sessions"

    token = Column(String(128), primary_key=True)
    user_id = Column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(DateTime, default=utcnow)
    expires_at = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="sessions")


# ---------------------------------------------------------------------------
# Startups
# ---------------------------------------------------------------------------

class Startup(Base):
    __tablename__ = "startups"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(512), nullable=False, index=True)
    founder = Column(String(255), nullable=False)
    email = Column(String(320), unique=True, nullable=True)
    phone = Column(String(64), nullable=True)
    sector = Column(String(255), nullable=False, index=True)
    stage = Column(String(20), nullable=False, default="S0", index=True)
    status = Column(String(50), default="Active")
    city = Column(String(255), nullable=True)
    domain = Column(String(255), nullable=True)
    website = Column(String(512), nullable=True)
    description = Column(Text, nullable=True)

    funding_received = Column(Float, nullable=False, default=0)
    revenue_generated = Column(Float, nullable=False, default=0)
    employee_count = Column(Integer, nullable=False, default=0)

    onboarded_date = Column(DateTime, nullable=False, default=utcnow)
    recognition_date = Column(DateTime, nullable=True)
    graduated_date = Column(DateTime, nullable=True)

    # External registry identifiers
    dpiit_no = Column(String(128), nullable=True)
    bhaskar_id = Column(String(128), nullable=True)

    guest_id = Column(
        String(32), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    achievements = relationship(
        "Achievement",
        back_populates="startup",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="desc(Achievement.date)",
    )
    progress_history = relationship(
        "ProgressEntry",
        back_populates="startup",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="desc(ProgressEntry.date)",
    )
    revenue_history = relationship(
        "RevenueEntry",
        back_populates="startup",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="desc(RevenueEntry.date)",
    )
    agreements = relationship(
        "Agreement",
        back_populates="startup",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="desc(Agreement.upload_date)",
    )

    __table_args__ = (
        Index("ix_startups_stage_sector", "stage", "sector"),
    )


class Achievement(Base):
    __tablename__ = "achievements"

    id = Column(String(32), primary_key=True, default=new_id)
    startup_id = Column(
        String(32), ForeignKey("startups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(64), default="General")
    date = Column(DateTime, nullable=False, default=utcnow)
    media_url = Column(String(1024), nullable=True)
    is_graduated = Column(Boolean, nullable=False, default=False)

    startup = relationship("Startup", back_populates="achievements")


class ProgressEntry(Base):
    __tablename__ = "progress_history"

    id = Column(String(32), primary_key=True, default=new_id)
    startup_id = Column(
        String(32), ForeignKey("startups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    metric = Column(String(255), nullable=False)
    value = Column(Float, nullable=False)
    date = Column(DateTime, nullable=False, default=utcnow)
    notes = Column(Text, nullable=True)

    startup = relationship("Startup", back_populates="progress_history")


class RevenueEntry(Base):
    __tablename__ = "revenue_entries"

    id = Column(String(32), primary_key=True, default=new_id)
    startup_id = Column(
        String(32), ForeignKey("startups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount = Column(Float, nullable=False, default=0)
    source = Column(String(255), nullable=True)
    date = Column(DateTime, nullable=False, default=utcnow)
    description = Column(Text, nullable=True)

    startup = relationship("Startup", back_populates="revenue_history")


class Agreement(Base):
    __tablename__ = "agreements"

    id = Column(String(32), primary_key=True, default=new_id)
    startup_id = Column(
        String(32), ForeignKey("startups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(512), nullable=False)
    type = Column(String(64), default="Document")
    file_url = Column(String(1024), nullable=False)
    upload_date = Column(DateTime, nullable=False, default=utcnow)
    expiry_date = Column(DateTime, nullable=True)

    startup = relationship("Startup", back_populates="agreements")
