"""Commit helpers and ORM -> dict conversion shared by the services."""

from __future__ import annotations

from pydantic.alias_generators import to_camel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.errors import ConflictError, UpstreamError


async def commit(session: AsyncSession, conflict_message: str = "Record already exists"):
    """Commit; a uniqueness violation from a concurrent writer becomes ConflictError."""
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError(conflict_message) from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        raise UpstreamError(exc) from exc


def row_to_dict(obj, exclude: tuple = ()) -> dict:
    """Column values of an ORM row keyed by camelCase attribute name."""
    return {
        to_camel(col.key): getattr(obj, col.key)
        for col in obj.__table__.columns
        if col.key not in exclude
    }
