from __future__ import annotations

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def new_document_id() -> str:
    """Generate an opaque document id (UUID4 hex)."""
    return uuid.uuid4().hex


def now_utc() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)


class DocumentBase(SQLModel):
    """Base model keyed by an opaque string document id."""

    id: str = Field(
        default_factory=new_document_id,
        primary_key=True,
        max_length=64,
    )


class TimestampMixin(SQLModel):
    """Mixin that adds a created_at timestamp."""

    created_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
