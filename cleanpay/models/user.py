from __future__ import annotations

import sqlalchemy as sa
from sqlmodel import Field

from cleanpay.models.base import DocumentBase, TimestampMixin


class UserProfile(DocumentBase, TimestampMixin, table=True):
    """A user document carrying role flags, as maintained by the identity workflows."""

    __tablename__ = "users"

    profile_id: str | None = Field(default=None, max_length=128)
    admin: bool = False
    owner: bool = False
    super_admin: bool = False
    role: str | None = Field(default=None, max_length=50)
    roles: list[str] | None = Field(default=None, sa_type=sa.JSON)
