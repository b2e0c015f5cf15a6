from __future__ import annotations

from pydantic import BaseModel


class CallerContext(BaseModel):
    """Caller identity as supplied by the identity provider.

    ``user_id`` is ``None`` for unauthenticated calls. ``claims`` holds role
    claims from the caller's token (e.g. ``admin``).
    """

    user_id: str | None = None
    claims: list[str] = []
