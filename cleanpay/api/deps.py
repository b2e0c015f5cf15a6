# ruff: noqa: B008
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header

from cleanpay.schemas.auth import CallerContext


async def get_caller(
    x_user_id: str | None = Header(default=None),
    x_roles: str | None = Header(default=None),
) -> CallerContext:
    """Extract the caller identity forwarded by the identity provider.

    Missing headers produce an anonymous caller; rejecting it is left to the
    operation so that payload validation runs first.
    """
    claims = [role.strip() for role in (x_roles or "").split(",") if role.strip()]
    return CallerContext(user_id=x_user_id or None, claims=claims)


CallerDep = Annotated[CallerContext, Depends(get_caller)]
