from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from cleanpay.config import Settings, get_settings
from cleanpay.exceptions import PermissionDeniedError, UnauthenticatedError
from cleanpay.models.user import UserProfile

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from cleanpay.schemas.auth import CallerContext


def profile_has_finance_role(profile: UserProfile, finance_roles: set[str]) -> bool:
    """Check boolean role flags, then ``role``, then ``roles`` of a user profile."""
    flags = {"admin": profile.admin, "owner": profile.owner, "super_admin": profile.super_admin}
    if any(enabled for name, enabled in flags.items() if name in finance_roles):
        return True
    if profile.role and profile.role.lower() in finance_roles:
        return True
    return any(isinstance(role, str) and role.lower() in finance_roles for role in profile.roles or [])


async def require_finance_admin(
    session: AsyncSession,
    caller: CallerContext,
    settings: Settings | None = None,
) -> str:
    """Return the caller's user id if they may run payroll operations.

    Raises UnauthenticatedError without a caller identity and
    PermissionDeniedError without a finance role. Reads only ``users``.
    """
    if not caller.user_id:
        raise UnauthenticatedError()

    finance_roles = {role.lower() for role in (settings or get_settings()).finance_roles}
    if any(claim.lower() in finance_roles for claim in caller.claims):
        return caller.user_id

    result = await session.execute(select(UserProfile).where(col(UserProfile.id) == caller.user_id))
    profile = result.scalar_one_or_none()
    if profile is None or not profile_has_finance_role(profile, finance_roles):
        raise PermissionDeniedError()
    return caller.user_id
