"""Auth dependencies: JWT validation, RBAC enforcement.

Tokens are issued elsewhere; this module only verifies them. ``sub`` carries
the user id.
"""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrdesk.auth.models import User
from hrdesk.common.constants import UserRole
from hrdesk.common.exceptions import ForbiddenException
from hrdesk.config import settings
from hrdesk.database import get_db

# Each role implicitly includes the lower roles
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.admin: {UserRole.admin, UserRole.hr, UserRole.employee},
    UserRole.hr: {UserRole.hr, UserRole.employee},
    UserRole.employee: {UserRole.employee},
}


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Validate JWT and return the authenticated, active User."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    result = await db.execute(
        select(User).where(User.id == user_id, User.is_active.is_(True))
    )
    user = result.scalars().first()
    if user is None:
        raise HTTPException(status_code=401, detail="User account is inactive or not found.")

    request.state.user_role = user.role
    return user


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy, e.g. admin can access hr endpoints.
    """

    async def _check(user: User = Depends(get_current_user)) -> User:
        effective_roles = _ROLE_HIERARCHY.get(user.role, {user.role})
        if not effective_roles.intersection(set(allowed_roles)):
            raise ForbiddenException(
                detail=f"Role '{user.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return user

    return _check


def require_employee(user: User) -> uuid.UUID:
    """Return the employee id linked to ``user`` or refuse the action."""
    if user.employee_id is None:
        raise ForbiddenException("This account is not linked to an employee record.")
    return user.employee_id


def is_approver(user: User) -> bool:
    approver_roles = {UserRole(r) for r in settings.approver_roles_list}
    return bool(_ROLE_HIERARCHY.get(user.role, {user.role}) & approver_roles)


def require_approver() -> Callable:
    """``require_role`` over the configured approver roles (admin, hr by default)."""
    return require_role(*(UserRole(r) for r in settings.approver_roles_list))
