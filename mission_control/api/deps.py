"""
FastAPI dependencies for identity, role checks, and database sessions.

Authentication is out of scope: the acting user is named by the X-User-Id header
and looked up in the users table.
"""

import uuid
from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from mission_control.database import async_session_maker
from mission_control.kernel.models.user import User, UserRole

USER_ID_HEADER = "X-User-Id"


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields database sessions."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    db: DbSession,
    x_user_id: Annotated[Optional[str], Header(alias=USER_ID_HEADER)] = None,
) -> User:
    """Resolve the acting user from the X-User-Id header or raise 401."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {USER_ID_HEADER} header",
        )
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid {USER_ID_HEADER} header",
        )

    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


class RoleChecker:
    """
    Dependency requiring the acting user to hold one of ``roles``.

    Usage:
        @router.post("/missions/{mission_id}/review")
        async def review(moderator: OfficerUser, db: DbSession): ...
    """

    def __init__(self, *roles: UserRole):
        self.roles = roles

    async def __call__(self, user: CurrentUser) -> User:
        if UserRole(user.role) not in self.roles:
            allowed = ", ".join(r.value for r in self.roles)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {allowed}",
            )
        return user


ArchitectUser = Annotated[User, Depends(RoleChecker(UserRole.ARCHITECT))]
OfficerUser = Annotated[User, Depends(RoleChecker(UserRole.OFFICER))]
StaffUser = Annotated[User, Depends(RoleChecker(UserRole.ARCHITECT, UserRole.OFFICER))]


def get_request_id(request: Request) -> Optional[str]:
    """Get request correlation ID (set by RequestIdMiddleware)."""
    return getattr(request.state, "request_id", None)
