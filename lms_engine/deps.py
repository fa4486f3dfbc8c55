"""Shared FastAPI dependencies for database access and caller identity."""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlmodel import Session

from lms_engine.database import get_session
from lms_engine.models import User


def get_current_user(
    x_user_id: Optional[int] = Header(default=None),
    session: Session = Depends(get_session),
) -> Optional[User]:
    """Return the caller identified by the upstream auth layer, if any.

    The auth gateway forwards the authenticated user's id in ``X-User-Id``.
    """
    if x_user_id is None:
        return None

    user = session.get(User, x_user_id)
    if not user or not user.is_active:
        return None
    return user


def require_login(current_user: Optional[User] = Depends(get_current_user)) -> User:
    """Ensure that a user is authenticated."""
    if current_user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return current_user


def require_role(required_roles: list[str]):
    """Dependency factory that enforces one of the given roles."""

    def wrapper(current_user: User = Depends(require_login)) -> User:
        if current_user.role not in required_roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return current_user

    return wrapper
