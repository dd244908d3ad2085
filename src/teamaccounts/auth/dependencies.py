"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to load the
signed-in user from the session cookie. The session only stores the
user's id; the row is loaded fresh on every request so profile and
billing changes are visible immediately.
"""

import uuid
from typing import Optional

import structlog
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from teamaccounts.db.engine import get_db
from teamaccounts.db.models import User

SESSION_USER_KEY = "user_id"


def login_session(request: Request, user_id: uuid.UUID) -> None:
    """Attach a user to the current session."""
    request.session[SESSION_USER_KEY] = str(user_id)


def logout_session(request: Request) -> None:
    request.session.clear()


async def get_current_user_optional(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Current user, or None for anonymous requests.

    A session pointing at a user that no longer exists (or a tampered
    id) is treated as anonymous and cleared.
    """
    raw_id = request.session.get(SESSION_USER_KEY)
    if not raw_id:
        return None

    try:
        user = await db.get(User, uuid.UUID(raw_id))
    except ValueError:
        user = None
    if user is None:
        logout_session(request)
        return None

    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return user


async def get_current_user(
    user: Optional[User] = Depends(get_current_user_optional),
) -> User:
    """Current user (required — 401 if not signed in)."""
    if not user:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user
