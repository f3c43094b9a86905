"""Session-based authentication utilities.

The login flow that writes ``user_id`` into the signed session cookie lives
outside this service. This module only reads it:
- get_user_id_from_session reads the authenticated user id
- FastAPI dependency for authenticated routes
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from core.logger import bind_contextvars


def get_user_id_from_session(request: Request) -> str | None:
    """Get authenticated user ID from the session, or None."""
    user_id = request.session.get("user_id")
    if not user_id:
        return None
    return str(user_id)


def require_auth(request: Request) -> str:
    """Raises 401 if not authenticated. Sets request.state.user_id."""
    user_id = get_user_id_from_session(request)
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")

    request.state.user_id = user_id
    bind_contextvars(user_id=user_id)
    return user_id


UserId = Annotated[str, Depends(require_auth)]
