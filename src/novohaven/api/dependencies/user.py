"""Acting user dependency."""

from typing import Annotated

from fastapi import Depends, Header

from src.novohaven.core.config import get_settings
from src.novohaven.core.logging import bind_user_context


async def get_current_user_id(
    x_user_id: Annotated[int | None, Header(description="Acting user id")] = None,
) -> int:
    """Acting user from the X-User-Id header, else the configured default user."""
    user_id = x_user_id if x_user_id is not None else get_settings().default_user_id
    bind_user_context(user_id)
    return user_id


CurrentUserId = Annotated[int, Depends(get_current_user_id)]
