from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.database import get_async_session
from nine_worlds.models.user_model import User
from nine_worlds.services import permissions
from nine_worlds.services.permissions import Action
from nine_worlds.utils.token_utils import get_current_user


async def require_owner(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> User:
    """Owner gate for the admin console. Checks the stored role, not the token."""
    await permissions.verify_owner_access(db, user.id)
    return user


def require_action(action: Action):
    """Dependency factory: 403 unless the caller's role grants ``action``."""

    async def dependency(
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_async_session),
    ) -> User:
        role_name = await permissions.get_role_name(db, user.id)
        if not permissions.authorize(role_name, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{action.value.replace('_', ' ').capitalize()} access required",
            )
        return user

    return dependency
