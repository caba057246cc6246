"""User self-management endpoints.

A caller can read, update and delete only their own record; any other id
returns 404. Changing the password revokes every live token of the user.
"""

import uuid

from fastapi import APIRouter, Response, status

from kajix.api.deps import CurrentIdentity, UserServiceDep
from kajix.schemas.auth import UserRead, UserUpdateRequest

router = APIRouter()


@router.get("/{user_id}")
async def get_user(
    user_id: uuid.UUID,
    identity: CurrentIdentity,
    user_service: UserServiceDep,
) -> UserRead:
    """Return the caller's own record."""
    user = await user_service.get(identity, user_id)
    return UserRead.model_validate(user)


@router.patch("/{user_id}")
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdateRequest,
    identity: CurrentIdentity,
    user_service: UserServiceDep,
) -> UserRead:
    """Update profile fields and/or the password.

    Args:
        user_id: Must be the caller's id.
        body: Fields to change; ``password`` needs ``currentPassword``.
        identity: Current authenticated user (injected).
        user_service: User service (injected).

    Returns:
        The updated user.

    Raises:
        NotFoundError: Not the caller's record.
        UnauthorizedError: Wrong current password.
        ConflictError: New email or username already taken.
    """
    user = await user_service.update(
        identity,
        user_id,
        changes=body.profile_changes(),
        password=body.password,
        current_password=body.current_password,
    )
    return UserRead.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: uuid.UUID,
    identity: CurrentIdentity,
    user_service: UserServiceDep,
) -> Response:
    """Delete the caller's account and revoke all of its tokens."""
    await user_service.delete(identity, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
