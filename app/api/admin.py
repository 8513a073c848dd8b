"""Admin endpoints for the user directory."""

from __future__ import annotations

from fastapi import APIRouter, status
from structlog import get_logger

from app.api.deps import CurrentIdentity
from app.models.user import UserCreate, UserResponse
from app.services import users as user_service

logger = get_logger()
router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, identity: CurrentIdentity) -> UserResponse:
    """
    Register a user.

    Active faculty users form their department's roster for committee builds.
    """
    result = await user_service.create_user(
        identity,
        user_id=body.user_id,
        name=body.name,
        email=body.email,
        department=body.department,
        designation=body.designation,
        role=body.role,
    )
    return UserResponse(**result)


@router.delete("/users/{user_id}")
async def deactivate_user(user_id: str, identity: CurrentIdentity) -> UserResponse:
    """
    Deactivate a user (soft delete).

    Their appraisal records are kept; they leave future rosters.
    """
    logger.info("admin_deactivate_user_requested", user_id=user_id, by=identity.user_id)
    result = await user_service.deactivate_user(identity, user_id)
    return UserResponse(**result)
