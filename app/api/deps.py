"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from structlog import get_logger

from app.models.enums import Role
from app.models.identity import Identity

logger = get_logger()


async def get_identity(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Identity:
    """
    Read the caller identity set by the upstream authentication gateway.

    Raises:
        HTTPException: 401 if either header is missing or the role is unknown
    """
    if not x_user_id or not x_user_id.strip() or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id or X-User-Role header",
        )
    try:
        role = Role(x_user_role.strip().lower())
    except ValueError as e:
        logger.warning("identity_role_invalid", role=x_user_role)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role '{x_user_role}'",
        ) from e
    return Identity(user_id=x_user_id.strip(), role=role)


CurrentIdentity = Annotated[Identity, Depends(get_identity)]
