"""User directory: the source of department rosters and record snapshots."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from structlog import get_logger

from app.core.errors import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
    service_boundary,
)
from app.models.enums import Department, Designation, Role, UserStatus
from app.models.identity import Identity
from app.repositories.store import get_store

logger = get_logger()


def require_admin(identity: Identity, action: str) -> None:
    """
    Raises:
        AuthorizationError: caller is not an admin
    """
    if identity.role != Role.ADMIN:
        raise AuthorizationError(
            f"Only admin may {action}",
            context={"role": str(identity.role), "user_id": identity.user_id},
        )


def parse_choice[E: StrEnum](enum: type[E], value: Any, field: str) -> E:
    """Coerce ``value`` to a member of ``enum`` or raise ValidationError."""
    try:
        return enum(value)
    except ValueError as e:
        raise ValidationError(
            f"{field} must be one of {[m.value for m in enum]}", field=field
        ) from e


@service_boundary
async def create_user(
    identity: Identity,
    user_id: str,
    name: str,
    email: str,
    department: str,
    designation: str,
    role: str,
) -> dict[str, Any]:
    """
    Add a user to the directory.

    Args:
        identity: Caller (must be admin)
        user_id: Unique user id
        name: Display name
        email: Unique email address
        department: Department code
        designation: Academic cadre
        role: System role

    Returns:
        The stored user record

    Raises:
        AuthorizationError: caller is not admin
        ValidationError: blank id/name/email or unknown department/designation/role
        ConflictError: user_id or email already registered
    """
    require_admin(identity, "create users")

    for field, value in (("user_id", user_id), ("name", name), ("email", email)):
        if not value or not value.strip():
            raise ValidationError(f"{field} is required", field=field)

    user = await get_store().users.insert(
        {
            "user_id": user_id.strip(),
            "name": name.strip(),
            "email": email.strip(),
            "department": parse_choice(Department, department, "department").value,
            "designation": parse_choice(Designation, designation, "designation").value,
            "role": parse_choice(Role, role, "role").value,
            "status": UserStatus.ACTIVE.value,
        }
    )
    logger.info(
        "user_created",
        user_id=user["user_id"],
        department=user["department"],
        role=user["role"],
        created_by=identity.user_id,
    )
    return dict(user)


@service_boundary
async def deactivate_user(identity: Identity, user_id: str) -> dict[str, Any]:
    """
    Soft-delete a user by marking it inactive.

    Existing appraisal records and committee rows are kept; the user simply
    drops out of future roster builds and cannot start new appraisals.

    Raises:
        AuthorizationError: caller is not admin
        NotFoundError: unknown user
    """
    require_admin(identity, "deactivate users")

    user = await get_store().users.set_status(user_id, UserStatus.INACTIVE.value)
    if user is None:
        raise NotFoundError(f"User {user_id} not found", context={"user_id": user_id})

    logger.info("user_deactivated", user_id=user_id, deactivated_by=identity.user_id)
    return dict(user)


async def department_roster(department: str) -> list[str]:
    """Active faculty ids of ``department`` in stable user_id order."""
    dept = parse_choice(Department, department, "department")
    users = await get_store().users.active_faculty(dept.value)
    return [user["user_id"] for user in users]
