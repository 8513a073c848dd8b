"""Pydantic models for the user directory."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from app.models.enums import Department, Designation, Role, UserStatus


class UserCreate(BaseModel):
    """Model for registering a user."""

    user_id: str
    name: str
    email: str
    department: Department
    designation: Designation
    role: Role


class UserResponse(BaseModel):
    """A user directory entry."""

    user_id: str
    name: str
    email: str
    department: Department
    designation: Designation
    role: Role
    status: UserStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None
