"""
Repository interfaces shared by the PostgreSQL and in-memory backends.

Appraisal writes are conditional: the update only lands when the stored
status equals the expected one, and returns None otherwise so the caller can
re-read and report what it found.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from app.services.schema import PathValue
from app.types.database import (
    AppraisalRecordTD,
    CommitteeAssignmentRecordTD,
    UserRecordTD,
)


class AppraisalRepository(Protocol):
    async def insert(
        self,
        user_id: str,
        appraisal_year: int,
        role: str,
        designation: str,
        document: dict[str, Any],
    ) -> AppraisalRecordTD:
        """Insert a DRAFT record. Raises ConflictError if the key exists."""
        ...

    async def get(self, user_id: str, appraisal_year: int) -> AppraisalRecordTD | None: ...

    async def update_if_status(
        self,
        user_id: str,
        appraisal_year: int,
        expected_status: str,
        writes: Sequence[PathValue],
        new_status: str | None = None,
        expected: Sequence[PathValue] = (),
    ) -> AppraisalRecordTD | None:
        """
        Apply point writes (and a status change) only if status matches.

        ``expected`` leaves must also still hold the given values.
        """
        ...

    async def delete_if_status(
        self, user_id: str, appraisal_year: int, expected_status: str
    ) -> bool: ...


class UserRepository(Protocol):
    async def insert(self, user: Mapping[str, Any]) -> UserRecordTD:
        """Insert a user. Raises ConflictError on duplicate user_id or email."""
        ...

    async def get(self, user_id: str) -> UserRecordTD | None: ...

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, UserRecordTD]: ...

    async def set_status(self, user_id: str, status: str) -> UserRecordTD | None: ...

    async def active_faculty(self, department: str) -> list[UserRecordTD]:
        """Active users with role faculty in ``department``, ordered by user_id."""
        ...


class CommitteeRepository(Protocol):
    async def list_for_department(
        self, department: str
    ) -> list[CommitteeAssignmentRecordTD]: ...

    async def replace_department(
        self, department: str, rows: Mapping[str, Sequence[str]]
    ) -> None:
        """Make ``rows`` the department's only rows, in one transaction."""
        ...

    async def upsert_rows(
        self, department: str, rows: Mapping[str, Sequence[str]]
    ) -> None:
        """Replace the given verifiers' rows only, in one transaction."""
        ...

    async def is_assigned(self, verifier_user_id: str, faculty_user_id: str) -> bool: ...


@dataclass
class Store:
    """The repositories of one storage backend."""

    backend: str
    appraisals: AppraisalRepository
    users: UserRepository
    committees: CommitteeRepository
