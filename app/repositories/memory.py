"""
In-process repositories for local runs and the test suite.

No method awaits between reading and writing its state, so every check and
write happens within one event-loop step, matching the atomicity of the
conditional UPDATE used by the PostgreSQL backend.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from app.core.errors import ConflictError
from app.repositories.base import Store
from app.services.schema import PathValue, apply_writes, read_path
from app.types.database import (
    AppraisalRecordTD,
    CommitteeAssignmentRecordTD,
    UserRecordTD,
)


def _now() -> datetime:
    return datetime.now(UTC)


class InMemoryAppraisalRepository:
    def __init__(self) -> None:
        self._rows: dict[tuple[str, int], AppraisalRecordTD] = {}

    async def insert(
        self,
        user_id: str,
        appraisal_year: int,
        role: str,
        designation: str,
        document: dict[str, Any],
    ) -> AppraisalRecordTD:
        key = (user_id, appraisal_year)
        if key in self._rows:
            raise ConflictError(
                f"Appraisal for {user_id} in {appraisal_year} already exists",
                context={"user_id": user_id, "appraisal_year": appraisal_year},
            )
        now = _now()
        self._rows[key] = {
            "user_id": user_id,
            "appraisal_year": appraisal_year,
            "status": "DRAFT",
            "role": role,
            "designation": designation,
            "document": copy.deepcopy(document),
            "created_at": now,
            "updated_at": now,
        }
        return copy.deepcopy(self._rows[key])

    async def get(self, user_id: str, appraisal_year: int) -> AppraisalRecordTD | None:
        row = self._rows.get((user_id, appraisal_year))
        return copy.deepcopy(row) if row else None

    async def update_if_status(
        self,
        user_id: str,
        appraisal_year: int,
        expected_status: str,
        writes: Sequence[PathValue],
        new_status: str | None = None,
        expected: Sequence[PathValue] = (),
    ) -> AppraisalRecordTD | None:
        row = self._rows.get((user_id, appraisal_year))
        if row is None or row["status"] != expected_status:
            return None
        if any(read_path(row["document"], e.path) != e.value for e in expected):
            return None
        row["document"] = apply_writes(row["document"], writes)
        if new_status is not None:
            row["status"] = new_status
        row["updated_at"] = _now()
        return copy.deepcopy(row)

    async def delete_if_status(
        self, user_id: str, appraisal_year: int, expected_status: str
    ) -> bool:
        key = (user_id, appraisal_year)
        row = self._rows.get(key)
        if row is None or row["status"] != expected_status:
            return False
        del self._rows[key]
        return True


class InMemoryUserRepository:
    def __init__(self) -> None:
        self._rows: dict[str, UserRecordTD] = {}

    async def insert(self, user: Mapping[str, Any]) -> UserRecordTD:
        email = user["email"].lower()
        if user["user_id"] in self._rows or any(
            row["email"].lower() == email for row in self._rows.values()
        ):
            raise ConflictError(
                "User with this user_id or email already exists",
                context={"user_id": user["user_id"], "email": user["email"]},
            )
        now = _now()
        record: UserRecordTD = {
            "user_id": user["user_id"],
            "name": user["name"],
            "email": user["email"],
            "department": user["department"],
            "designation": user["designation"],
            "role": user["role"],
            "status": user.get("status", "active"),
            "created_at": now,
            "updated_at": now,
        }
        self._rows[record["user_id"]] = record
        return dict(record)  # type: ignore[return-value]

    async def get(self, user_id: str) -> UserRecordTD | None:
        row = self._rows.get(user_id)
        return dict(row) if row else None  # type: ignore[return-value]

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, UserRecordTD]:
        return {
            user_id: dict(self._rows[user_id])  # type: ignore[misc]
            for user_id in user_ids
            if user_id in self._rows
        }

    async def set_status(self, user_id: str, status: str) -> UserRecordTD | None:
        row = self._rows.get(user_id)
        if row is None:
            return None
        row["status"] = status
        row["updated_at"] = _now()
        return dict(row)  # type: ignore[return-value]

    async def active_faculty(self, department: str) -> list[UserRecordTD]:
        return [
            dict(row)  # type: ignore[misc]
            for _, row in sorted(self._rows.items())
            if row["department"] == department
            and row["role"] == "faculty"
            and row["status"] == "active"
        ]


class InMemoryCommitteeRepository:
    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], list[str]] = {}

    async def list_for_department(
        self, department: str
    ) -> list[CommitteeAssignmentRecordTD]:
        return [
            {
                "verifier_user_id": verifier,
                "department": dept,
                "faculty_user_ids": list(faculty),
            }
            for (verifier, dept), faculty in sorted(self._rows.items())
            if dept == department
        ]

    async def replace_department(
        self, department: str, rows: Mapping[str, Sequence[str]]
    ) -> None:
        for key in [key for key in self._rows if key[1] == department]:
            if key[0] not in rows:
                del self._rows[key]
        self._put(department, rows)

    async def upsert_rows(
        self, department: str, rows: Mapping[str, Sequence[str]]
    ) -> None:
        self._put(department, rows)

    def _put(self, department: str, rows: Mapping[str, Sequence[str]]) -> None:
        for verifier, faculty in rows.items():
            self._rows[(verifier, department)] = list(faculty)

    async def is_assigned(self, verifier_user_id: str, faculty_user_id: str) -> bool:
        return any(
            verifier == verifier_user_id and faculty_user_id in faculty
            for (verifier, _), faculty in self._rows.items()
        )


def memory_store() -> Store:
    return Store(
        backend="memory",
        appraisals=InMemoryAppraisalRepository(),
        users=InMemoryUserRepository(),
        committees=InMemoryCommitteeRepository(),
    )
