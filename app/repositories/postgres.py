"""PostgreSQL repositories (asyncpg, JSONB documents)."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import asyncpg
from structlog import get_logger

from app.core.database import Database, db
from app.core.errors import ConflictError
from app.repositories.base import Store
from app.services.schema import PathValue
from app.types.database import (
    AppraisalRecordTD,
    CommitteeAssignmentRecordTD,
    UserRecordTD,
)

logger = get_logger()


def build_document_update(
    writes: Sequence[PathValue], first_param: int
) -> tuple[str, list[Any]]:
    """
    Compose a chained jsonb_set expression for point writes on ``document``.

    Each write becomes one jsonb_set call with its own path/value parameter
    pair, so sibling keys are never rewritten.

    Args:
        writes: Point writes to apply, in order
        first_param: Index of the first positional parameter to use

    Returns:
        (SQL expression, parameter values)
    """
    expr = "document"
    args: list[Any] = []
    index = first_param
    for write in writes:
        expr = f"jsonb_set({expr}, ${index}::text[], ${index + 1}::jsonb, true)"
        args.extend([list(write.path), json.dumps(write.value)])
        index += 2
    return expr, args


def build_document_guard(
    expected: Sequence[PathValue], first_param: int
) -> tuple[str, list[Any]]:
    """Extra WHERE conditions requiring leaves of ``document`` to hold values."""
    conditions = []
    args: list[Any] = []
    index = first_param
    for guard in expected:
        conditions.append(f" AND document #> ${index}::text[] = ${index + 1}::jsonb")
        args.extend([list(guard.path), json.dumps(guard.value)])
        index += 2
    return "".join(conditions), args


def _appraisal(row: asyncpg.Record) -> AppraisalRecordTD:
    record = dict(row)
    document = record["document"]
    if isinstance(document, str):
        record["document"] = json.loads(document)
    return record  # type: ignore[return-value]


def _user(row: asyncpg.Record) -> UserRecordTD:
    return dict(row)  # type: ignore[return-value]


def _assignment(row: asyncpg.Record) -> CommitteeAssignmentRecordTD:
    record = dict(row)
    record["faculty_user_ids"] = list(record["faculty_user_ids"] or [])
    return record  # type: ignore[return-value]


class PostgresAppraisalRepository:
    def __init__(self, database: Database = db) -> None:
        self.db = database

    async def insert(
        self,
        user_id: str,
        appraisal_year: int,
        role: str,
        designation: str,
        document: dict[str, Any],
    ) -> AppraisalRecordTD:
        row = await self.db.fetchrow(
            """
            INSERT INTO appraisals
            (user_id, appraisal_year, status, role, designation, document)
            VALUES ($1, $2, 'DRAFT', $3, $4, $5::jsonb)
            ON CONFLICT (user_id, appraisal_year) DO NOTHING
            RETURNING *
        """,
            user_id,
            appraisal_year,
            role,
            designation,
            json.dumps(document),
        )
        if row is None:
            raise ConflictError(
                f"Appraisal for {user_id} in {appraisal_year} already exists",
                context={"user_id": user_id, "appraisal_year": appraisal_year},
            )
        return _appraisal(row)

    async def get(self, user_id: str, appraisal_year: int) -> AppraisalRecordTD | None:
        row = await self.db.fetchrow(
            """
            SELECT * FROM appraisals
            WHERE user_id = $1 AND appraisal_year = $2
        """,
            user_id,
            appraisal_year,
        )
        return _appraisal(row) if row else None

    async def update_if_status(
        self,
        user_id: str,
        appraisal_year: int,
        expected_status: str,
        writes: Sequence[PathValue],
        new_status: str | None = None,
        expected: Sequence[PathValue] = (),
    ) -> AppraisalRecordTD | None:
        document_expr, document_args = build_document_update(writes, first_param=5)
        guard_sql, guard_args = build_document_guard(
            expected, first_param=5 + len(document_args)
        )
        row = await self.db.fetchrow(
            f"""
            UPDATE appraisals
            SET document = {document_expr},
                status = COALESCE($4::text, status),
                updated_at = NOW()
            WHERE user_id = $1 AND appraisal_year = $2 AND status = $3{guard_sql}
            RETURNING *
        """,
            user_id,
            appraisal_year,
            expected_status,
            new_status,
            *document_args,
            *guard_args,
        )
        return _appraisal(row) if row else None

    async def delete_if_status(
        self, user_id: str, appraisal_year: int, expected_status: str
    ) -> bool:
        result = await self.db.execute(
            """
            DELETE FROM appraisals
            WHERE user_id = $1 AND appraisal_year = $2 AND status = $3
        """,
            user_id,
            appraisal_year,
            expected_status,
        )
        return result == "DELETE 1"


class PostgresUserRepository:
    def __init__(self, database: Database = db) -> None:
        self.db = database

    async def insert(self, user: Mapping[str, Any]) -> UserRecordTD:
        row = await self.db.fetchrow(
            """
            INSERT INTO users
            (user_id, name, email, department, designation, role, status)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT DO NOTHING
            RETURNING *
        """,
            user["user_id"],
            user["name"],
            user["email"],
            user["department"],
            user["designation"],
            user["role"],
            user.get("status", "active"),
        )
        if row is None:
            raise ConflictError(
                "User with this user_id or email already exists",
                context={"user_id": user["user_id"], "email": user["email"]},
            )
        return _user(row)

    async def get(self, user_id: str) -> UserRecordTD | None:
        row = await self.db.fetchrow("SELECT * FROM users WHERE user_id = $1", user_id)
        return _user(row) if row else None

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, UserRecordTD]:
        rows = await self.db.fetch(
            "SELECT * FROM users WHERE user_id = ANY($1::text[])", list(user_ids)
        )
        return {row["user_id"]: _user(row) for row in rows}

    async def set_status(self, user_id: str, status: str) -> UserRecordTD | None:
        row = await self.db.fetchrow(
            """
            UPDATE users
            SET status = $2, updated_at = NOW()
            WHERE user_id = $1
            RETURNING *
        """,
            user_id,
            status,
        )
        return _user(row) if row else None

    async def active_faculty(self, department: str) -> list[UserRecordTD]:
        rows = await self.db.fetch(
            """
            SELECT * FROM users
            WHERE department = $1 AND role = 'faculty' AND status = 'active'
            ORDER BY user_id
        """,
            department,
        )
        return [_user(row) for row in rows]


class PostgresCommitteeRepository:
    def __init__(self, database: Database = db) -> None:
        self.db = database

    async def list_for_department(
        self, department: str
    ) -> list[CommitteeAssignmentRecordTD]:
        rows = await self.db.fetch(
            """
            SELECT * FROM committee_assignments
            WHERE department = $1
            ORDER BY verifier_user_id
        """,
            department,
        )
        return [_assignment(row) for row in rows]

    async def replace_department(
        self, department: str, rows: Mapping[str, Sequence[str]]
    ) -> None:
        async with self.db.transaction() as conn:
            deleted = await conn.execute(
                """
                DELETE FROM committee_assignments
                WHERE department = $1 AND NOT (verifier_user_id = ANY($2::text[]))
            """,
                department,
                list(rows),
            )
            await self._upsert(conn, department, rows)
        logger.info(
            "committee_rows_replaced",
            department=department,
            verifiers=len(rows),
            deleted=deleted,
        )

    async def upsert_rows(
        self, department: str, rows: Mapping[str, Sequence[str]]
    ) -> None:
        async with self.db.transaction() as conn:
            await self._upsert(conn, department, rows)

    @staticmethod
    async def _upsert(
        conn: asyncpg.Connection, department: str, rows: Mapping[str, Sequence[str]]
    ) -> None:
        for verifier_user_id, faculty_user_ids in rows.items():
            await conn.execute(
                """
                INSERT INTO committee_assignments
                (verifier_user_id, department, faculty_user_ids)
                VALUES ($1, $2, $3::text[])
                ON CONFLICT (verifier_user_id, department) DO UPDATE
                SET faculty_user_ids = EXCLUDED.faculty_user_ids,
                    updated_at = NOW()
            """,
                verifier_user_id,
                department,
                list(faculty_user_ids),
            )

    async def is_assigned(self, verifier_user_id: str, faculty_user_id: str) -> bool:
        return bool(
            await self.db.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM committee_assignments
                    WHERE verifier_user_id = $1 AND $2 = ANY(faculty_user_ids)
                )
            """,
                verifier_user_id,
                faculty_user_id,
            )
        )


def postgres_store(database: Database = db) -> Store:
    return Store(
        backend="postgres",
        appraisals=PostgresAppraisalRepository(database),
        users=PostgresUserRepository(database),
        committees=PostgresCommitteeRepository(database),
    )
