"""Database record type definitions.

NOTE: This file must track database/schema.sql manually.
Use NotRequired for nullable/optional columns.
"""

from datetime import datetime
from typing import Any, NotRequired, TypedDict


class UserRecordTD(TypedDict):
    """Record from users table.

    Used in: services/users.py, services/committee.py, services/appraisals.py
    """

    user_id: str
    name: str
    email: str
    department: str
    designation: str
    role: str
    status: str
    created_at: NotRequired[datetime | None]
    updated_at: NotRequired[datetime | None]


class AppraisalRecordTD(TypedDict):
    """Record from appraisals table.

    ``document`` is JSONB; asyncpg returns it as a string unless a codec is
    registered, so repositories parse it before handing the record out.

    Used in: services/appraisals.py
    """

    user_id: str
    appraisal_year: int
    status: str
    role: str
    designation: str
    document: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class CommitteeAssignmentRecordTD(TypedDict):
    """Record from committee_assignments table.

    Used in: services/committee.py
    """

    verifier_user_id: str
    department: str
    faculty_user_ids: list[str]
    updated_at: NotRequired[datetime | None]
