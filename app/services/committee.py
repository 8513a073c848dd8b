"""
Cross-department verifier committees.

Each department's active faculty are split among a committee of verifiers
drawn from other departments. Within a department the verifiers' faculty
sets are disjoint, and after a full rebuild they cover the whole roster.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence

from structlog import get_logger

from app.core.errors import IntegrityError, ValidationError, service_boundary
from app.models.enums import Department, UserStatus
from app.models.identity import Identity
from app.repositories.store import get_store
from app.services.users import department_roster, parse_choice, require_admin
from app.types.database import UserRecordTD

logger = get_logger()

# "F001 (Jane Doe)" -> "F001"; a bare id is accepted too
LABEL_PATTERN = re.compile(r"^\s*([^\s()]+)\s*(?:\(.*\))?\s*$")


def parse_label(label: str) -> str:
    """Extract the user id from an ``"id (name)"`` label."""
    match = LABEL_PATTERN.match(label or "")
    if not match:
        raise ValidationError(f"Invalid user reference '{label}'", field="user_id")
    return match.group(1)


def format_label(user_id: str, users: Mapping[str, UserRecordTD]) -> str:
    user = users.get(user_id)
    return f"{user_id} ({user['name']})" if user else user_id


def partition_roster(
    roster: Sequence[str], verifiers: Sequence[str]
) -> dict[str, list[str]]:
    """
    Split ``roster`` into contiguous chunks, one per verifier, in order.

    Each verifier takes ceil(len(roster) / len(verifiers)) faculty; the last
    verifiers may get fewer or none.

    Raises:
        ValidationError: no verifiers
    """
    if not verifiers:
        raise ValidationError("Committee must contain at least one verifier", field="committee")
    per = math.ceil(len(roster) / len(verifiers))
    return {
        verifier: list(roster[index * per : (index + 1) * per])
        for index, verifier in enumerate(verifiers)
    }


def _parse_unique(labels: Sequence[str], field: str) -> list[str]:
    ids: list[str] = []
    for label in labels:
        user_id = parse_label(label)
        if user_id in ids:
            raise ValidationError(
                f"{user_id} is listed more than once", field=field, context={"user_id": user_id}
            )
        ids.append(user_id)
    return ids


async def _resolve_verifiers(
    department: Department, verifier_ids: Sequence[str]
) -> dict[str, UserRecordTD]:
    users = await get_store().users.get_many(verifier_ids)

    unknown = [
        vid
        for vid in verifier_ids
        if vid not in users or users[vid]["status"] != UserStatus.ACTIVE
    ]
    if unknown:
        raise IntegrityError(
            f"Unknown or inactive verifier(s): {', '.join(unknown)}",
            context={"verifier_ids": unknown},
        )

    same_department = [vid for vid in verifier_ids if users[vid]["department"] == department]
    if same_department:
        raise IntegrityError(
            f"Verifier(s) {', '.join(same_department)} belong to department "
            f"'{department}' and cannot verify it",
            context={"verifier_ids": same_department, "department": str(department)},
        )
    return users


async def _labelled(rows: Mapping[str, Sequence[str]]) -> dict[str, list[str]]:
    ids = {*rows, *(fid for faculty in rows.values() for fid in faculty)}
    users = await get_store().users.get_many(ids)
    return {
        format_label(verifier, users): [format_label(fid, users) for fid in faculty]
        for verifier, faculty in rows.items()
    }


async def _current_rows(department: Department) -> dict[str, list[str]]:
    rows = await get_store().committees.list_for_department(department.value)
    return {row["verifier_user_id"]: row["faculty_user_ids"] for row in rows}


@service_boundary
async def get_committee(identity: Identity, department: str) -> dict[str, list[str]]:
    """
    Current committee of ``department`` as ``{"id (name)": ["id (name)", ...]}``.
    """
    require_admin(identity, "view committees")
    dept = parse_choice(Department, department, "department")
    return await _labelled(await _current_rows(dept))


@service_boundary
async def rebuild_committee(
    identity: Identity,
    department: str,
    committee: Sequence[str],
    removed: Sequence[str] = (),
) -> dict[str, list[str]]:
    """
    Rebuild a department's committee from scratch.

    Args:
        identity: Caller (must be admin)
        department: Department being verified
        committee: Verifier ids or "id (name)" labels, in assignment order
        removed: Verifiers leaving the committee

    Returns:
        The new committee mapping

    Raises:
        ValidationError: empty or duplicate committee list
        IntegrityError: unknown verifier, or a verifier from the department itself
    """
    require_admin(identity, "rebuild committees")
    dept = parse_choice(Department, department, "department")

    verifier_ids = _parse_unique(committee, "committee")
    if not verifier_ids:
        raise ValidationError("Committee must contain at least one verifier", field="committee")
    removed_ids = [parse_label(label) for label in removed]

    await _resolve_verifiers(dept, verifier_ids)
    roster = await department_roster(dept)
    rows = partition_roster(roster, verifier_ids)

    # Rows of removed and stale verifiers go in the same transaction
    await get_store().committees.replace_department(dept.value, rows)

    logger.info(
        "committee_rebuilt",
        department=dept.value,
        verifiers=len(verifier_ids),
        faculty=len(roster),
        removed=removed_ids,
        rebuilt_by=identity.user_id,
    )
    return await _labelled(rows)


@service_boundary
async def reassign_faculty(
    identity: Identity,
    department: str,
    assignments: Mapping[str, Sequence[str]],
) -> dict[str, list[str]]:
    """
    Move faculty to the named verifiers without rebuilding the committee.

    Named faculty are removed from any other verifier's row. Rows of
    verifiers that are not involved stay as they are.

    Returns:
        The full committee mapping after the change

    Raises:
        ValidationError: empty request, or a faculty member listed twice
        IntegrityError: unknown or same-department verifier, faculty outside
            the department roster, or a previously assigned faculty member
            left without a verifier
    """
    require_admin(identity, "reassign faculty")
    dept = parse_choice(Department, department, "department")
    if not assignments:
        raise ValidationError("No assignments given", field="assignments")

    requested: dict[str, list[str]] = {}
    seen: set[str] = set()
    for verifier_label, faculty_labels in assignments.items():
        verifier_id = parse_label(verifier_label)
        if verifier_id in requested:
            raise ValidationError(
                f"Verifier {verifier_id} is listed more than once", field="assignments"
            )
        faculty_ids = []
        for label in faculty_labels:
            faculty_id = parse_label(label)
            if faculty_id in seen:
                raise ValidationError(
                    f"Faculty {faculty_id} is assigned to more than one verifier",
                    field="assignments",
                    context={"faculty_user_id": faculty_id},
                )
            seen.add(faculty_id)
            faculty_ids.append(faculty_id)
        requested[verifier_id] = faculty_ids

    await _resolve_verifiers(dept, list(requested))

    roster = set(await department_roster(dept))
    outside = sorted(seen - roster)
    if outside:
        raise IntegrityError(
            f"Faculty not on the {dept.value} roster: {', '.join(outside)}",
            context={"faculty_user_ids": outside, "department": dept.value},
        )

    current = await _current_rows(dept)
    orphaned = sorted(
        fid
        for verifier_id in requested
        for fid in current.get(verifier_id, [])
        if fid not in seen
    )
    if orphaned:
        raise IntegrityError(
            f"Reassignment would leave faculty without a verifier: {', '.join(orphaned)}",
            context={"faculty_user_ids": orphaned},
        )

    updates: dict[str, list[str]] = dict(requested)
    for verifier_id, faculty_ids in current.items():
        if verifier_id in requested:
            continue
        kept = [fid for fid in faculty_ids if fid not in seen]
        if kept != faculty_ids:
            updates[verifier_id] = kept

    await get_store().committees.upsert_rows(dept.value, updates)

    logger.info(
        "committee_faculty_reassigned",
        department=dept.value,
        verifiers=sorted(requested),
        rows_updated=len(updates),
        reassigned_by=identity.user_id,
    )
    return await _labelled({**current, **updates})


async def is_assigned_verifier(verifier_user_id: str, faculty_user_id: str) -> bool:
    """
    True when an active verifier holds the faculty member in a committee row.

    Rows naming a deactivated verifier grant nothing.
    """
    store = get_store()
    verifier = await store.users.get(verifier_user_id)
    if verifier is None or verifier["status"] != UserStatus.ACTIVE:
        return False
    return await store.committees.is_assigned(verifier_user_id, faculty_user_id)