"""
Appraisal operations.

Every operation follows the same path: authorize the caller against the
lifecycle table, compute an explicit list of point writes, then apply them
in one conditional update guarded by the required status. When the guard
fails the record is re-read to report either NOT_FOUND or the actual status.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from structlog import get_logger

from app.core.config import settings
from app.core.errors import (
    DeclarationRequiredError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
    service_boundary,
)
from app.models.enums import AppraisalStatus, Role, UserStatus
from app.models.identity import Identity
from app.repositories.store import get_store
from app.services.committee import is_assigned_verifier
from app.services.evaluator_marks import evaluator_mark_writes
from app.services.field_scope import owner_writes, section_key
from app.services.lifecycle import (
    RULES,
    Operation,
    authorize,
    needs_assignment_check,
    next_status,
    require_status,
)
from app.services.schema import (
    CLAIMED_ROLLUPS,
    SUMMARY,
    PathValue,
    check_value,
    claimed_grand_total,
    default_document,
    read_path,
)
from app.services.verification import plan_verification
from app.types.database import AppraisalRecordTD

logger = get_logger()

SUBMIT_ATTEMPTS = 3


def resolve_year(year: int | None = None) -> int:
    """Appraisal year to use when the caller does not give one."""
    if year is None:
        return settings.appraisal_year or datetime.now(UTC).year
    if year < 1:
        raise ValidationError("appraisal_year must be positive", field="appraisal_year")
    return year


async def _authorize(operation: Operation, identity: Identity, owner_user_id: str) -> None:
    is_assigned = False
    if identity.user_id != owner_user_id and needs_assignment_check(operation, identity.role):
        is_assigned = await is_assigned_verifier(identity.user_id, owner_user_id)
    authorize(operation, identity, owner_user_id, is_assigned=is_assigned)


async def _load(user_id: str, year: int) -> AppraisalRecordTD:
    record = await get_store().appraisals.get(user_id, year)
    if record is None:
        raise NotFoundError(
            f"Appraisal for {user_id} in {year} not found",
            context={"user_id": user_id, "appraisal_year": year},
        )
    return record


async def _raise_guard_failure(operation: Operation, user_id: str, year: int) -> None:
    record = await _load(user_id, year)
    require_status(operation, record["status"])
    raise PreconditionFailedError(
        f"Appraisal for {user_id} in {year} changed concurrently",
        current_status=record["status"],
        context={"operation": str(operation)},
    )


async def _apply(
    operation: Operation, user_id: str, year: int, writes: Sequence[PathValue]
) -> AppraisalRecordTD:
    required = RULES[operation].requires
    produced = next_status(operation)
    record = await get_store().appraisals.update_if_status(
        user_id,
        year,
        required.value,  # type: ignore[union-attr]
        writes,
        produced.value if produced else None,
    )
    if record is None:
        await _raise_guard_failure(operation, user_id, year)
    return record  # type: ignore[return-value]


@service_boundary
async def create_appraisal(
    identity: Identity, user_id: str | None = None, year: int | None = None
) -> AppraisalRecordTD:
    """
    Create a DRAFT appraisal for a user and year.

    Args:
        identity: Caller; non-admins may only create their own record
        user_id: Owner of the new record (defaults to the caller)
        year: Appraisal year (defaults to the configured/current year)

    Returns:
        The new record

    Raises:
        AuthorizationError: creating on behalf of someone else without admin role
        NotFoundError: owner is not an active user
        ValidationError: owner is an admin account
        ConflictError: a record already exists for the user and year
    """
    owner = user_id or identity.user_id
    year = resolve_year(year)
    authorize(Operation.CREATE, identity, owner)

    store = get_store()
    user = await store.users.get(owner)
    if user is None or user["status"] != UserStatus.ACTIVE:
        raise NotFoundError(f"Active user {owner} not found", context={"user_id": owner})
    if user["role"] == Role.ADMIN:
        raise ValidationError("Admin accounts do not hold appraisals", field="user_id")

    record = await store.appraisals.insert(
        owner, year, user["role"], user["designation"], default_document()
    )
    logger.info(
        "appraisal_created",
        user_id=owner,
        appraisal_year=year,
        created_by=identity.user_id,
    )
    return record


@service_boundary
async def get_appraisal(identity: Identity, user_id: str, year: int) -> AppraisalRecordTD:
    """Read a record; faculty may read others' only as their assigned verifier."""
    await _authorize(Operation.READ, identity, user_id)
    return await _load(user_id, year)


@service_boundary
async def update_section(
    identity: Identity,
    user_id: str,
    year: int,
    section_id: str,
    payload: Mapping[str, Any],
) -> AppraisalRecordTD:
    """
    Owner edit of one section while the record is DRAFT.

    Keys the owner may not write are dropped; only the remaining leaves are
    written, so other sections and untouched leaves keep their values.

    Raises:
        ValidationError: unknown section or wrongly typed value
        AuthorizationError: caller is not the owner
        PreconditionFailedError: record is not DRAFT
        NotFoundError: no such record
    """
    section = section_key(section_id)
    await _authorize(Operation.UPDATE_SECTION, identity, user_id)
    writes = owner_writes(section, payload)

    record = await _apply(Operation.UPDATE_SECTION, user_id, year, writes)
    logger.info(
        "appraisal_section_updated",
        user_id=user_id,
        appraisal_year=year,
        section=section,
        fields=len(writes),
    )
    return record


@service_boundary
async def update_declaration(
    identity: Identity, user_id: str, year: int, payload: Mapping[str, Any]
) -> AppraisalRecordTD:
    """Owner sets ``declaration.isAgreed`` while the record is DRAFT."""
    await _authorize(Operation.UPDATE_DECLARATION, identity, user_id)
    writes = owner_writes("declaration", payload)
    record = await _apply(Operation.UPDATE_DECLARATION, user_id, year, writes)
    logger.info(
        "appraisal_declaration_updated",
        user_id=user_id,
        appraisal_year=year,
        is_agreed=read_path(record["document"], ("declaration", "isAgreed")),
    )
    return record


@service_boundary
async def submit_appraisal(identity: Identity, user_id: str, year: int) -> AppraisalRecordTD:
    """
    DRAFT -> SUBMITTED.

    Stamps the signature date and the claimed grand total. Faculty-owned
    fields are frozen from here on.

    The write is guarded by the agreed declaration and the claimed rollups
    the total was computed from, so a concurrent owner edit makes it miss
    and the submission is re-evaluated against the fresh record.

    Raises:
        DeclarationRequiredError: declaration not agreed
        PreconditionFailedError: record is not DRAFT, or kept changing
    """
    await _authorize(Operation.SUBMIT, identity, user_id)
    store = get_store()

    for attempt in range(1, SUBMIT_ATTEMPTS + 1):
        current = await _load(user_id, year)
        require_status(Operation.SUBMIT, current["status"])

        document = current["document"]
        if read_path(document, ("declaration", "isAgreed")) is not True:
            raise DeclarationRequiredError(
                "Declaration must be agreed before submission",
                current_status=current["status"],
                context={"user_id": user_id, "appraisal_year": year},
            )

        grand_total = claimed_grand_total(document)
        writes = [
            PathValue(("declaration", "signatureDate"), datetime.now(UTC).isoformat()),
            PathValue(("summary", "grandTotalClaimed"), grand_total),
        ]
        expected = [PathValue(("declaration", "isAgreed"), True)]
        expected.extend(PathValue(path, read_path(document, path)) for path in CLAIMED_ROLLUPS)

        record = await store.appraisals.update_if_status(
            user_id,
            year,
            AppraisalStatus.DRAFT.value,
            writes,
            AppraisalStatus.SUBMITTED.value,
            expected=expected,
        )
        if record is not None:
            logger.info(
                "appraisal_submitted",
                user_id=user_id,
                appraisal_year=year,
                grand_total_claimed=grand_total,
            )
            return record

        logger.info(
            "appraisal_submit_retry",
            user_id=user_id,
            appraisal_year=year,
            attempt=attempt,
        )

    raise PreconditionFailedError(
        f"Appraisal for {user_id} in {year} changed concurrently",
        expected_status=AppraisalStatus.DRAFT.value,
        current_status=AppraisalStatus.DRAFT.value,
        context={"operation": str(Operation.SUBMIT)},
    )


@service_boundary
async def verify_appraisal(
    identity: Identity,
    user_id: str,
    year: int,
    payload: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """
    SUBMITTED -> VERIFIED, merging the verifier's marks.

    Only verifier leaves named in ``payload`` are written. Values that are
    not non-negative numbers are skipped individually and reported back.

    Returns:
        Dict with the updated ``appraisal`` plus ``applied``, ``ignored`` and
        ``skipped`` paths
    """
    await _authorize(Operation.VERIFY, identity, user_id)
    plan = plan_verification(payload)

    record = await _apply(Operation.VERIFY, user_id, year, plan.writes)
    if plan.skipped:
        logger.warning(
            "verification_values_skipped",
            user_id=user_id,
            appraisal_year=year,
            skipped=plan.skipped,
        )
    logger.info(
        "appraisal_verified",
        user_id=user_id,
        appraisal_year=year,
        verified_by=identity.user_id,
        applied=len(plan.writes),
        ignored=len(plan.ignored),
    )
    return {
        "appraisal": record,
        "applied": [write.dotted for write in plan.writes],
        "ignored": plan.ignored,
        "skipped": plan.skipped,
    }


@service_boundary
async def update_evaluator_mark(
    identity: Identity, user_id: str, year: int, marks: Any
) -> AppraisalRecordTD:
    """
    Record one evaluator's Part D mark on a SUBMITTED record.

    Raises:
        ValidationError: marks is not a non-negative number
        AuthorizationError: role has no Part D mark, or caller owns the record
        PreconditionFailedError: record is not SUBMITTED
    """
    writes = evaluator_mark_writes(identity.role, marks)
    await _authorize(Operation.EVALUATOR_MARK, identity, user_id)

    record = await _apply(Operation.EVALUATOR_MARK, user_id, year, writes)
    logger.info(
        "appraisal_evaluator_mark_recorded",
        user_id=user_id,
        appraisal_year=year,
        role=str(identity.role),
        field=writes[0].dotted,
    )
    return record


@service_boundary
async def approve_appraisal(
    identity: Identity,
    user_id: str,
    year: int,
    final_total: float | None = None,
    admin_weightage: float | None = None,
) -> AppraisalRecordTD:
    """
    VERIFIED -> APPROVED. Terminal.

    Of two concurrent approvals exactly one succeeds; the other fails with
    PreconditionFailedError reporting APPROVED.
    """
    await _authorize(Operation.APPROVE, identity, user_id)

    writes = []
    if final_total is not None:
        value = check_value(SUMMARY["grandTotalVerified"], final_total, "final_total")  # type: ignore[arg-type]
        writes.append(PathValue(("summary", "grandTotalVerified"), value))
    if admin_weightage is not None:
        value = check_value(SUMMARY["adminWeightage"], admin_weightage, "admin_weightage")  # type: ignore[arg-type]
        writes.append(PathValue(("summary", "adminWeightage"), value))

    record = await _apply(Operation.APPROVE, user_id, year, writes)
    logger.info(
        "appraisal_approved",
        user_id=user_id,
        appraisal_year=year,
        approved_by=identity.user_id,
    )
    return record


@service_boundary
async def delete_appraisal(identity: Identity, user_id: str, year: int) -> dict[str, Any]:
    """
    Hard-delete a DRAFT record. Only the owner may do this.

    Raises:
        NotFoundError: no such record
        PreconditionFailedError: record has left DRAFT
    """
    await _authorize(Operation.DELETE, identity, user_id)

    deleted = await get_store().appraisals.delete_if_status(
        user_id, year, RULES[Operation.DELETE].requires.value  # type: ignore[union-attr]
    )
    if not deleted:
        await _raise_guard_failure(Operation.DELETE, user_id, year)

    logger.info("appraisal_deleted", user_id=user_id, appraisal_year=year)
    return {"user_id": user_id, "appraisal_year": year, "deleted": True}
