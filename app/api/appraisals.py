"""Appraisal endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, status

from app.api.deps import CurrentIdentity
from app.models.appraisal import (
    AppraisalCreate,
    AppraisalDeleteResponse,
    AppraisalResponse,
    ApprovalRequest,
    DeclarationUpdate,
    EvaluatorMarkRequest,
    VerificationRequest,
    VerificationResponse,
)
from app.services import appraisals as appraisal_service

router = APIRouter(prefix="/appraisals", tags=["appraisals"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_appraisal(
    body: AppraisalCreate, identity: CurrentIdentity
) -> AppraisalResponse:
    """
    Start a DRAFT appraisal.

    Faculty create their own; admin may create on behalf of any active user.
    """
    result = await appraisal_service.create_appraisal(
        identity, user_id=body.user_id, year=body.appraisal_year
    )
    return AppraisalResponse(**result)


@router.get("/{user_id}/{year}")
async def get_appraisal(
    user_id: str, year: int, identity: CurrentIdentity
) -> AppraisalResponse:
    """Read one appraisal record."""
    result = await appraisal_service.get_appraisal(identity, user_id, year)
    return AppraisalResponse(**result)


@router.patch("/{user_id}/{year}/sections/{section_id}")
async def update_section(
    user_id: str,
    year: int,
    section_id: str,
    identity: CurrentIdentity,
    payload: dict[str, Any] = Body(...),
) -> AppraisalResponse:
    """
    Owner edit of section A-E while DRAFT.

    Keys the owner may not write are silently dropped.
    """
    result = await appraisal_service.update_section(
        identity, user_id, year, section_id, payload
    )
    return AppraisalResponse(**result)


@router.patch("/{user_id}/{year}/declaration")
async def update_declaration(
    user_id: str, year: int, body: DeclarationUpdate, identity: CurrentIdentity
) -> AppraisalResponse:
    """Agree to the declaration before submitting."""
    result = await appraisal_service.update_declaration(
        identity, user_id, year, body.model_dump()
    )
    return AppraisalResponse(**result)


@router.post("/{user_id}/{year}/submit")
async def submit_appraisal(
    user_id: str, year: int, identity: CurrentIdentity
) -> AppraisalResponse:
    """DRAFT -> SUBMITTED."""
    result = await appraisal_service.submit_appraisal(identity, user_id, year)
    return AppraisalResponse(**result)


@router.post("/{user_id}/{year}/verify")
async def verify_appraisal(
    user_id: str,
    year: int,
    identity: CurrentIdentity,
    body: VerificationRequest | None = None,
) -> VerificationResponse:
    """SUBMITTED -> VERIFIED, merging verified marks."""
    result = await appraisal_service.verify_appraisal(
        identity, user_id, year, body.verification if body else None
    )
    return VerificationResponse(
        appraisal=AppraisalResponse(**result["appraisal"]),
        applied=result["applied"],
        ignored=result["ignored"],
        skipped=result["skipped"],
    )


@router.post("/{user_id}/{year}/evaluator-marks")
async def update_evaluator_mark(
    user_id: str, year: int, body: EvaluatorMarkRequest, identity: CurrentIdentity
) -> AppraisalResponse:
    """Enter the caller's Part D mark; the target field follows the caller's role."""
    result = await appraisal_service.update_evaluator_mark(
        identity, user_id, year, body.marks
    )
    return AppraisalResponse(**result)


@router.post("/{user_id}/{year}/approve")
async def approve_appraisal(
    user_id: str,
    year: int,
    identity: CurrentIdentity,
    body: ApprovalRequest | None = None,
) -> AppraisalResponse:
    """VERIFIED -> APPROVED."""
    body = body or ApprovalRequest()
    result = await appraisal_service.approve_appraisal(
        identity,
        user_id,
        year,
        final_total=body.final_total,
        admin_weightage=body.admin_weightage,
    )
    return AppraisalResponse(**result)


@router.delete("/{user_id}/{year}")
async def delete_appraisal(
    user_id: str, year: int, identity: CurrentIdentity
) -> AppraisalDeleteResponse:
    """Delete a DRAFT appraisal (owner only)."""
    result = await appraisal_service.delete_appraisal(identity, user_id, year)
    return AppraisalDeleteResponse(**result)
