"""Verifier committee endpoints (admin only)."""

from fastapi import APIRouter, Request

from app.api.deps import CurrentIdentity
from app.middleware.rate_limit import committee_rebuild_limit, limiter
from app.models.committee import (
    CommitteeReassign,
    CommitteeRebuild,
    CommitteeResponse,
)
from app.services import committee as committee_service

router = APIRouter(prefix="/committees", tags=["committees"])


@router.get("/{department}")
async def get_committee(department: str, identity: CurrentIdentity) -> CommitteeResponse:
    """Current verifier -> faculty mapping for a department."""
    committee = await committee_service.get_committee(identity, department)
    return CommitteeResponse(department=department, committee=committee)


@router.post("/{department}/rebuild")
@limiter.limit(committee_rebuild_limit)
async def rebuild_committee(
    request: Request,
    department: str,
    body: CommitteeRebuild,
    identity: CurrentIdentity,
) -> CommitteeResponse:
    """
    Rebuild a department's committee and redistribute its roster.

    The rebuild replaces every row of the department in one transaction.
    """
    committee = await committee_service.rebuild_committee(
        identity, department, body.committee, body.removed
    )
    return CommitteeResponse(department=department, committee=committee)


@router.post("/{department}/assignments")
async def reassign_faculty(
    department: str, body: CommitteeReassign, identity: CurrentIdentity
) -> CommitteeResponse:
    """Move named faculty under the named verifiers."""
    committee = await committee_service.reassign_faculty(
        identity, department, body.assignments
    )
    return CommitteeResponse(department=department, committee=committee)
