"""Pydantic models for appraisal requests and responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.models.enums import AppraisalStatus

# ============================================
# Input Models
# ============================================


class AppraisalCreate(BaseModel):
    """Model for creating an appraisal."""

    user_id: str | None = None  # NULL = the caller
    appraisal_year: int | None = None  # NULL = configured/current year


class DeclarationUpdate(BaseModel):
    """Model for agreeing to (or withdrawing from) the declaration."""

    isAgreed: bool


class VerificationRequest(BaseModel):
    """Sparse verifier payload, e.g. {"partB": {"papers": {"sci": {"verified": 4}}}}."""

    verification: dict[str, Any] = Field(default_factory=dict)


class EvaluatorMarkRequest(BaseModel):
    """Part D mark entered by a dean, hod, director or associate dean."""

    marks: Any  # type checked by the service so bools and strings are rejected


class ApprovalRequest(BaseModel):
    """Optional final figures stamped on approval."""

    final_total: float | None = None
    admin_weightage: float | None = None


# ============================================
# Response Models
# ============================================


class AppraisalResponse(BaseModel):
    """An appraisal record."""

    user_id: str
    appraisal_year: int
    status: AppraisalStatus
    role: str
    designation: str
    document: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class VerificationResponse(BaseModel):
    """Verified record plus how the payload was merged."""

    appraisal: AppraisalResponse
    applied: list[str]
    ignored: list[str]
    skipped: dict[str, str]


class AppraisalDeleteResponse(BaseModel):
    """Response for appraisal deletion."""

    user_id: str
    appraisal_year: int
    deleted: bool
