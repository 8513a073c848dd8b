"""Pydantic models for verifier committee endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CommitteeRebuild(BaseModel):
    """Verifier ids or "id (name)" labels, in assignment order."""

    committee: list[str]
    removed: list[str] = Field(default_factory=list)


class CommitteeReassign(BaseModel):
    """Verifier -> faculty to move under that verifier."""

    assignments: dict[str, list[str]]


class CommitteeResponse(BaseModel):
    """Committee of one department, keyed by verifier label."""

    department: str
    committee: dict[str, list[str]]
