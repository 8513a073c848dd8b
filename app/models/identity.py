"""Authenticated caller identity."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from app.models.enums import Role


class Identity(BaseModel):
    """
    Identity supplied by the upstream authentication layer.

    The service trusts it completely and never derives it itself.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Role
