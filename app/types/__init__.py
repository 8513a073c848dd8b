"""Type definitions for stored records."""

# Database record types
from app.types.database import (
    AppraisalRecordTD,
    CommitteeAssignmentRecordTD,
    UserRecordTD,
)

__all__ = [
    "AppraisalRecordTD",
    "CommitteeAssignmentRecordTD",
    "UserRecordTD",
]
