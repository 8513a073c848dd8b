"""Routing of a single evaluator's Part D mark to its role-specific leaf."""

from __future__ import annotations

from typing import Any, NamedTuple

from app.core.errors import AuthorizationError
from app.models.enums import Role
from app.services.schema import PART_D, PathValue, check_value


class MarkRoute(NamedTuple):
    marks_field: str
    flag_field: str | None


EVALUATOR_MARK_ROUTES: dict[Role, MarkRoute] = {
    Role.DEAN: MarkRoute("deanMarks", "isMarkDean"),
    Role.HOD: MarkRoute("hodMarks", "isMarkHOD"),
    Role.DIRECTOR: MarkRoute("directorMarks", None),
    Role.ASSOCIATE_DEAN: MarkRoute("adminDeanMarks", None),
}


def evaluator_mark_writes(role: Role, marks: Any) -> list[PathValue]:
    """
    Writes for one evaluator mark on Part D.

    The value is validated before the role is routed, so a bad value never
    produces a write.

    Raises:
        ValidationError: marks is not a non-negative number
        AuthorizationError: role has no Part D mark leaf
    """
    route = EVALUATOR_MARK_ROUTES.get(role)
    field = f"partD.{route.marks_field}" if route else "marks"
    value = check_value(PART_D["deanMarks"], marks, field)  # type: ignore[arg-type]

    if route is None:
        raise AuthorizationError(
            f"Role '{role}' is not permitted to enter Part D evaluator marks",
            context={"role": str(role)},
        )

    writes = [PathValue(("partD", route.marks_field), value)]
    if route.flag_field:
        writes.append(PathValue(("partD", route.flag_field), True))
    return writes
