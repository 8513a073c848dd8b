"""
Appraisal lifecycle state machine.

DRAFT -> SUBMITTED -> VERIFIED -> APPROVED. No transition skips a state or
moves backwards; APPROVED is terminal.

Authorization is a declarative table keyed on operation, listing the status
the record must be in and, per role, the scopes under which that role may
act. Services consult it instead of branching on roles inline.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from app.core.errors import AuthorizationError, PreconditionFailedError
from app.models.enums import AppraisalStatus, Role
from app.models.identity import Identity


class Operation(StrEnum):
    CREATE = "create"
    READ = "read"
    UPDATE_SECTION = "update_section"
    UPDATE_DECLARATION = "update_declaration"
    SUBMIT = "submit"
    VERIFY = "verify"
    EVALUATOR_MARK = "evaluator_mark"
    APPROVE = "approve"
    DELETE = "delete"


class Scope(StrEnum):
    OWNER = "owner"  # caller owns the record
    ASSIGNED = "assigned"  # caller is the committee verifier for the owner
    ANY = "any"  # no ownership condition


OWNER_ONLY = frozenset({Scope.OWNER})
ASSIGNED_ONLY = frozenset({Scope.ASSIGNED})
ANYONE = frozenset({Scope.ANY})

# Roles that hold their own appraisal records
APPRAISEE_ROLES: tuple[Role, ...] = (
    Role.FACULTY,
    Role.HOD,
    Role.DEAN,
    Role.ASSOCIATE_DEAN,
    Role.DIRECTOR,
)
SENIOR_EVALUATORS: tuple[Role, ...] = (
    Role.HOD,
    Role.DEAN,
    Role.ASSOCIATE_DEAN,
    Role.DIRECTOR,
)
SENIOR_APPROVERS: tuple[Role, ...] = (Role.DEAN, Role.DIRECTOR)


@dataclass(frozen=True)
class Rule:
    """
    One row of the authorization table.

    requires: status the record must be in (None = no record yet, or any
        status for reads)
    produces: status after the operation (None = unchanged or removed)
    grants: role -> scopes under which the role may act
    owner_excluded: the record owner may never perform it
    """

    requires: AppraisalStatus | None
    produces: AppraisalStatus | None
    grants: Mapping[Role, frozenset[Scope]] = field(default_factory=dict)
    owner_excluded: bool = False


def _owners() -> dict[Role, frozenset[Scope]]:
    return {role: OWNER_ONLY for role in APPRAISEE_ROLES}


RULES: dict[Operation, Rule] = {
    Operation.CREATE: Rule(
        requires=None,
        produces=AppraisalStatus.DRAFT,
        grants={**_owners(), Role.ADMIN: ANYONE},
    ),
    Operation.READ: Rule(
        requires=None,
        produces=None,
        grants={
            **_owners(),
            Role.FACULTY: frozenset({Scope.OWNER, Scope.ASSIGNED}),
            **{role: ANYONE for role in SENIOR_EVALUATORS},
            Role.ADMIN: ANYONE,
        },
    ),
    Operation.UPDATE_SECTION: Rule(
        requires=AppraisalStatus.DRAFT, produces=None, grants=_owners()
    ),
    Operation.UPDATE_DECLARATION: Rule(
        requires=AppraisalStatus.DRAFT, produces=None, grants=_owners()
    ),
    Operation.SUBMIT: Rule(
        requires=AppraisalStatus.DRAFT,
        produces=AppraisalStatus.SUBMITTED,
        grants=_owners(),
    ),
    Operation.VERIFY: Rule(
        requires=AppraisalStatus.SUBMITTED,
        produces=AppraisalStatus.VERIFIED,
        grants={
            Role.FACULTY: ASSIGNED_ONLY,
            **{role: ANYONE for role in SENIOR_EVALUATORS},
        },
        owner_excluded=True,
    ),
    Operation.EVALUATOR_MARK: Rule(
        requires=AppraisalStatus.SUBMITTED,
        produces=None,
        grants={role: ANYONE for role in SENIOR_EVALUATORS},
        owner_excluded=True,
    ),
    Operation.APPROVE: Rule(
        requires=AppraisalStatus.VERIFIED,
        produces=AppraisalStatus.APPROVED,
        grants={role: ANYONE for role in SENIOR_APPROVERS},
        owner_excluded=True,
    ),
    Operation.DELETE: Rule(
        requires=AppraisalStatus.DRAFT, produces=None, grants=_owners()
    ),
}


def can_transition(
    status: AppraisalStatus | None, role: Role, operation: Operation
) -> bool:
    """
    Whether ``role`` may perform ``operation`` on a record in ``status``.

    Ownership and committee assignment are not considered here; see
    authorize() for the full check. ``status`` is None when no record exists.
    """
    rule = RULES[operation]
    if role not in rule.grants:
        return False
    if operation == Operation.READ:
        return status is not None
    return rule.requires == status


def allowed_operations(status: AppraisalStatus | None, role: Role) -> set[Operation]:
    return {op for op in Operation if can_transition(status, role, op)}


def needs_assignment_check(operation: Operation, role: Role) -> bool:
    """True when the role's grant depends on a committee assignment lookup."""
    scopes = RULES[operation].grants.get(role, frozenset())
    return Scope.ASSIGNED in scopes and Scope.ANY not in scopes


def authorize(
    operation: Operation,
    identity: Identity,
    owner_user_id: str,
    *,
    is_assigned: bool = False,
) -> None:
    """
    Check the caller's role and relationship to the record.

    Raises:
        AuthorizationError: role not granted, owner performing an evaluator
            operation, or the required ownership/assignment is missing
    """
    rule = RULES[operation]
    scopes = rule.grants.get(identity.role)
    context = {
        "operation": str(operation),
        "role": str(identity.role),
        "user_id": identity.user_id,
        "owner_user_id": owner_user_id,
    }

    if not scopes:
        raise AuthorizationError(
            f"Role '{identity.role}' is not permitted to {operation} an appraisal",
            context=context,
        )

    is_owner = identity.user_id == owner_user_id
    if rule.owner_excluded and is_owner:
        raise AuthorizationError(
            f"Owner cannot {operation} their own appraisal", context=context
        )

    if Scope.ANY in scopes:
        return
    if Scope.OWNER in scopes and is_owner:
        return
    if Scope.ASSIGNED in scopes and is_assigned:
        return

    raise AuthorizationError(
        f"Not authorized to {operation} appraisal of {owner_user_id}", context=context
    )


def require_status(operation: Operation, current: AppraisalStatus | str) -> None:
    """
    Check the record is in the status the operation requires.

    Raises:
        PreconditionFailedError: naming required vs. actual status
    """
    required = RULES[operation].requires
    if required is None or current == required:
        return
    raise PreconditionFailedError(
        f"Cannot {operation} appraisal with status {current}; requires {required}",
        expected_status=str(required),
        current_status=str(current),
        context={"operation": str(operation)},
    )


def next_status(operation: Operation) -> AppraisalStatus | None:
    return RULES[operation].produces
