"""
Verification merger.

Turns a sparse, nested verification payload into point writes on verifier
leaves only: metric ``verified`` marks, Part B ``totalVerified``, Part C
``verifiedMarks``, Part E ``evaluatorMarks`` and ``summary.grandTotalVerified``.
Faculty-owned leaves (count, amount, proof, claimed) are never addressed.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from app.core.errors import ValidationError
from app.services.schema import (
    DOCUMENT_SCHEMA,
    Leaf,
    Metric,
    Node,
    Path,
    PathValue,
    Writer,
    check_value,
    children,
)

# Top-level keys a verification payload may address
VERIFIABLE_ROOTS = ("partA", "partB", "partC", "partD", "partE", "summary")


@dataclass
class MergePlan:
    """
    Result of planning a verification merge.

    writes: verifier-leaf writes to apply
    ignored: payload paths that do not address a verifier leaf
    skipped: verifier-leaf paths whose value was rejected, with the reason
    """

    writes: list[PathValue] = field(default_factory=list)
    ignored: list[str] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)


def plan_verification(payload: Mapping[str, Any] | None) -> MergePlan:
    """
    Plan the writes for a verification payload.

    Unknown keys are ignored so older or partial client payloads still merge.
    A leaf that is not a non-negative number is skipped on its own; the rest
    of the payload still applies.
    """
    plan = MergePlan()
    if not payload:
        return plan
    if not isinstance(payload, Mapping):
        raise ValidationError("Verification payload must be an object", field="verification")

    for root, value in payload.items():
        if root not in VERIFIABLE_ROOTS:
            plan.ignored.append(str(root))
            continue
        _plan_node(DOCUMENT_SCHEMA[root], value, (root,), plan)
    return plan


def _plan_node(node: Node, value: Any, path: Path, plan: MergePlan) -> None:
    if isinstance(node, Metric):
        # {"sci": {"verified": 4, "claimed": 9}} or shorthand {"sci": 4}
        if isinstance(value, Mapping):
            for key in value:
                if key != "verified":
                    plan.ignored.append(".".join((*path, str(key))))
            if "verified" not in value:
                return
            value = value["verified"]
        _plan_leaf(node.fields()["verified"], value, (*path, "verified"), plan)
        return

    if isinstance(node, Leaf):
        if node.writer != Writer.VERIFIER:
            plan.ignored.append(".".join(path))
            return
        _plan_leaf(node, value, path, plan)
        return

    dotted = ".".join(path)
    if not isinstance(value, Mapping):
        plan.skipped[dotted] = "expected an object"
        return
    nested = children(node) or {}
    for key, child_value in value.items():
        child = nested.get(key)
        if child is None:
            plan.ignored.append(f"{dotted}.{key}")
            continue
        _plan_node(child, child_value, (*path, key), plan)


def _plan_leaf(leaf: Leaf, value: Any, path: Path, plan: MergePlan) -> None:
    dotted = ".".join(path)
    try:
        plan.writes.append(PathValue(path, check_value(leaf, value, dotted)))
    except ValidationError as e:
        plan.skipped[dotted] = e.message
