"""
Appraisal document schema.

The document stored for every appraisal record is described declaratively
here: five sections (partA..partE) plus declaration and summary. Every leaf
names the party allowed to write it, which is what the field scope guard,
the verification merger and the evaluator mark router consult. Writes are
expressed as typed PathValue items instead of dotted strings.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Union

from app.core.errors import ValidationError
from app.models.enums import EVALUATOR_ROLES


class LeafKind(StrEnum):
    NUMBER = "number"
    BOOLEAN = "boolean"
    TEXT = "text"
    CHOICE = "choice"
    TIMESTAMP = "timestamp"
    COURSES = "courses"


class Writer(StrEnum):
    """Party allowed to write a leaf."""

    OWNER = "owner"  # faculty member, Draft only
    VERIFIER = "verifier"  # verification payload on verify()
    EVALUATOR = "evaluator"  # Part D evaluator mark routing
    SYSTEM = "system"  # stamped by lifecycle transitions


@dataclass(frozen=True)
class Leaf:
    kind: LeafKind
    writer: Writer = Writer.OWNER
    default: Any = None
    choices: tuple[str, ...] = ()
    maximum: float | None = None


@dataclass(frozen=True)
class Metric:
    """
    A scored metric: raw input, claimed marks and verified marks.

    count/amount/proof/claimed belong to the faculty member, verified only
    ever to an evaluator.
    """

    amount: bool = False

    def fields(self) -> dict[str, Leaf]:
        fields = {"count": number()}
        if self.amount:
            fields["amount"] = number()
        fields["proof"] = text()
        fields["claimed"] = number()
        fields["verified"] = number(Writer.VERIFIER)
        return fields


Node = Union[Leaf, Metric, Mapping[str, "Node"]]
Path = tuple[str, ...]


def number(writer: Writer = Writer.OWNER, maximum: float | None = None, default: Any = 0) -> Leaf:
    return Leaf(LeafKind.NUMBER, writer, default=default, maximum=maximum)


def flag(writer: Writer = Writer.OWNER) -> Leaf:
    return Leaf(LeafKind.BOOLEAN, writer, default=False)


def text() -> Leaf:
    return Leaf(LeafKind.TEXT, default="")


def choice(*choices: str, default: str) -> Leaf:
    return Leaf(LeafKind.CHOICE, default=default, choices=choices)


# ============================================
# Section definitions
# ============================================

COURSE_FIELDS: dict[str, Leaf] = {
    "code": text(),
    "semester": text(),
    # Result analysis
    "studentsAbove60": number(),
    "students50to59": number(),
    "students40to49": number(),
    "totalStudents": number(),
    "resultMarks": number(),
    # Course outcome
    "coAttainment": number(maximum=100),
    "timelySubmissionCO": flag(),
    "coMarks": number(),
    # Academic engagement
    "studentsPresent": number(),
    "totalEnrolledStudents": number(),
    "engagementMarks": number(),
    # Student feedback
    "feedbackPercentage": number(maximum=100),
    "feedbackMarks": number(),
}

PART_A: dict[str, Node] = {
    "courses": Leaf(LeafKind.COURSES, default=()),
    "eLearningInstances": number(),
    "weeklyLoadSem1": number(),
    "weeklyLoadSem2": number(),
    "phdScholar": flag(),
    "projectsGuided": number(),
    "ptgMeetings": number(),
    "sectionMarks": {
        "resultAnalysis": number(),
        "courseOutcome": number(),
        "eLearning": number(),
        "academicEngagement": number(),
        "teachingLoad": number(),
        "projectsGuided": number(),
        "studentFeedback": number(),
        "ptgMeetings": number(),
    },
    "totalMarks": number(),
}


def _metrics(*names: str) -> dict[str, Node]:
    return {name: Metric() for name in names}


PART_B: dict[str, Node] = {
    "papers": _metrics("sci", "esci", "scopus", "ugc", "other"),
    "conferences": _metrics("scopus", "other"),
    "bookChapters": _metrics("scopus", "other"),
    "books": _metrics("intlIndexed", "intlNational", "local"),
    "citations": _metrics("wos", "scopus", "googleScholar"),
    "copyrights": _metrics(
        "individualRegistered",
        "individualGranted",
        "instituteRegistered",
        "instituteGranted",
    ),
    "patents": _metrics(
        "individualRegistered",
        "individualPublished",
        "individualGranted",
        "individualCommercialized",
        "instituteRegistered",
        "institutePublished",
        "instituteGranted",
        "instituteCommercialized",
    ),
    "grants": {"research": Metric(amount=True), "nonResearch": Metric(amount=True)},
    "revenueTraining": Metric(amount=True),
    "products": _metrics("commercialized", "developed", "poc"),
    "startup": {
        "revenue": Metric(amount=True),
        "funding": Metric(amount=True),
        "product": Metric(),
        "poc": Metric(),
        "registered": Metric(),
    },
    "awards": _metrics(
        "international", "government", "national", "intlFellowship", "nationalFellowship"
    ),
    "industryInteraction": _metrics("activeMou", "collaboration"),
    "placement": Metric(),
    "totalClaimed": number(),
    "totalVerified": number(Writer.VERIFIER),
}


def _training() -> dict[str, Node]:
    return {
        "twoWeek": number(),
        "oneWeek": number(),
        "twoToFiveDays": number(),
        "oneDay": number(),
    }


PART_C: dict[str, Node] = {
    "pdfCompleted": flag(),
    "pdfOngoing": flag(),
    "phdAwarded": flag(),
    "trainingAttended": _training(),
    "trainingOrganized": _training(),
    "phdGuided": {"awarded": number(), "submitted": number(), "ongoing": number()},
    "totalMarks": number(),
    "verifiedMarks": number(Writer.VERIFIER),
}

PART_D: dict[str, Node] = {
    "portfolioType": choice("institute", "department", "both", default="both"),
    "instituteLevelPortfolio": text(),
    "departmentLevelPortfolio": text(),
    "selfAwardedMarks": number(),
    # Evaluator marks, written through evaluator mark routing only
    "deanMarks": number(Writer.EVALUATOR),
    "hodMarks": number(Writer.EVALUATOR),
    "isMarkDean": flag(Writer.EVALUATOR),
    "isMarkHOD": flag(Writer.EVALUATOR),
    # Administrative-role path
    "isAdministrativeRole": flag(),
    "administrativeRole": choice(*(str(r) for r in EVALUATOR_ROLES), "", default=""),
    "adminSelfAwardedMarks": number(),
    "directorMarks": number(Writer.EVALUATOR),
    "adminDeanMarks": number(Writer.EVALUATOR),
    "totalMarks": number(),
}

PART_E: dict[str, Node] = {
    "bulletPoints": text(),
    "selfAwardedMarks": number(maximum=50),
    "evaluatorMarks": number(Writer.VERIFIER),
}

DECLARATION: dict[str, Node] = {
    "isAgreed": flag(),
    "signatureDate": Leaf(LeafKind.TIMESTAMP, Writer.SYSTEM),
}

SUMMARY: dict[str, Node] = {
    "grandTotalClaimed": number(Writer.SYSTEM),
    "grandTotalVerified": number(Writer.VERIFIER),
    "adminWeightage": number(Writer.SYSTEM, default=None),
}

SECTIONS: dict[str, dict[str, Node]] = {
    "partA": PART_A,
    "partB": PART_B,
    "partC": PART_C,
    "partD": PART_D,
    "partE": PART_E,
}

DOCUMENT_SCHEMA: dict[str, Node] = {
    **SECTIONS,
    "declaration": DECLARATION,
    "summary": SUMMARY,
}

# Section rollups summed into summary.grandTotalClaimed on submission
CLAIMED_ROLLUPS: tuple[Path, ...] = (
    ("partA", "totalMarks"),
    ("partB", "totalClaimed"),
    ("partC", "totalMarks"),
    ("partD", "totalMarks"),
    ("partE", "selfAwardedMarks"),
)


# ============================================
# Typed writes
# ============================================


@dataclass(frozen=True)
class PathValue:
    """A point write of ``value`` at ``path`` inside the document."""

    path: Path
    value: Any

    @property
    def dotted(self) -> str:
        return ".".join(self.path)


def children(node: Node) -> Mapping[str, Node] | None:
    """Child nodes of a group or metric; None for a leaf."""
    if isinstance(node, Leaf):
        return None
    if isinstance(node, Metric):
        return node.fields()
    return node


def resolve(path: Sequence[str], root: Node = DOCUMENT_SCHEMA) -> Node | None:
    """Return the schema node at ``path`` or None if the path is unknown."""
    node: Node | None = root
    for key in path:
        nested = children(node) if node is not None else None
        if nested is None or key not in nested:
            return None
        node = nested[key]
    return node


def iter_leaves(node: Node, prefix: Path = ()) -> Iterator[tuple[Path, Leaf]]:
    """Yield (path, leaf) for every leaf under ``node``."""
    nested = children(node)
    if nested is None:
        yield prefix, node  # type: ignore[misc]
        return
    for key, child in nested.items():
        yield from iter_leaves(child, (*prefix, key))


def default_value(node: Node) -> Any:
    nested = children(node)
    if nested is None:
        leaf: Leaf = node  # type: ignore[assignment]
        if leaf.kind == LeafKind.COURSES:
            return []
        return leaf.default
    return {key: default_value(child) for key, child in nested.items()}


def default_document() -> dict[str, Any]:
    """Fresh document for a newly created appraisal."""
    return default_value(DOCUMENT_SCHEMA)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range cannot be stored as JSON numbers
        return False


def check_value(leaf: Leaf, value: Any, field: str) -> Any:
    """
    Validate ``value`` against ``leaf`` and return the value to persist.

    Raises:
        ValidationError: naming ``field`` when the value does not fit the leaf
    """
    if leaf.kind == LeafKind.NUMBER:
        if not _is_number(value):
            raise ValidationError(f"{field} must be a number", field=field)
        if value < 0:
            raise ValidationError(f"{field} must not be negative", field=field)
        if leaf.maximum is not None and value > leaf.maximum:
            raise ValidationError(
                f"{field} must not exceed {leaf.maximum:g}", field=field
            )
        return value
    if leaf.kind == LeafKind.BOOLEAN:
        if not isinstance(value, bool):
            raise ValidationError(f"{field} must be a boolean", field=field)
        return value
    if leaf.kind == LeafKind.TEXT:
        if not isinstance(value, str):
            raise ValidationError(f"{field} must be a string", field=field)
        return value
    if leaf.kind == LeafKind.CHOICE:
        if value not in leaf.choices:
            raise ValidationError(
                f"{field} must be one of {list(leaf.choices)}", field=field
            )
        return value
    if leaf.kind == LeafKind.COURSES:
        if not isinstance(value, list):
            raise ValidationError(f"{field} must be a list of courses", field=field)
        return [_normalize_course(course, f"{field}[{i}]") for i, course in enumerate(value)]
    if leaf.kind == LeafKind.TIMESTAMP:
        if not isinstance(value, str):
            raise ValidationError(f"{field} must be an ISO timestamp", field=field)
        return value
    raise ValidationError(f"{field} has unsupported type", field=field)


def _normalize_course(course: Any, field: str) -> dict[str, Any]:
    if not isinstance(course, Mapping):
        raise ValidationError(f"{field} must be an object", field=field)
    normalized = {}
    for key, leaf in COURSE_FIELDS.items():
        if key in course:
            normalized[key] = check_value(leaf, course[key], f"{field}.{key}")
        else:
            normalized[key] = leaf.default
    return normalized


# ============================================
# Document helpers
# ============================================


def read_path(document: Mapping[str, Any], path: Sequence[str]) -> Any:
    value: Any = document
    for key in path:
        if not isinstance(value, Mapping) or key not in value:
            return None
        value = value[key]
    return value


def apply_writes(document: Mapping[str, Any], writes: Sequence[PathValue]) -> dict[str, Any]:
    """
    Return a copy of ``document`` with every write applied.

    Only the addressed leaves change; siblings are carried over untouched.
    """
    result = copy.deepcopy(dict(document))
    for write in writes:
        target = result
        for key in write.path[:-1]:
            nested = target.get(key)
            if not isinstance(nested, dict):
                nested = {}
                target[key] = nested
            target = nested
        target[write.path[-1]] = copy.deepcopy(write.value)
    return result


def claimed_grand_total(document: Mapping[str, Any]) -> float:
    """Sum of the section claimed rollups."""
    total = 0
    for path in CLAIMED_ROLLUPS:
        value = read_path(document, path)
        if _is_number(value):
            total += value
    return total
