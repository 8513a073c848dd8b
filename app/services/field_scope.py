"""
Field scope guard for owner section updates.

The owner of a draft appraisal may write only faculty-owned leaves of a
section. Anything else in the request body is dropped silently: unknown
keys, verified marks, verifier rollups and the Part D evaluator leaves
(deanMarks, hodMarks, directorMarks, adminDeanMarks, isMarkDean, isMarkHOD),
which are reachable through evaluator mark routing only.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from app.core.errors import ValidationError
from app.services.schema import (
    DOCUMENT_SCHEMA,
    SECTIONS,
    Leaf,
    Node,
    Path,
    PathValue,
    Writer,
    check_value,
    children,
)

SECTION_IDS: dict[str, str] = {
    "A": "partA",
    "B": "partB",
    "C": "partC",
    "D": "partD",
    "E": "partE",
}


def section_key(section_id: str) -> str:
    """
    Map a section id ("A", "b", "partC") to its document key.

    Raises:
        ValidationError: if the id does not name one of Parts A-E
    """
    candidate = section_id.strip()
    if candidate in SECTIONS:
        return candidate
    key = SECTION_IDS.get(candidate.upper())
    if key is None:
        raise ValidationError(
            f"Unknown section '{section_id}'; expected one of A-E",
            field="section_id",
        )
    return key


def filter_owner_payload(section: str, payload: Mapping[str, Any]) -> dict[str, Any]:
    """
    Keep only the faculty-writable keys of ``payload`` for ``section``.

    ``section`` is a document key: partA..partE or declaration.

    Pure: the input is not modified and nothing is validated beyond shape.
    Forbidden and unknown keys are dropped without error.
    """
    return _filter(DOCUMENT_SCHEMA[section], payload)


def _filter(node: Node, payload: Mapping[str, Any]) -> dict[str, Any]:
    nested = children(node) or {}
    kept: dict[str, Any] = {}
    for key, value in payload.items():
        child = nested.get(key)
        if child is None:
            continue
        if isinstance(child, Leaf):
            if child.writer == Writer.OWNER:
                kept[key] = value
        elif isinstance(value, Mapping):
            sub = _filter(child, value)
            if sub:
                kept[key] = sub
    return kept


def _walk(node: Node, payload: Mapping[str, Any], prefix: Path) -> Iterator[tuple[Path, Leaf, Any]]:
    nested = children(node) or {}
    for key, value in payload.items():
        child = nested[key]
        if isinstance(child, Leaf):
            yield (*prefix, key), child, value
        else:
            yield from _walk(child, value, (*prefix, key))


def owner_writes(section: str, payload: Any) -> list[PathValue]:
    """
    Compute the point writes for an owner update of ``section``.

    Raises:
        ValidationError: payload is not an object, or an allowed leaf carries
            a value of the wrong type (nothing is written in that case)
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Section payload must be an object", field=section)

    filtered = filter_owner_payload(section, payload)
    writes = []
    for path, leaf, value in _walk(DOCUMENT_SCHEMA[section], filtered, (section,)):
        writes.append(PathValue(path, check_value(leaf, value, ".".join(path))))
    return writes
