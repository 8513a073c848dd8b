"""Tests for the verification merger (app/services/verification.py)."""

import pytest

from app.core.errors import ValidationError
from app.services.schema import apply_writes, default_document
from app.services.verification import plan_verification
from tests.fixtures.factories import create_verification_payload


def _written(plan):
    return {write.dotted: write.value for write in plan.writes}


def test_writes_only_verifier_leaves():
    plan = plan_verification(create_verification_payload())

    assert _written(plan) == {
        "partB.papers.sci.verified": 12,
        "partB.papers.scopus.verified": 4,
        "partB.totalVerified": 16,
        "partC.verifiedMarks": 8,
        "partE.evaluatorMarks": 40,
    }
    assert plan.skipped == {}


def test_faculty_owned_keys_are_ignored():
    plan = plan_verification(
        {"partB": {"papers": {"sci": {"verified": 3, "claimed": 0, "count": 0, "proof": "x"}}}}
    )

    assert _written(plan) == {"partB.papers.sci.verified": 3}
    assert sorted(plan.ignored) == [
        "partB.papers.sci.claimed",
        "partB.papers.sci.count",
        "partB.papers.sci.proof",
    ]


def test_part_d_evaluator_keys_are_ignored():
    plan = plan_verification({"partD": {"deanMarks": 30, "isMarkDean": True}})

    assert plan.writes == []
    assert sorted(plan.ignored) == ["partD.deanMarks", "partD.isMarkDean"]


def test_unknown_sections_and_keys_are_ignored():
    plan = plan_verification({"partZ": {"x": 1}, "partB": {"journals": {"x": 1}}})

    assert plan.writes == []
    assert plan.ignored == ["partZ", "partB.journals"]


def test_bad_values_skipped_individually():
    """A negative or non-numeric value affects only its own leaf."""
    plan = plan_verification(
        {
            "partB": {
                "papers": {"sci": {"verified": -4}, "esci": {"verified": "five"}},
                "citations": {"wos": {"verified": True}},
                "totalVerified": 10,
            }
        }
    )

    assert _written(plan) == {"partB.totalVerified": 10}
    assert set(plan.skipped) == {
        "partB.papers.sci.verified",
        "partB.papers.esci.verified",
        "partB.citations.wos.verified",
    }


def test_summary_grand_total_verified():
    plan = plan_verification({"summary": {"grandTotalVerified": 210, "grandTotalClaimed": 1}})

    assert _written(plan) == {"summary.grandTotalVerified": 210}
    assert plan.ignored == ["summary.grandTotalClaimed"]


def test_empty_payload_is_a_no_op():
    assert plan_verification(None).writes == []
    assert plan_verification({}).writes == []


def test_non_object_payload_rejected():
    with pytest.raises(ValidationError):
        plan_verification([1, 2, 3])  # type: ignore[arg-type]


def test_merge_keeps_claimed_and_untouched_leaves():
    doc = default_document()
    doc["partB"]["papers"]["sci"].update(count=2, claimed=16, proof="https://proof")
    doc["partB"]["papers"]["ugc"]["verified"] = 3

    merged = apply_writes(doc, plan_verification(create_verification_payload()).writes)

    assert merged["partB"]["papers"]["sci"] == {
        "count": 2,
        "proof": "https://proof",
        "claimed": 16,
        "verified": 12,
    }
    assert merged["partB"]["papers"]["ugc"]["verified"] == 3


def test_merge_is_idempotent():
    writes = plan_verification(create_verification_payload()).writes
    once = apply_writes(default_document(), writes)
    twice = apply_writes(once, writes)

    assert once == twice


def test_oversized_integer_is_skipped_not_fatal():
    plan = plan_verification(
        {"partB": {"papers": {"sci": {"verified": 10**400}}, "totalVerified": 12}}
    )

    assert _written(plan) == {"partB.totalVerified": 12}
    assert set(plan.skipped) == {"partB.papers.sci.verified"}
