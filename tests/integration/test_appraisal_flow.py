"""Integration tests for the appraisal lifecycle against the in-memory store.

Covers the full DRAFT -> SUBMITTED -> VERIFIED -> APPROVED path through the
service layer, including committee-based verifier access, field scoping and
concurrent approvals.
"""

import asyncio
from unittest.mock import patch

import pytest

from app.core.errors import (
    AuthorizationError,
    ConflictError,
    DeclarationRequiredError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from app.models.enums import Role
from app.services import appraisals as svc
from app.services.committee import rebuild_committee
from app.services.users import deactivate_user
from tests.fixtures.factories import (
    ADMIN,
    create_part_b_payload,
    create_verification_payload,
    identity,
    seed_user,
)

YEAR = 2025
OWNER = identity("F001")
VERIFIER = identity("V001")
DEAN = identity("D001", Role.DEAN)
DIRECTOR = identity("DIR1", Role.DIRECTOR)


async def _setup(store):
    """Faculty F001 (computer) with V001 (it) as committee verifier."""
    await seed_user(store, "F001", department="computer")
    await seed_user(store, "V001", department="it")
    await seed_user(store, "V002", department="civil")
    await seed_user(store, "D001", department="ash", role="dean", designation="Professor")
    await seed_user(store, "DIR1", department="ash", role="director", designation="Professor")
    await rebuild_committee(ADMIN, "computer", ["V001"])


async def _submitted(store):
    await _setup(store)
    await svc.create_appraisal(OWNER)
    await svc.update_section(OWNER, "F001", YEAR, "B", create_part_b_payload())
    await svc.update_declaration(OWNER, "F001", YEAR, {"isAgreed": True})
    return await svc.submit_appraisal(OWNER, "F001", YEAR)


async def _verified(store):
    await _submitted(store)
    result = await svc.verify_appraisal(VERIFIER, "F001", YEAR, create_verification_payload())
    return result["appraisal"]


async def _approved(store):
    await _verified(store)
    return await svc.approve_appraisal(DEAN, "F001", YEAR)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_full_lifecycle(store):
    """Create, fill, declare, submit, verify, mark and approve one record."""
    await _setup(store)

    record = await svc.create_appraisal(OWNER)
    assert record["status"] == "DRAFT"
    assert record["appraisal_year"] == YEAR
    assert record["designation"] == "Assistant Professor"

    await svc.update_section(OWNER, "F001", YEAR, "B", create_part_b_payload())
    await svc.update_section(
        OWNER, "F001", YEAR, "D", {"selfAwardedMarks": 20, "totalMarks": 20}
    )
    await svc.update_section(
        OWNER, "F001", YEAR, "partE", {"bulletPoints": "Led NBA visit", "selfAwardedMarks": 30}
    )
    await svc.update_declaration(OWNER, "F001", YEAR, {"isAgreed": True})

    submitted = await svc.submit_appraisal(OWNER, "F001", YEAR)
    assert submitted["status"] == "SUBMITTED"
    assert submitted["document"]["summary"]["grandTotalClaimed"] == 82
    assert isinstance(submitted["document"]["declaration"]["signatureDate"], str)

    marked = await svc.update_evaluator_mark(DEAN, "F001", YEAR, 35)
    assert marked["status"] == "SUBMITTED"
    assert marked["document"]["partD"]["deanMarks"] == 35
    assert marked["document"]["partD"]["isMarkDean"] is True

    result = await svc.verify_appraisal(VERIFIER, "F001", YEAR, create_verification_payload())
    verified = result["appraisal"]
    assert verified["status"] == "VERIFIED"
    assert "partB.papers.sci.verified" in result["applied"]
    assert result["skipped"] == {}

    approved = await svc.approve_appraisal(DEAN, "F001", YEAR, final_total=90, admin_weightage=0.8)
    assert approved["status"] == "APPROVED"
    assert approved["document"]["summary"]["grandTotalVerified"] == 90
    assert approved["document"]["summary"]["adminWeightage"] == 0.8
    assert approved["document"]["partD"]["deanMarks"] == 35

    with pytest.raises(PreconditionFailedError) as exc_info:
        await svc.approve_appraisal(DIRECTOR, "F001", YEAR)
    assert exc_info.value.current_status == "APPROVED"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_section_update_drops_forbidden_keys(store):
    await _setup(store)
    await svc.create_appraisal(OWNER)

    record = await svc.update_section(OWNER, "F001", YEAR, "B", create_part_b_payload())

    part_b = record["document"]["partB"]
    assert part_b["papers"]["sci"] == {
        "count": 2,
        "proof": "https://drive.test/sci",
        "claimed": 16,
        "verified": 0,
    }
    assert part_b["grants"]["research"]["amount"] == 250000
    assert part_b["totalClaimed"] == 32
    assert part_b["totalVerified"] == 0
    assert "unknownSection" not in part_b


@pytest.mark.integration
@pytest.mark.asyncio
async def test_section_updates_do_not_clobber_each_other(store):
    await _setup(store)
    await svc.create_appraisal(OWNER)

    await svc.update_section(OWNER, "F001", YEAR, "B", create_part_b_payload())
    await svc.update_section(OWNER, "F001", YEAR, "B", {"papers": {"esci": {"count": 1}}})
    record = await svc.update_section(OWNER, "F001", YEAR, "C", {"phdAwarded": True})

    document = record["document"]
    assert document["partB"]["papers"]["sci"]["claimed"] == 16
    assert document["partB"]["papers"]["esci"]["count"] == 1
    assert document["partB"]["totalClaimed"] == 32
    assert document["partC"]["phdAwarded"] is True


@pytest.mark.integration
@pytest.mark.asyncio
async def test_owner_cannot_write_evaluator_leaves_of_part_d(store):
    await _setup(store)
    await svc.create_appraisal(OWNER)

    record = await svc.update_section(
        OWNER,
        "F001",
        YEAR,
        "D",
        {"deanMarks": 50, "isMarkHOD": True, "directorMarks": 9, "selfAwardedMarks": 12},
    )

    part_d = record["document"]["partD"]
    assert part_d["deanMarks"] == 0
    assert part_d["isMarkHOD"] is False
    assert part_d["directorMarks"] == 0
    assert part_d["selfAwardedMarks"] == 12


@pytest.mark.integration
@pytest.mark.asyncio
async def test_bad_section_value_writes_nothing(store):
    await _setup(store)
    await svc.create_appraisal(OWNER)

    with pytest.raises(ValidationError):
        await svc.update_section(
            OWNER, "F001", YEAR, "E", {"bulletPoints": "kept?", "selfAwardedMarks": "lots"}
        )

    record = await svc.get_appraisal(OWNER, "F001", YEAR)
    assert record["document"]["partE"]["bulletPoints"] == ""


@pytest.mark.integration
@pytest.mark.asyncio
async def test_unknown_section_rejected(store):
    await _setup(store)
    await svc.create_appraisal(OWNER)

    with pytest.raises(ValidationError) as exc_info:
        await svc.update_section(OWNER, "F001", YEAR, "F", {})

    assert exc_info.value.field == "section_id"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_other_faculty_cannot_edit_section(store):
    await _setup(store)
    await svc.create_appraisal(OWNER)

    with pytest.raises(AuthorizationError):
        await svc.update_section(VERIFIER, "F001", YEAR, "E", {"bulletPoints": "x"})


@pytest.mark.integration
@pytest.mark.asyncio
async def test_submit_requires_declaration(store):
    await _setup(store)
    await svc.create_appraisal(OWNER)

    with pytest.raises(DeclarationRequiredError) as exc_info:
        await svc.submit_appraisal(OWNER, "F001", YEAR)

    assert exc_info.value.current_status == "DRAFT"
    record = await svc.get_appraisal(OWNER, "F001", YEAR)
    assert record["status"] == "DRAFT"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_withdrawn_declaration_blocks_submit(store):
    await _setup(store)
    await svc.create_appraisal(OWNER)
    await svc.update_declaration(OWNER, "F001", YEAR, {"isAgreed": True})
    await svc.update_declaration(OWNER, "F001", YEAR, {"isAgreed": False})

    with pytest.raises(DeclarationRequiredError):
        await svc.submit_appraisal(OWNER, "F001", YEAR)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_declaration_withdrawn_during_submit(store):
    """The owner un-agrees between the submit read and its write."""
    await _setup(store)
    await svc.create_appraisal(OWNER)
    await svc.update_declaration(OWNER, "F001", YEAR, {"isAgreed": True})
    original_get = store.appraisals.get
    withdrawn = False

    async def get_then_withdraw(user_id, year):
        nonlocal withdrawn
        record = await original_get(user_id, year)
        if not withdrawn:
            withdrawn = True
            await svc.update_declaration(OWNER, "F001", YEAR, {"isAgreed": False})
        return record

    with patch.object(store.appraisals, "get", new=get_then_withdraw):
        with pytest.raises(DeclarationRequiredError):
            await svc.submit_appraisal(OWNER, "F001", YEAR)

    record = await svc.get_appraisal(OWNER, "F001", YEAR)
    assert record["status"] == "DRAFT"
    assert record["document"]["declaration"]["isAgreed"] is False
    assert record["document"]["declaration"]["signatureDate"] is None


@pytest.mark.integration
@pytest.mark.asyncio
async def test_submit_totals_reflect_concurrent_section_edit(store):
    await _setup(store)
    await svc.create_appraisal(OWNER)
    await svc.update_section(OWNER, "F001", YEAR, "E", {"selfAwardedMarks": 30})
    await svc.update_declaration(OWNER, "F001", YEAR, {"isAgreed": True})
    original_get = store.appraisals.get
    edited = False

    async def get_then_edit(user_id, year):
        nonlocal edited
        record = await original_get(user_id, year)
        if not edited:
            edited = True
            await svc.update_section(OWNER, "F001", YEAR, "E", {"selfAwardedMarks": 45})
        return record

    with patch.object(store.appraisals, "get", new=get_then_edit):
        submitted = await svc.submit_appraisal(OWNER, "F001", YEAR)

    assert submitted["status"] == "SUBMITTED"
    assert submitted["document"]["summary"]["grandTotalClaimed"] == 45


@pytest.mark.integration
@pytest.mark.asyncio
async def test_submitted_record_is_frozen_for_owner(store):
    await _submitted(store)

    with pytest.raises(PreconditionFailedError) as exc_info:
        await svc.update_section(OWNER, "F001", YEAR, "B", {"totalClaimed": 99})
    assert exc_info.value.expected_status == "DRAFT"
    assert exc_info.value.current_status == "SUBMITTED"

    with pytest.raises(PreconditionFailedError):
        await svc.submit_appraisal(OWNER, "F001", YEAR)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_verify_never_touches_claimed_values(store):
    record = await _verified(store)

    sci = record["document"]["partB"]["papers"]["sci"]
    assert sci["verified"] == 12
    assert sci["claimed"] == 16
    assert sci["count"] == 2
    assert record["document"]["partB"]["papers"]["scopus"]["verified"] == 4
    assert record["document"]["partB"]["totalClaimed"] == 32
    assert record["document"]["partB"]["totalVerified"] == 16
    assert record["document"]["partC"]["verifiedMarks"] == 8
    assert record["document"]["partE"]["evaluatorMarks"] == 40


@pytest.mark.integration
@pytest.mark.asyncio
async def test_verify_skips_bad_values_and_applies_the_rest(store):
    await _submitted(store)

    result = await svc.verify_appraisal(
        VERIFIER,
        "F001",
        YEAR,
        {
            "partB": {"papers": {"sci": {"verified": -3, "claimed": 1}, "scopus": 5}},
            "partC": {"verifiedMarks": "eight"},
            "extras": {"x": 1},
        },
    )

    assert result["appraisal"]["status"] == "VERIFIED"
    assert result["applied"] == ["partB.papers.scopus.verified"]
    assert set(result["skipped"]) == {"partB.papers.sci.verified", "partC.verifiedMarks"}
    assert "partB.papers.sci.claimed" in result["ignored"]
    assert "extras" in result["ignored"]
    document = result["appraisal"]["document"]
    assert document["partB"]["papers"]["sci"]["claimed"] == 16
    assert document["partB"]["papers"]["sci"]["verified"] == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_verify_without_payload_only_transitions(store):
    before = await _submitted(store)

    result = await svc.verify_appraisal(DEAN, "F001", YEAR)

    assert result["appraisal"]["status"] == "VERIFIED"
    assert result["applied"] == []
    assert result["appraisal"]["document"] == before["document"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_second_verify_fails_on_status(store):
    await _verified(store)

    with pytest.raises(PreconditionFailedError) as exc_info:
        await svc.verify_appraisal(VERIFIER, "F001", YEAR, create_verification_payload())

    assert exc_info.value.current_status == "VERIFIED"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_unassigned_faculty_cannot_verify_or_read(store):
    await _submitted(store)
    outsider = identity("V002")

    with pytest.raises(AuthorizationError):
        await svc.verify_appraisal(outsider, "F001", YEAR, create_verification_payload())
    with pytest.raises(AuthorizationError):
        await svc.get_appraisal(outsider, "F001", YEAR)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_assigned_verifier_can_read(store):
    await _submitted(store)

    record = await svc.get_appraisal(VERIFIER, "F001", YEAR)

    assert record["user_id"] == "F001"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_owner_cannot_verify_own_record(store):
    await _submitted(store)

    with pytest.raises(AuthorizationError):
        await svc.verify_appraisal(OWNER, "F001", YEAR)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_evaluator_mark_routing(store):
    await _submitted(store)
    await seed_user(store, "H001", department="computer", role="hod", designation="Professor")

    await svc.update_evaluator_mark(identity("H001", Role.HOD), "F001", YEAR, 18)
    record = await svc.update_evaluator_mark(DIRECTOR, "F001", YEAR, 22.5)

    part_d = record["document"]["partD"]
    assert part_d["hodMarks"] == 18
    assert part_d["isMarkHOD"] is True
    assert part_d["directorMarks"] == 22.5
    assert part_d["deanMarks"] == 0
    assert part_d["isMarkDean"] is False


@pytest.mark.integration
@pytest.mark.asyncio
async def test_evaluator_mark_rejections(store):
    await _submitted(store)

    with pytest.raises(ValidationError):
        await svc.update_evaluator_mark(DEAN, "F001", YEAR, -1)
    with pytest.raises(AuthorizationError):
        await svc.update_evaluator_mark(VERIFIER, "F001", YEAR, 10)
    with pytest.raises(AuthorizationError):
        await svc.update_evaluator_mark(ADMIN, "F001", YEAR, 10)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_evaluator_mark_requires_submitted(store):
    await _setup(store)
    await svc.create_appraisal(OWNER)

    with pytest.raises(PreconditionFailedError):
        await svc.update_evaluator_mark(DEAN, "F001", YEAR, 10)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_approve_requires_senior_approver(store):
    await _verified(store)

    with pytest.raises(AuthorizationError):
        await svc.approve_appraisal(VERIFIER, "F001", YEAR)
    with pytest.raises(AuthorizationError):
        await svc.approve_appraisal(ADMIN, "F001", YEAR)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_approve_rejects_negative_total(store):
    await _verified(store)

    with pytest.raises(ValidationError):
        await svc.approve_appraisal(DEAN, "F001", YEAR, final_total=-5)

    record = await svc.get_appraisal(DEAN, "F001", YEAR)
    assert record["status"] == "VERIFIED"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_concurrent_approvals_exactly_one_wins(store):
    await _verified(store)

    results = await asyncio.gather(
        svc.approve_appraisal(DEAN, "F001", YEAR),
        svc.approve_appraisal(DIRECTOR, "F001", YEAR),
        return_exceptions=True,
    )

    approved = [r for r in results if isinstance(r, dict)]
    failed = [r for r in results if isinstance(r, PreconditionFailedError)]
    assert len(approved) == 1
    assert len(failed) == 1
    assert approved[0]["status"] == "APPROVED"
    assert failed[0].current_status == "APPROVED"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_approve_skipping_verification_fails(store):
    await _submitted(store)

    with pytest.raises(PreconditionFailedError) as exc_info:
        await svc.approve_appraisal(DEAN, "F001", YEAR)

    assert exc_info.value.expected_status == "VERIFIED"
    assert exc_info.value.current_status == "SUBMITTED"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_delete_draft(store):
    await _setup(store)
    await svc.create_appraisal(OWNER)

    result = await svc.delete_appraisal(OWNER, "F001", YEAR)

    assert result == {"user_id": "F001", "appraisal_year": YEAR, "deleted": True}
    with pytest.raises(NotFoundError):
        await svc.get_appraisal(OWNER, "F001", YEAR)
    with pytest.raises(NotFoundError):
        await svc.delete_appraisal(OWNER, "F001", YEAR)


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("reach", "status"),
    [(_submitted, "SUBMITTED"), (_verified, "VERIFIED"), (_approved, "APPROVED")],
)
async def test_delete_after_submit_fails(store, reach, status):
    await reach(store)

    with pytest.raises(PreconditionFailedError) as exc_info:
        await svc.delete_appraisal(OWNER, "F001", YEAR)

    assert exc_info.value.expected_status == "DRAFT"
    assert exc_info.value.current_status == status
    record = await svc.get_appraisal(OWNER, "F001", YEAR)
    assert record["status"] == status


@pytest.mark.integration
@pytest.mark.asyncio
async def test_only_owner_deletes(store):
    await _setup(store)
    await svc.create_appraisal(OWNER)

    with pytest.raises(AuthorizationError):
        await svc.delete_appraisal(ADMIN, "F001", YEAR)
    with pytest.raises(AuthorizationError):
        await svc.delete_appraisal(DEAN, "F001", YEAR)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_rules(store):
    await _setup(store)
    await seed_user(store, "F009", department="computer", status="inactive")

    await svc.create_appraisal(OWNER)
    with pytest.raises(ConflictError):
        await svc.create_appraisal(OWNER)
    with pytest.raises(AuthorizationError):
        await svc.create_appraisal(OWNER, user_id="V001")
    with pytest.raises(NotFoundError):
        await svc.create_appraisal(ADMIN, user_id="F009")
    with pytest.raises(NotFoundError):
        await svc.create_appraisal(ADMIN, user_id="NOBODY")

    on_behalf = await svc.create_appraisal(ADMIN, user_id="V001", year=2024)
    assert on_behalf["user_id"] == "V001"
    assert on_behalf["appraisal_year"] == 2024


@pytest.mark.integration
@pytest.mark.asyncio
async def test_admin_cannot_hold_an_appraisal(store):
    await seed_user(store, "ADMIN1", department="ash", role="admin")

    with pytest.raises(ValidationError):
        await svc.create_appraisal(ADMIN, user_id="ADMIN1")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_get_missing_record(store):
    with pytest.raises(NotFoundError):
        await svc.get_appraisal(ADMIN, "F404", YEAR)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_deactivated_verifier_loses_access(store):
    await _submitted(store)
    await deactivate_user(ADMIN, "V001")

    with pytest.raises(AuthorizationError):
        await svc.get_appraisal(VERIFIER, "F001", YEAR)
    with pytest.raises(AuthorizationError):
        await svc.verify_appraisal(VERIFIER, "F001", YEAR, create_verification_payload())

    record = await svc.get_appraisal(DEAN, "F001", YEAR)
    assert record["status"] == "SUBMITTED"
