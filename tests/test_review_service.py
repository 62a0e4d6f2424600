from __future__ import annotations

import pytest

from plantops.core.errors import (
    AlreadyDecided,
    DomainError,
    Forbidden,
    RequestNotFound,
    ValidationError,
)
from plantops.domain.approval import ApprovalFilters
from plantops.domain.records import DomainType

from tests.fixtures.records import FUEL_LOG_R42, pending_request
from tests.fixtures.users import (
    ADMIN_ALL,
    AVP,
    MANAGER,
    OPERATOR,
    OPERATOR_NPK1,
    SUPERVISOR,
    SUPERVISOR_NPK1,
    VIEWER,
)


@pytest.fixture
def fuel(mutators):
    mutator = mutators.get(DomainType.FUEL)
    mutator.seed("NPK2", "R42", FUEL_LOG_R42)
    return mutator


# ============================================================
# Operator edit -> supervisor decision
# ============================================================

@pytest.mark.anyio
async def test_operator_edit_then_supervisor_approves(gate, review, repo, fuel) -> None:
    proposed = {**FUEL_LOG_R42, "liter": 125.0}
    queued = await gate.request_edit(
        OPERATOR, DomainType.FUEL, "R42", "NPK2", proposed, reason="correcting typo"
    )
    assert fuel.peek("NPK2", "R42")["liter"] == 120.5

    approved = await review.approve(queued.request_id, SUPERVISOR)

    assert approved.status == "approved"
    assert approved.decided_by == "sari"
    assert approved.decided_at is not None
    assert approved.reject_reason is None
    assert approved.applied_at is not None
    assert approved.apply_error is None
    assert fuel.calls == [("edit", "R42", proposed)]
    assert fuel.peek("NPK2", "R42") == proposed


@pytest.mark.anyio
async def test_approved_delete_removes_record(gate, review, fuel) -> None:
    queued = await gate.request_delete(OPERATOR, "perta", "R42", "NPK2", reason="double entry")

    await review.approve(queued.request_id, AVP)

    assert fuel.calls == [("delete", "R42", None)]
    assert fuel.peek("NPK2", "R42") is None


@pytest.mark.anyio
@pytest.mark.parametrize("reject_reason", [None, "", "   "])
async def test_reject_requires_reason(review, repo, reject_reason) -> None:
    created = repo.create(pending_request())

    with pytest.raises(ValidationError):
        await review.reject(created.id, SUPERVISOR, reject_reason)

    assert repo.get(created.id).is_pending


@pytest.mark.anyio
async def test_reject_leaves_record_unchanged(gate, review, fuel) -> None:
    queued = await gate.request_edit(
        OPERATOR, DomainType.FUEL, "R42", "NPK2", {"liter": 999}, reason="typo"
    )

    rejected = await review.reject(queued.request_id, SUPERVISOR, "wrong value")

    assert rejected.status == "rejected"
    assert rejected.reject_reason == "wrong value"
    assert rejected.applied_at is None
    assert fuel.calls == []
    assert fuel.peek("NPK2", "R42") == FUEL_LOG_R42


# ============================================================
# Authorization
# ============================================================

@pytest.mark.anyio
@pytest.mark.parametrize("reviewer", [OPERATOR_NPK1, VIEWER])
async def test_non_reviewers_cannot_decide(review, repo, fuel, reviewer) -> None:
    created = repo.create(pending_request(submitted_by="someone-else"))

    with pytest.raises(Forbidden):
        await review.approve(created.id, reviewer)
    with pytest.raises(Forbidden):
        await review.reject(created.id, reviewer, "no")

    assert repo.get(created.id).is_pending
    assert fuel.calls == []


@pytest.mark.anyio
async def test_manager_reviews_across_plants(review, repo, fuel) -> None:
    created = repo.create(pending_request())

    approved = await review.approve(created.id, MANAGER)

    assert approved.decided_by == "rudi"
    assert approved.applied_at is not None


@pytest.mark.anyio
async def test_reviewer_needs_plant_authority(review, repo, fuel) -> None:
    created = repo.create(pending_request(plant_scope="NPK2"))

    with pytest.raises(Forbidden):
        await review.approve(created.id, SUPERVISOR_NPK1)

    assert repo.get(created.id).is_pending


@pytest.mark.anyio
async def test_submitter_cannot_decide_own_request(review, repo, fuel) -> None:
    created = repo.create(pending_request(submitted_by=SUPERVISOR.username))

    with pytest.raises(Forbidden):
        await review.approve(created.id, SUPERVISOR)

    assert repo.get(created.id).is_pending
    assert fuel.calls == []


@pytest.mark.anyio
async def test_unknown_request(review) -> None:
    with pytest.raises(RequestNotFound):
        await review.approve("does-not-exist", SUPERVISOR)


# ============================================================
# Single decision
# ============================================================

@pytest.mark.anyio
async def test_second_decision_is_rejected(review, repo, fuel) -> None:
    created = repo.create(pending_request())
    first = await review.approve(created.id, SUPERVISOR)

    with pytest.raises(AlreadyDecided):
        await review.approve(created.id, AVP)
    with pytest.raises(AlreadyDecided):
        await review.reject(created.id, ADMIN_ALL, "too late")

    current = repo.get(created.id)
    assert current.status == "approved"
    assert current.decided_by == first.decided_by
    assert current.decided_at == first.decided_at
    assert len(fuel.calls) == 1


# ============================================================
# Approved-but-unapplied
# ============================================================

@pytest.mark.anyio
async def test_apply_failure_keeps_request_approved(review, repo, fuel) -> None:
    created = repo.create(pending_request())
    fuel.fail_with = ConnectionError("sheet backend unreachable")

    with pytest.raises(DomainError) as exc:
        await review.approve(created.id, SUPERVISOR)

    assert exc.value.request_id == created.id
    assert exc.value.retryable

    stored = repo.get(created.id)
    assert stored.status == "approved"
    assert stored.awaiting_apply
    assert "sheet backend unreachable" in stored.apply_error
    assert fuel.peek("NPK2", "R42") == FUEL_LOG_R42

    fuel.fail_with = None
    applied = await review.retry_apply(created.id, AVP)

    assert not applied.awaiting_apply
    assert applied.apply_error is None
    assert applied.decided_by == "sari"
    assert fuel.peek("NPK2", "R42")["liter"] == 125.0


@pytest.mark.anyio
async def test_retry_apply_needs_unapplied_approval(review, repo, fuel) -> None:
    created = repo.create(pending_request())

    with pytest.raises(ValidationError):
        await review.retry_apply(created.id, SUPERVISOR)

    await review.approve(created.id, SUPERVISOR)

    with pytest.raises(ValidationError):
        await review.retry_apply(created.id, SUPERVISOR)
    assert len(fuel.calls) == 1


# ============================================================
# Listing
# ============================================================

@pytest.fixture
def mixed_requests(repo):
    return [
        repo.create(pending_request()),
        repo.create(pending_request(plant_scope="NPK1", submitted_by="andi", target_record_id="R7")),
        repo.create(pending_request(domain_type="gatepass", target_record_id="GP-3", submitted_by="joko")),
    ]


def _ids(page):
    return {r.id for r in page.data}


def test_reviewer_sees_own_plant(review, mixed_requests) -> None:
    page = review.list_requests(SUPERVISOR)

    assert _ids(page) == {mixed_requests[0].id, mixed_requests[2].id}
    assert page.meta.total == 2


def test_cross_plant_reviewer_sees_everything(review, mixed_requests) -> None:
    assert _ids(review.list_requests(MANAGER)) == {r.id for r in mixed_requests}


def test_reviewer_cannot_ask_for_other_plant(review, mixed_requests) -> None:
    with pytest.raises(Forbidden):
        review.list_requests(SUPERVISOR_NPK1, ApprovalFilters(plant_scope="NPK2"))


def test_operator_sees_only_own_submissions(review, mixed_requests) -> None:
    page = review.list_requests(OPERATOR, ApprovalFilters(submitted_by="joko"))

    assert _ids(page) == {mixed_requests[0].id}


def test_list_filters_pass_through(review, mixed_requests) -> None:
    page = review.list_requests(ADMIN_ALL, ApprovalFilters(domain_type="gatepass"))

    assert _ids(page) == {mixed_requests[2].id}


def test_get_request_visibility(review, mixed_requests) -> None:
    own = mixed_requests[0]
    assert review.get_request(own.id, OPERATOR).id == own.id
    assert review.get_request(own.id, SUPERVISOR).id == own.id

    with pytest.raises(Forbidden):
        review.get_request(mixed_requests[2].id, OPERATOR)
    with pytest.raises(Forbidden):
        review.get_request(own.id, SUPERVISOR_NPK1)


@pytest.mark.anyio
async def test_summary_is_scoped(review, mixed_requests, fuel) -> None:
    await review.reject(mixed_requests[2].id, SUPERVISOR, "not needed")

    npk2 = review.summary(SUPERVISOR)
    assert (npk2.pending, npk2.approved, npk2.rejected) == (1, 0, 1)

    everything = review.summary(ADMIN_ALL)
    assert everything.total == 3
    assert everything.pending == 2

    mine = review.summary(OPERATOR)
    assert mine.total == 1
