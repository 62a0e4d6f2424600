from __future__ import annotations

import json

import httpx
import pytest

from plantops.core.errors import DomainError
from plantops.domain.approval import ApprovalReviewService, DefaultMutationGate
from plantops.domain.records import DomainType, HttpRecordMutator, RecordMutatorRegistry, sheet_for

from tests.fixtures.record_backend_stub import RecordBackendStub
from tests.fixtures.records import FUEL_LOG_R42, pending_request
from tests.fixtures.users import OPERATOR_NPK1, SUPERVISOR

BASE_URL = "https://script.example/macros/s/abc/exec"


@pytest.fixture
def backend() -> RecordBackendStub:
    return RecordBackendStub({
        "perta": [dict(FUEL_LOG_R42)],
        "perta_NPK1": [{"id": "R42", "unit": "Forklift 1", "liter": 40}],
    })


@pytest.fixture
def client(backend):
    return httpx.AsyncClient(transport=httpx.MockTransport(backend))


def test_sheet_naming() -> None:
    assert sheet_for(DomainType.FUEL, "NPK2") == "perta"
    assert sheet_for(DomainType.FUEL, "NPK1") == "perta_NPK1"
    assert sheet_for(DomainType.GATE_PASS, "NPK1") == "gatepass_NPK1"


@pytest.mark.anyio
async def test_fetch_record_reads_plant_sheet(backend, client) -> None:
    mutator = HttpRecordMutator(DomainType.FUEL, base_url=BASE_URL, client=client)

    npk1 = await mutator.fetch_record("R42", plant_scope="NPK1")
    npk2 = await mutator.fetch_record("R42", plant_scope="NPK2")
    missing = await mutator.fetch_record("R99", plant_scope="NPK2")

    assert npk1["unit"] == "Forklift 1"
    assert npk2 == FUEL_LOG_R42
    assert missing is None

    first = backend.requests[0]
    assert first.method == "GET"
    assert first.url.params["action"] == "read"
    assert first.url.params["sheet"] == "perta_NPK1"


@pytest.mark.anyio
async def test_apply_edit_posts_update(backend, client) -> None:
    mutator = HttpRecordMutator(DomainType.FUEL, base_url=BASE_URL + "/", client=client)

    result = await mutator.apply_edit("R42", {"liter": 125.0}, plant_scope="NPK2")

    assert result["ok"] is True
    assert backend.sheets["perta"][0] == {"liter": 125.0, "id": "R42"}

    sent = backend.requests[-1]
    assert str(sent.url) == BASE_URL
    assert sent.headers["content-type"] == "text/plain;charset=utf-8"
    assert json.loads(sent.content) == {
        "action": "update",
        "sheet": "perta",
        "data": {"liter": 125.0, "id": "R42"},
    }


@pytest.mark.anyio
async def test_apply_delete_posts_delete(backend, client) -> None:
    mutator = HttpRecordMutator(DomainType.FUEL, base_url=BASE_URL, client=client)

    await mutator.apply_delete("R42", plant_scope="NPK1")

    assert backend.sheets["perta_NPK1"] == []
    assert backend.sheets["perta"] == [FUEL_LOG_R42]
    assert json.loads(backend.requests[-1].content)["action"] == "delete"


@pytest.mark.anyio
async def test_unsuccessful_response_is_domain_error(client) -> None:
    mutator = HttpRecordMutator(DomainType.FUEL, base_url=BASE_URL, client=client)

    with pytest.raises(DomainError) as exc:
        await mutator.apply_edit("R404", {"liter": 1}, plant_scope="NPK2")

    assert exc.value.domain_type == "perta"
    assert "Data tidak ditemukan" in exc.value.message


@pytest.mark.anyio
async def test_gate_over_http_registry(repo, backend, client) -> None:
    registry = RecordMutatorRegistry.http(BASE_URL, client=client)
    gate = DefaultMutationGate(repo, registry, domain_timeout=1.0)

    direct = await gate.request_edit(
        SUPERVISOR, "perta", "R42", "NPK2", {**FUEL_LOG_R42, "liter": 130.0}
    )
    queued = await gate.request_delete(OPERATOR_NPK1, "perta", "R42", "NPK1", reason="duplicate")

    assert direct.queued is False
    assert backend.sheets["perta"][0]["liter"] == 130.0
    assert queued.queued is True
    assert repo.get(queued.request_id).snapshot == {"id": "R42", "unit": "Forklift 1", "liter": 40}
    assert backend.sheets["perta_NPK1"] != []


@pytest.mark.anyio
async def test_backend_http_failure_surfaces_as_domain_error(repo) -> None:
    def broken(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=500, text="Internal error")

    client = httpx.AsyncClient(transport=httpx.MockTransport(broken))
    gate = DefaultMutationGate(repo, RecordMutatorRegistry.http(BASE_URL, client=client))

    with pytest.raises(DomainError):
        await gate.request_delete(SUPERVISOR, DomainType.FUEL, "R42", "NPK2")


@pytest.mark.anyio
async def test_delete_of_absent_record_counts_as_done(backend, client) -> None:
    mutator = HttpRecordMutator(DomainType.FUEL, base_url=BASE_URL, client=client)

    result = await mutator.apply_delete("R404", plant_scope="NPK2")

    assert result == {"ok": True, "record_id": "R404", "data": None}
    assert backend.sheets["perta"] == [FUEL_LOG_R42]


@pytest.mark.anyio
async def test_retry_after_lost_delete_response(repo, backend) -> None:
    # The backend deletes the row, but the first response never arrives.
    lost = []

    def flaky(request: httpx.Request) -> httpx.Response:
        response = backend(request)
        if request.method == "POST" and not lost:
            lost.append(request)
            raise httpx.ReadTimeout("response lost", request=request)
        return response

    client = httpx.AsyncClient(transport=httpx.MockTransport(flaky))
    review = ApprovalReviewService(
        repo, RecordMutatorRegistry.http(BASE_URL, client=client), domain_timeout=1.0
    )
    created = repo.create(pending_request(action="delete", snapshot=dict(FUEL_LOG_R42)))

    with pytest.raises(DomainError):
        await review.approve(created.id, SUPERVISOR)

    assert backend.sheets["perta"] == []
    assert repo.get(created.id).awaiting_apply

    applied = await review.retry_apply(created.id, SUPERVISOR)

    assert applied.status == "approved"
    assert applied.applied_at is not None
    assert applied.apply_error is None
