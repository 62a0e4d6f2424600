from fastapi import APIRouter, Depends

from plantops.api.dependencies import get_current_user, get_mutation_gate
from plantops.api.schemas import DeleteRecordIn, EditRecordIn, GateResultOut
from plantops.domain.approval import MutationGate
from plantops.domain.records import DomainType
from plantops.domain.users import User

router = APIRouter(prefix="/records", tags=["Records"])


@router.post(
    "/{domain_type}/{record_id}/edit",
    summary="Edit a record",
    description="Applies the edit directly or queues it for approval, depending on the caller's role.",
    response_model=GateResultOut,
)
async def edit_record(
    domain_type: DomainType,
    record_id: str,
    body: EditRecordIn,
    user: User = Depends(get_current_user),
    gate: MutationGate = Depends(get_mutation_gate),
):
    result = await gate.request_edit(
        user,
        domain_type,
        record_id,
        body.plant.value,
        body.proposed_state,
        reason=body.reason,
    )
    return GateResultOut(**result.to_dict())


@router.post(
    "/{domain_type}/{record_id}/delete",
    summary="Delete a record",
    description="Deletes directly or queues the deletion for approval, depending on the caller's role.",
    response_model=GateResultOut,
)
async def delete_record(
    domain_type: DomainType,
    record_id: str,
    body: DeleteRecordIn,
    user: User = Depends(get_current_user),
    gate: MutationGate = Depends(get_mutation_gate),
):
    result = await gate.request_delete(
        user,
        domain_type,
        record_id,
        body.plant.value,
        reason=body.reason,
        current_state=body.current_state,
    )
    return GateResultOut(**result.to_dict())
