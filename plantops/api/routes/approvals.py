from fastapi import APIRouter, Depends

from plantops.api.dependencies import get_current_user, get_review_service
from plantops.api.schemas import (
    ApprovalQuery,
    ApprovalRequestOut,
    ApprovalStatusFilter,
    PaginatedResponse,
    PaginationMeta,
    RejectIn,
    StatusCountsOut,
)
from plantops.domain.approval import (
    ApprovalFilters,
    ApprovalReviewService,
    Pagination,
    Sorting,
)
from plantops.domain.users import User

router = APIRouter(prefix="/approvals", tags=["Approvals"])


@router.get(
    "",
    summary="List approval requests",
    description="Returns approval requests filtered by status, domain, plant, submitter and free text.",
    response_model=PaginatedResponse[ApprovalRequestOut],
)
async def get_approvals(
    q: ApprovalQuery = Depends(),
    user: User = Depends(get_current_user),
    service: ApprovalReviewService = Depends(get_review_service),
):
    """
    List approval requests with optional filters.

    Query Parameters:
    - status: pending (default), approved, rejected or all
    - domain_type: Filter by data domain
    - plant_scope: Filter by plant
    - submitted_by: Filter by submitter
    - action: edit or delete
    - search: Free text over reason, submitter and record id
    - limit: Page size (default: 50)
    - offset: Pagination offset (default: 0)
    """
    filters = ApprovalFilters(
        status=None if q.status == ApprovalStatusFilter.all else q.status.value,
        domain_type=q.domain_type.value if q.domain_type else None,
        plant_scope=q.plant_scope.value if q.plant_scope else None,
        submitted_by=q.submitted_by,
        action=q.action.value if q.action else None,
        search=q.search,
    )
    paging = Pagination(limit=q.limit, offset=q.offset)
    sorting = Sorting(sort_by=q.sort_by.value, sort_order=q.sort_order.value)

    page = service.list_requests(user, filters=filters, paging=paging, sorting=sorting)

    return PaginatedResponse[ApprovalRequestOut](
        data=[ApprovalRequestOut.from_entity(r) for r in page.data],
        meta=PaginationMeta(
            total=page.meta.total,
            limit=page.meta.limit,
            offset=page.meta.offset,
            has_next=page.meta.has_next,
            has_previous=page.meta.has_previous,
        ),
    )


@router.get("/summary", response_model=StatusCountsOut)
async def get_approval_summary(
    user: User = Depends(get_current_user),
    service: ApprovalReviewService = Depends(get_review_service),
):
    """Counts per status for the inbox header."""
    return StatusCountsOut.from_counts(service.summary(user))


@router.get("/{request_id}", response_model=ApprovalRequestOut)
async def get_approval(
    request_id: str,
    user: User = Depends(get_current_user),
    service: ApprovalReviewService = Depends(get_review_service),
):
    """Get a specific approval request."""
    return ApprovalRequestOut.from_entity(service.get_request(request_id, user))


@router.post("/{request_id}/approve", response_model=ApprovalRequestOut)
async def approve_request(
    request_id: str,
    user: User = Depends(get_current_user),
    service: ApprovalReviewService = Depends(get_review_service),
):
    return ApprovalRequestOut.from_entity(await service.approve(request_id, user))


@router.post("/{request_id}/reject", response_model=ApprovalRequestOut)
async def reject_request(
    request_id: str,
    body: RejectIn,
    user: User = Depends(get_current_user),
    service: ApprovalReviewService = Depends(get_review_service),
):
    return ApprovalRequestOut.from_entity(
        await service.reject(request_id, user, body.reject_reason)
    )


@router.post("/{request_id}/retry-apply", response_model=ApprovalRequestOut)
async def retry_apply(
    request_id: str,
    user: User = Depends(get_current_user),
    service: ApprovalReviewService = Depends(get_review_service),
):
    """Re-run the record mutation of an approved request that failed to apply."""
    return ApprovalRequestOut.from_entity(await service.retry_apply(request_id, user))
