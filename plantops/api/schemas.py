from typing import Optional, Generic, List, TypeVar, Any
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field

from plantops.config import settings
from plantops.domain.approval import ApprovalRequestEntity, StatusCounts
from plantops.domain.records import DomainType, MutationAction
from plantops.domain.users import Plant

class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


class ApprovalSortField(str, Enum):
    submitted_at = "submitted_at"
    status = "status"
    domain_type = "domain_type"
    decided_at = "decided_at"


class ApprovalStatusFilter(str, Enum):
    all = "all"
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ApprovalQuery(BaseModel):
    """
    Query filters for listing approval requests.

    All fields are optional.
    Defaults match the approval inbox: pending requests, newest first.
    """

    # Filtering
    status: ApprovalStatusFilter = Field(
        default=ApprovalStatusFilter.pending,
        description="Filter by status ('all' disables the filter)"
    )

    domain_type: Optional[DomainType] = Field(
        default=None,
        description="Data domain of the target record"
    )

    plant_scope: Optional[Plant] = Field(
        default=None,
        description="Plant of the target record"
    )

    submitted_by: Optional[str] = Field(
        default=None,
        description="User who submitted the request"
    )

    action: Optional[MutationAction] = Field(
        default=None,
        description="edit or delete"
    )

    search: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Free text matched against reason, submitter and record id"
    )

    # Pagination
    limit: int = Field(
        default=settings.default_page_size,
        ge=1,
        le=100,
        description="Maximum number of records to return (1-100)"
    )

    offset: int = Field(
        default=0,
        ge=0,
        description="Number of records to skip (pagination)"
    )

    # Sorting
    sort_by: ApprovalSortField = Field(
        default=ApprovalSortField.submitted_at,
        description="Field to sort by"
    )
    sort_order: SortOrder = Field(
        default=SortOrder.desc,
        description="Sort order (asc or desc)"
    )


class EditRecordIn(BaseModel):
    plant: Plant
    proposed_state: dict[str, Any]
    reason: Optional[str] = None


class DeleteRecordIn(BaseModel):
    plant: Plant
    reason: Optional[str] = None
    current_state: Optional[dict[str, Any]] = Field(
        default=None,
        description="Record as the user saw it; read from the backend when omitted",
    )


class RejectIn(BaseModel):
    reject_reason: Optional[str] = None


class GateResultOut(BaseModel):
    queued: bool
    request_id: Optional[str] = None
    result: Optional[dict[str, Any]] = None


class ApprovalRequestOut(BaseModel):
    id: str
    domain_type: str
    action: str
    target_record_id: str
    plant_scope: str
    snapshot: dict[str, Any]
    reason: str
    submitted_by: str
    submitted_at: datetime
    status: str
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    reject_reason: Optional[str] = None
    applied_at: Optional[datetime] = None
    apply_error: Optional[str] = None
    awaiting_apply: bool = False

    @classmethod
    def from_entity(cls, entity: ApprovalRequestEntity) -> "ApprovalRequestOut":
        return cls(
            id=entity.id,
            domain_type=entity.domain_type,
            action=entity.action,
            target_record_id=entity.target_record_id,
            plant_scope=entity.plant_scope,
            snapshot=entity.snapshot,
            reason=entity.reason,
            submitted_by=entity.submitted_by,
            submitted_at=entity.submitted_at,
            status=entity.status,
            decided_by=entity.decided_by,
            decided_at=entity.decided_at,
            reject_reason=entity.reject_reason,
            applied_at=entity.applied_at,
            apply_error=entity.apply_error,
            awaiting_apply=entity.awaiting_apply,
        )


class StatusCountsOut(BaseModel):
    pending: int
    approved: int
    rejected: int
    awaiting_apply: int
    total: int

    @classmethod
    def from_counts(cls, counts: StatusCounts) -> "StatusCountsOut":
        return cls(
            pending=counts.pending,
            approved=counts.approved,
            rejected=counts.rejected,
            awaiting_apply=counts.awaiting_apply,
            total=counts.total,
        )

T = TypeVar("T")

class PaginationMeta(BaseModel):
    total: int
    limit: int
    offset: int
    has_next: bool
    has_previous: bool

class PaginatedResponse(BaseModel, Generic[T]):
    data: List[T]
    meta: PaginationMeta
