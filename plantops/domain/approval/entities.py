# ============================================================
# Business/domain entities
# ============================================================
from dataclasses import dataclass
from typing import Any, Optional, Literal
from datetime import datetime

from .models import ApprovalStatus

SortOrderLiteral = Literal["asc", "desc"]
ApprovalSortFieldLiteral = Literal["submitted_at", "status", "domain_type", "decided_at"]

@dataclass(frozen=True)
class GateResult:
    """Outcome of a gated edit/delete.

    Either the mutation ran directly (`result` holds the domain response) or
    it was queued as an approval request (`request_id` is set).
    """
    queued: bool
    request_id: str | None = None
    result: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.queued:
            return {"queued": True, "request_id": self.request_id}
        return {"queued": False, "result": self.result}


@dataclass(frozen=True)
class ApprovalFilters:
    status: Optional[str] = None
    domain_type: Optional[str] = None
    plant_scope: Optional[str] = None
    submitted_by: Optional[str] = None
    action: Optional[str] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class Pagination:
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True)
class Sorting:
    sort_by: ApprovalSortFieldLiteral = "submitted_at"
    sort_order: SortOrderLiteral = "desc"


@dataclass(frozen=True)
class PageMeta:
    total: int
    limit: int
    offset: int
    has_next: bool
    has_previous: bool


@dataclass(frozen=True)
class PageResult:
    data: list["ApprovalRequestEntity"]
    meta: PageMeta

@dataclass
class ApprovalRequestEntity:
    domain_type: str
    action: str
    target_record_id: str
    plant_scope: str
    snapshot: dict[str, Any]
    reason: str
    submitted_by: str
    id: str | None = None
    submitted_at: datetime | None = None
    status: str = ApprovalStatus.PENDING.value
    decided_by: str | None = None
    decided_at: datetime | None = None
    reject_reason: str | None = None
    applied_at: datetime | None = None
    apply_error: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING.value

    @property
    def awaiting_apply(self) -> bool:
        """Approved, but the record mutation has not gone through yet."""
        return self.status == ApprovalStatus.APPROVED.value and self.applied_at is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "domain_type": self.domain_type,
            "action": self.action,
            "target_record_id": self.target_record_id,
            "plant_scope": self.plant_scope,
            "snapshot": self.snapshot,
            "reason": self.reason,
            "submitted_by": self.submitted_by,
            "submitted_at": _iso(self.submitted_at),
            "status": self.status,
            "decided_by": self.decided_by,
            "decided_at": _iso(self.decided_at),
            "reject_reason": self.reject_reason,
            "applied_at": _iso(self.applied_at),
            "apply_error": self.apply_error,
        }


@dataclass(frozen=True)
class StatusCounts:
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    awaiting_apply: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.approved + self.rejected


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
