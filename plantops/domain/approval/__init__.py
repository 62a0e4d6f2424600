"""This module gates record edits/deletes and handles their approvals."""
from .models import ApprovalStatus
from .entities import (
    ApprovalFilters,
    ApprovalRequestEntity,
    GateResult,
    PageResult,
    Pagination,
    Sorting,
    StatusCounts,
)
from .repository import ApprovalRequestRepository, ApprovalRequestRepositoryProtocol
from .mutation_gate import MutationGate
from .default_mutation_gate import DefaultMutationGate
from .review_service import ApprovalReviewService
