"""Human decision point for approval requests, and the bridge back to the records.

Approving is two-phase: the decision is committed to the request store first,
then the stored snapshot is applied through the domain's record mutator. The
two live in separate systems, so an apply failure leaves the request
`approved` with no `applied_at` (approved-but-unapplied) and records the
error; `retry_apply` replays the mutation without deciding again.
"""

from __future__ import annotations

import dataclasses

from plantops.config import settings
from plantops.core.errors import DomainError, Forbidden, GateError, ValidationError
from plantops.domain.policies import PolicyResolver
from plantops.domain.records import MutationAction, RecordMutatorRegistry, invoke_mutation
from plantops.domain.users.entities import User
from plantops.observability.tracing import Span, log_event, new_trace_id

from .entities import (
    ApprovalFilters,
    ApprovalRequestEntity as ApprovalRequest,
    Pagination,
    PageResult,
    Sorting,
    StatusCounts,
)
from .models import ApprovalStatus
from .repository import ApprovalRequestRepositoryProtocol


class ApprovalReviewService:
    """Lists requests and applies reviewer decisions."""

    def __init__(
        self,
        approval_repository: ApprovalRequestRepositoryProtocol,
        mutators: RecordMutatorRegistry,
        resolver: PolicyResolver | None = None,
        domain_timeout: float | None = None,
    ) -> None:
        self._repo = approval_repository
        self._mutators = mutators
        self._resolver = resolver or PolicyResolver()
        self._domain_timeout = domain_timeout or settings.domain_timeout_seconds

    # -------------------------
    # READ
    # -------------------------

    def list_requests(
        self,
        viewer: User,
        filters: ApprovalFilters | None = None,
        paging: Pagination | None = None,
        sorting: Sorting | None = None,
    ) -> PageResult:
        """List requests visible to `viewer`, newest first.

        Reviewers see every request of the plants they have authority over.
        Anyone else only sees what they submitted.
        """
        filters = self._scope_filters(viewer, filters or ApprovalFilters())
        return self._repo.list(
            filters=filters,
            paging=paging or Pagination(limit=settings.default_page_size),
            sorting=sorting or Sorting(),
        )

    def get_request(self, request_id: str, viewer: User) -> ApprovalRequest:
        request = self._repo.get(request_id)
        if not viewer.has_authority_over(request.plant_scope) or not (
            self._resolver.can_review(viewer.role)
            or request.submitted_by == viewer.username
        ):
            raise Forbidden(
                f"Approval request '{request_id}' is not visible to '{viewer.username}'",
                request_id=request_id,
                domain_type=request.domain_type,
            )
        return request

    def summary(self, viewer: User) -> StatusCounts:
        """Per-status counts in the viewer's scope."""
        scoped = self._scope_filters(viewer, ApprovalFilters())
        return self._repo.count_by_status(
            plant_scope=scoped.plant_scope,
            submitted_by=scoped.submitted_by,
        )

    # -------------------------
    # DECIDE
    # -------------------------

    async def approve(self, request_id: str, reviewer: User) -> ApprovalRequest:
        """Approve a pending request, then apply its snapshot to the record.

        Raises:
            Forbidden: reviewer may not decide this request.
            AlreadyDecided: somebody decided it first.
            DomainError: decided, but the record mutation failed; the request
                is left approved-but-unapplied and can be retried.
        """
        trace_id = new_trace_id()
        self._require_reviewer(reviewer, request_id)
        request = self._repo.get(request_id)
        self._require_authority(reviewer, request)

        decided = self._repo.decide(request_id, ApprovalStatus.APPROVED, reviewer.username)

        log_event(
            'approval.approved',
            trace_id=trace_id,
            request_id=request_id,
            domain_type=decided.domain_type,
            action=decided.action,
            decided_by=reviewer.username,
        )

        return await self._apply(trace_id, decided)

    async def reject(
        self,
        request_id: str,
        reviewer: User,
        reject_reason: str | None,
    ) -> ApprovalRequest:
        """Reject a pending request. The record is left exactly as it was."""
        trace_id = new_trace_id()
        self._require_reviewer(reviewer, request_id)
        if not isinstance(reject_reason, str) or not reject_reason.strip():
            raise ValidationError(
                "A reason is required to reject a request",
                request_id=request_id,
            )

        request = self._repo.get(request_id)
        self._require_authority(reviewer, request)

        decided = self._repo.decide(
            request_id,
            ApprovalStatus.REJECTED,
            reviewer.username,
            reject_reason=reject_reason,
        )

        log_event(
            'approval.rejected',
            trace_id=trace_id,
            request_id=request_id,
            domain_type=decided.domain_type,
            action=decided.action,
            decided_by=reviewer.username,
            reject_reason=decided.reject_reason,
        )
        return decided

    async def retry_apply(self, request_id: str, reviewer: User) -> ApprovalRequest:
        """Replay the record mutation of an approved-but-unapplied request."""
        trace_id = new_trace_id()
        self._require_reviewer(reviewer, request_id)
        request = self._repo.get(request_id)
        self._require_authority(reviewer, request)

        if not request.awaiting_apply:
            raise ValidationError(
                f"Approval request '{request_id}' has nothing to apply (status={request.status})",
                request_id=request_id,
                domain_type=request.domain_type,
            )

        log_event(
            'approval.apply_retry',
            trace_id=trace_id,
            request_id=request_id,
            previous_error=request.apply_error,
            user=reviewer.username,
        )
        return await self._apply(trace_id, request)

    # ------------------------------
    # Helpers
    # ------------------------------

    async def _apply(self, trace_id: str, request: ApprovalRequest) -> ApprovalRequest:
        span = Span(name='domain.apply', trace_id=trace_id).annotate(
            request_id=request.id,
            domain_type=request.domain_type,
            action=request.action,
            attempt='retry' if request.apply_error else 'first',
        )

        try:
            mutator = self._mutators.get(request.domain_type)
            if request.action == MutationAction.EDIT.value:
                call = mutator.apply_edit(
                    request.target_record_id,
                    request.snapshot,
                    plant_scope=request.plant_scope,
                )
            else:
                call = mutator.apply_delete(
                    request.target_record_id,
                    plant_scope=request.plant_scope,
                )
            await invoke_mutation(
                call,
                timeout=self._domain_timeout,
                domain_type=request.domain_type,
                request_id=request.id,
            )
        except GateError as exc:
            span.end()
            self._repo.mark_apply_failed(request.id, exc.message)
            log_event(
                'approval.apply_failed',
                trace_id=trace_id,
                span=span,
                level='error',
                request_id=request.id,
                error=exc.message,
            )
            if isinstance(exc, DomainError):
                raise
            raise DomainError(
                f"Approved change could not be applied: {exc.message}",
                request_id=request.id,
                domain_type=request.domain_type,
            ) from exc

        span.end()
        applied = self._repo.mark_applied(request.id)
        log_event(
            'approval.applied',
            trace_id=trace_id,
            span=span,
            request_id=request.id,
        )
        return applied

    def _require_reviewer(self, reviewer: User, request_id: str) -> None:
        if not self._resolver.can_review(reviewer.role):
            raise Forbidden(
                f"Role '{_role_name(reviewer)}' may not review approval requests",
                request_id=request_id,
            )

    @staticmethod
    def _require_authority(reviewer: User, request: ApprovalRequest) -> None:
        if not reviewer.has_authority_over(request.plant_scope):
            raise Forbidden(
                f"Reviewer '{reviewer.username}' has no authority over plant {request.plant_scope}",
                request_id=request.id,
                domain_type=request.domain_type,
            )
        if request.submitted_by == reviewer.username:
            raise Forbidden(
                "A request must be decided by someone other than its submitter",
                request_id=request.id,
                domain_type=request.domain_type,
            )

    def _scope_filters(self, viewer: User, filters: ApprovalFilters) -> ApprovalFilters:
        if not viewer.has_cross_plant_authority:
            own_plant = _plant_name(viewer)
            if filters.plant_scope and filters.plant_scope != own_plant:
                raise Forbidden(
                    f"User '{viewer.username}' has no authority over plant {filters.plant_scope}"
                )
            filters = dataclasses.replace(filters, plant_scope=own_plant)

        if not self._resolver.can_review(viewer.role):
            filters = dataclasses.replace(filters, submitted_by=viewer.username)

        return filters


def _role_name(user: User) -> str:
    return getattr(user.role, "value", user.role)


def _plant_name(user: User) -> str:
    return getattr(user.plant, "value", user.plant)
