# --------------------------------
# DI container
# --------------------------------
from functools import lru_cache

from sqlalchemy.orm import Session

from plantops.config import settings
from plantops.domain.approval import (
    ApprovalRequestRepository,
    ApprovalReviewService,
    DefaultMutationGate,
    MutationGate,
)
from plantops.domain.policies import PolicyResolver
from plantops.domain.records import RecordMutatorRegistry


class Container:
    """Long-lived collaborators. Request-scoped ones are built per DB session."""

    def __init__(
        self,
        mutators: RecordMutatorRegistry | None = None,
        resolver: PolicyResolver | None = None,
    ):
        if mutators is None:
            mutators = RecordMutatorRegistry.http(
                base_url=settings.records_base_url,
                timeout=settings.domain_timeout_seconds,
            )
        self._mutators = mutators
        self._resolver = resolver or PolicyResolver()

    def mutation_gate(self, db: Session) -> MutationGate:
        return DefaultMutationGate(
            approval_repository=ApprovalRequestRepository(db),
            mutators=self._mutators,
            resolver=self._resolver,
        )

    def review_service(self, db: Session) -> ApprovalReviewService:
        return ApprovalReviewService(
            approval_repository=ApprovalRequestRepository(db),
            mutators=self._mutators,
            resolver=self._resolver,
        )


@lru_cache
def get_container():
    return Container()
