from typing import Protocol, Any, Mapping

from plantops.domain.records.types import DomainType
from plantops.domain.users.entities import User
from .entities import GateResult

class MutationGate(Protocol):
    async def request_edit(
        self,
        user: User,
        domain_type: DomainType | str,
        record_id: str,
        plant_scope: str,
        proposed_state: Mapping[str, Any],
        reason: str | None = None,
    ) -> GateResult:
        ...

    async def request_delete(
        self,
        user: User,
        domain_type: DomainType | str,
        record_id: str,
        plant_scope: str,
        reason: str | None = None,
        current_state: Mapping[str, Any] | None = None,
    ) -> GateResult:
        ...
