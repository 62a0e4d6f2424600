import copy
from typing import Any, Mapping

from plantops.config import settings
from plantops.core.errors import Forbidden, ValidationError
from plantops.domain.policies import PolicyOutcome, PolicyResolver
from plantops.domain.records import (
    DomainType,
    MutationAction,
    RecordMutatorRegistry,
    invoke_mutation,
    parse_domain_type,
)
from plantops.domain.users.entities import Plant, User
from plantops.observability.tracing import log_event, new_trace_id

from .entities import ApprovalRequestEntity, GateResult
from .repository import ApprovalRequestRepositoryProtocol

_RECORD_PLANTS = {Plant.NPK1.value, Plant.NPK2.value}


class DefaultMutationGate:
    """
    Single entry point for every edit/delete on a plant record.

    A direct call touches only the record; a gated call touches only the
    approval request store. Never both in the same invocation.
    """

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

    async def request_edit(
        self,
        user: User,
        domain_type: DomainType | str,
        record_id: str,
        plant_scope: str,
        proposed_state: Mapping[str, Any],
        reason: str | None = None,
    ) -> GateResult:
        trace_id = new_trace_id()
        outcome = self._authorize(trace_id, user, MutationAction.EDIT, domain_type, plant_scope)
        domain = self._domain(domain_type)
        plant = self._plant(plant_scope, domain)
        self._check_plant_authority(trace_id, user, MutationAction.EDIT, domain, plant)

        if not isinstance(proposed_state, Mapping):
            raise ValidationError(
                "Proposed record state must be an object",
                domain_type=domain.value,
            )

        if outcome == PolicyOutcome.ALLOW:
            mutator = self._mutators.get(domain)
            result = await invoke_mutation(
                mutator.apply_edit(record_id, dict(proposed_state), plant_scope=plant),
                timeout=self._domain_timeout,
                domain_type=domain.value,
            )
            log_event(
                'gate.edit.applied',
                trace_id=trace_id,
                domain_type=domain.value,
                record_id=record_id,
                plant_scope=plant,
                user=user.username,
            )
            return GateResult(queued=False, result=result)

        return self._queue(
            trace_id,
            user=user,
            action=MutationAction.EDIT,
            domain=domain,
            record_id=record_id,
            plant=plant,
            snapshot=proposed_state,
            reason=reason,
        )

    async def request_delete(
        self,
        user: User,
        domain_type: DomainType | str,
        record_id: str,
        plant_scope: str,
        reason: str | None = None,
        current_state: Mapping[str, Any] | None = None,
    ) -> GateResult:
        trace_id = new_trace_id()
        outcome = self._authorize(trace_id, user, MutationAction.DELETE, domain_type, plant_scope)
        domain = self._domain(domain_type)
        plant = self._plant(plant_scope, domain)
        self._check_plant_authority(trace_id, user, MutationAction.DELETE, domain, plant)

        if outcome == PolicyOutcome.ALLOW:
            mutator = self._mutators.get(domain)
            result = await invoke_mutation(
                mutator.apply_delete(record_id, plant_scope=plant),
                timeout=self._domain_timeout,
                domain_type=domain.value,
            )
            log_event(
                'gate.delete.applied',
                trace_id=trace_id,
                domain_type=domain.value,
                record_id=record_id,
                plant_scope=plant,
                user=user.username,
            )
            return GateResult(queued=False, result=result)

        # Reason is checked before the record is read, so an invalid request
        # costs no backend round trip.
        _require_reason(reason, domain)

        if current_state is None:
            mutator = self._mutators.get(domain)
            current_state = await invoke_mutation(
                mutator.fetch_record(record_id, plant_scope=plant),
                timeout=self._domain_timeout,
                domain_type=domain.value,
            )
            if current_state is None:
                raise ValidationError(
                    f"Record '{record_id}' not found",
                    domain_type=domain.value,
                )
        elif not isinstance(current_state, Mapping):
            raise ValidationError(
                "Current record state must be an object",
                domain_type=domain.value,
            )

        return self._queue(
            trace_id,
            user=user,
            action=MutationAction.DELETE,
            domain=domain,
            record_id=record_id,
            plant=plant,
            snapshot=current_state,
            reason=reason,
        )

    def _authorize(
        self,
        trace_id: str,
        user: User,
        action: MutationAction,
        domain_type: DomainType | str,
        plant_scope: str,
    ) -> PolicyOutcome:
        decision = self._resolver.resolve(user.role).evaluate(action)
        if decision.outcome == PolicyOutcome.DENY:
            log_event(
                'gate.denied',
                trace_id=trace_id,
                level='warning',
                action=action.value,
                domain_type=str(getattr(domain_type, 'value', domain_type)),
                plant_scope=plant_scope,
                user=user.username,
                reason=decision.reason,
            )
            raise Forbidden(
                decision.reason or "Action not allowed",
                domain_type=str(getattr(domain_type, 'value', domain_type)),
            )
        return decision.outcome

    @staticmethod
    def _check_plant_authority(
        trace_id: str,
        user: User,
        action: MutationAction,
        domain: DomainType,
        plant: str,
    ) -> None:
        if user.has_authority_over(plant):
            return
        log_event(
            'gate.denied',
            trace_id=trace_id,
            level='warning',
            action=action.value,
            domain_type=domain.value,
            plant_scope=plant,
            user=user.username,
            reason="plant outside user's scope",
        )
        raise Forbidden(
            f"User '{user.username}' has no authority over plant {plant}",
            domain_type=domain.value,
        )

    @staticmethod
    def _domain(domain_type: DomainType | str) -> DomainType:
        try:
            return parse_domain_type(domain_type)
        except ValueError as exc:
            raise ValidationError(str(exc), domain_type=str(domain_type)) from exc

    @staticmethod
    def _plant(plant_scope: Plant | str, domain: DomainType) -> str:
        value = plant_scope.value if isinstance(plant_scope, Plant) else str(plant_scope or "")
        value = value.strip().upper()
        if value not in _RECORD_PLANTS:
            raise ValidationError(
                f"Record plant must be one of {sorted(_RECORD_PLANTS)}, got {plant_scope!r}",
                domain_type=domain.value,
            )
        return value

    def _queue(
        self,
        trace_id: str,
        *,
        user: User,
        action: MutationAction,
        domain: DomainType,
        record_id: str,
        plant: str,
        snapshot: Mapping[str, Any],
        reason: str | None,
    ) -> GateResult:
        _require_reason(reason, domain)

        created = self._repo.create(
            ApprovalRequestEntity(
                domain_type=domain.value,
                action=action.value,
                target_record_id=str(record_id),
                plant_scope=plant,
                snapshot=copy.deepcopy(dict(snapshot)),
                reason=reason,
                submitted_by=user.username,
            )
        )

        log_event(
            'gate.awaiting_approval',
            trace_id=trace_id,
            request_id=created.id,
            action=action.value,
            domain_type=domain.value,
            record_id=record_id,
            plant_scope=plant,
            user=user.username,
        )
        return GateResult(queued=True, request_id=created.id)


def _require_reason(reason: str | None, domain: DomainType) -> None:
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError(
            "A reason is required when the change needs approval",
            domain_type=domain.value,
        )
