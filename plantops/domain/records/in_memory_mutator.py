import copy
from typing import Any

from .base import RecordMutator
from .types import DomainType


class InMemoryRecordMutator(RecordMutator):
    """Keeps records in a dict keyed by (plant, record id). Records every call."""

    def __init__(
        self,
        domain_type: DomainType,
        records: dict[tuple[str, str], dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(domain_type)
        self._records = records if records is not None else {}
        self.calls: list[tuple[str, str, dict[str, Any] | None]] = []
        self.fail_with: Exception | None = None

    def seed(self, plant_scope: str, record_id: str, state: dict[str, Any]) -> None:
        self._records[(plant_scope, record_id)] = copy.deepcopy(state)

    def peek(self, plant_scope: str, record_id: str) -> dict[str, Any] | None:
        state = self._records.get((plant_scope, record_id))
        return copy.deepcopy(state) if state is not None else None

    async def fetch_record(self, record_id: str, *, plant_scope: str) -> dict[str, Any] | None:
        return self.peek(plant_scope, record_id)

    async def apply_edit(
        self,
        record_id: str,
        proposed_state: dict[str, Any],
        *,
        plant_scope: str,
    ) -> dict[str, Any]:
        self.calls.append(("edit", record_id, copy.deepcopy(proposed_state)))
        self._raise_if_failing()
        self._records[(plant_scope, record_id)] = {**copy.deepcopy(proposed_state), "id": record_id}
        return {"ok": True, "record_id": record_id}

    async def apply_delete(self, record_id: str, *, plant_scope: str) -> dict[str, Any]:
        self.calls.append(("delete", record_id, None))
        self._raise_if_failing()
        # Deleting an absent record is a no-op, so retries are safe.
        self._records.pop((plant_scope, record_id), None)
        return {"ok": True, "record_id": record_id}

    def _raise_if_failing(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with
