"""Record mutation abstraction.

The gate never interprets record fields. Each data domain (fuel log, gate
pass, vibration reading, ...) plugs in a mutator that can read one record and
apply an edit or delete to it. Mutators may be:
- the spreadsheet web app the dashboard writes to
- an in-memory store (tests, local runs)
- any other service that owns the records
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable

from plantops.core.errors import DomainError, GateError
from .types import DomainType


class RecordMutator(ABC):
    """Applies edits/deletes to the records of one data domain.

    Both mutations must be safe to retry after a DomainError.
    """

    def __init__(self, domain_type: DomainType) -> None:
        self.domain_type = domain_type

    @abstractmethod
    async def fetch_record(self, record_id: str, *, plant_scope: str) -> dict[str, Any] | None:
        """Return the record's current state, or None when it does not exist."""
        raise NotImplementedError

    @abstractmethod
    async def apply_edit(
        self,
        record_id: str,
        proposed_state: dict[str, Any],
        *,
        plant_scope: str,
    ) -> dict[str, Any]:
        """Replace the record with the proposed state."""
        raise NotImplementedError

    @abstractmethod
    async def apply_delete(self, record_id: str, *, plant_scope: str) -> dict[str, Any]:
        """Remove the record."""
        raise NotImplementedError


async def invoke_mutation(
    call: Awaitable[Any],
    *,
    timeout: float,
    domain_type: str,
    request_id: str | None = None,
) -> Any:
    """Await a mutator call with a bounded timeout.

    Anything the mutator raises (other than our own typed errors) is surfaced
    as a DomainError carrying the request/domain context.
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except GateError:
        raise
    except asyncio.TimeoutError as exc:
        raise DomainError(
            f"Record backend for '{domain_type}' timed out after {timeout}s",
            request_id=request_id,
            domain_type=domain_type,
        ) from exc
    except Exception as exc:  # noqa: BLE001 - boundary wrapper for record backends
        raise DomainError(
            f"Record mutation failed for '{domain_type}': {exc}",
            request_id=request_id,
            domain_type=domain_type,
        ) from exc
