"""
A canonical record mutator registry
"""

from __future__ import annotations

from typing import Iterable

import httpx

from plantops.core.errors import ValidationError
from .base import RecordMutator
from .http_mutator import HttpRecordMutator
from .in_memory_mutator import InMemoryRecordMutator
from .types import DomainType, parse_domain_type


class RecordMutatorRegistry:
    """One mutator per data domain; the gate looks them up by domain type."""

    def __init__(self, mutators: Iterable[RecordMutator] = ()) -> None:
        self._mutators: dict[DomainType, RecordMutator] = {}
        for mutator in mutators:
            self.register(mutator)

    def register(self, mutator: RecordMutator) -> None:
        self._mutators[mutator.domain_type] = mutator

    def get(self, domain_type: DomainType | str) -> RecordMutator:
        try:
            key = parse_domain_type(domain_type)
        except ValueError as exc:
            raise ValidationError(str(exc), domain_type=str(domain_type)) from exc
        mutator = self._mutators.get(key)
        if mutator is None:
            raise ValidationError(
                f"No record mutator registered for '{key.value}'",
                domain_type=key.value,
            )
        return mutator

    @classmethod
    def http(
        cls,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> "RecordMutatorRegistry":
        """Registry covering every data domain through the spreadsheet web app."""
        return cls(
            HttpRecordMutator(d, base_url=base_url, client=client, timeout=timeout)
            for d in DomainType
        )

    @classmethod
    def in_memory(cls) -> "RecordMutatorRegistry":
        return cls(InMemoryRecordMutator(d) for d in DomainType)
