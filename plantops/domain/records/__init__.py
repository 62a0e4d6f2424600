"""This module adapts the plant's data domains to the mutation gate."""
from .types import DomainType, MutationAction, parse_domain_type
from .base import RecordMutator, invoke_mutation
from .http_mutator import HttpRecordMutator, sheet_for
from .in_memory_mutator import InMemoryRecordMutator
from .registry import RecordMutatorRegistry
