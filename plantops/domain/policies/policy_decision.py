from dataclasses import dataclass
from enum import Enum
from typing import Optional

from plantops.domain.records.types import MutationAction


class PolicyOutcome(str, Enum):
    ALLOW = "ALLOW"
    REQUIRE_APPROVAL = "REQUIRE_APPROVAL"
    DENY = "DENY"


@dataclass(frozen=True)
class PolicyDecision:
    outcome: PolicyOutcome
    action: Optional[MutationAction] = None
    reason: Optional[str] = None
