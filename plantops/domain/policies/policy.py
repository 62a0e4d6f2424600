"""Role policy resolution for record mutations.

Core principles:
- One resolver decides what every role may do; no page re-derives it
- Fail safe: an unknown role is read-only and may not review
- Each action has exactly one outcome (ALLOW, REQUIRE_APPROVAL or DENY),
  so "direct" and "needs approval" can never both hold
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from plantops.domain.records.types import MutationAction
from .policy_decision import PolicyDecision, PolicyOutcome
from .role_policy import DEFAULT_ROLE_POLICY, ROLE_ALIASES, RolePolicy


@dataclass(frozen=True)
class CapabilitySet:
    can_create: bool
    can_edit_direct: bool
    can_delete_direct: bool
    requires_approval_for_edit: bool
    requires_approval_for_delete: bool
    is_read_only: bool

    def __post_init__(self) -> None:
        if self.can_edit_direct and self.requires_approval_for_edit:
            raise ValueError("edit cannot be both direct and approval-gated")
        if self.can_delete_direct and self.requires_approval_for_delete:
            raise ValueError("delete cannot be both direct and approval-gated")
        if self.is_read_only and (
            self.can_create
            or self.can_edit_direct
            or self.can_delete_direct
            or self.requires_approval_for_edit
            or self.requires_approval_for_delete
        ):
            raise ValueError("a read-only capability set cannot grant mutations")

    @classmethod
    def read_only(cls) -> "CapabilitySet":
        return cls(
            can_create=False,
            can_edit_direct=False,
            can_delete_direct=False,
            requires_approval_for_edit=False,
            requires_approval_for_delete=False,
            is_read_only=True,
        )

    @classmethod
    def from_role_policy(cls, rule: RolePolicy) -> "CapabilitySet":
        mutates = (
            rule.can_create
            or rule.edit != PolicyOutcome.DENY
            or rule.delete != PolicyOutcome.DENY
        )
        return cls(
            can_create=rule.can_create,
            can_edit_direct=rule.edit == PolicyOutcome.ALLOW,
            can_delete_direct=rule.delete == PolicyOutcome.ALLOW,
            requires_approval_for_edit=rule.edit == PolicyOutcome.REQUIRE_APPROVAL,
            requires_approval_for_delete=rule.delete == PolicyOutcome.REQUIRE_APPROVAL,
            is_read_only=not mutates,
        )

    def evaluate(self, action: MutationAction) -> PolicyDecision:
        """
        Evaluates whether an edit or delete may run for this capability set.

        The evaluation follows a hierarchical check:
        1. Direct denial if the role is read-only.
        2. Direct execution if the role may mutate without review.
        3. Requirement for a second party's approval if the role is gated.
        4. Denial if none of the above applies.

        Args:
            action: The MutationAction being attempted.

        Returns:
            A PolicyDecision with the outcome and a justification.
        """
        if self.is_read_only:
            return PolicyDecision(
                outcome=PolicyOutcome.DENY,
                action=action,
                reason="Role is read-only",
            )

        if action == MutationAction.EDIT:
            direct, gated = self.can_edit_direct, self.requires_approval_for_edit
        else:
            direct, gated = self.can_delete_direct, self.requires_approval_for_delete

        if direct:
            return PolicyDecision(outcome=PolicyOutcome.ALLOW, action=action)

        if gated:
            return PolicyDecision(
                outcome=PolicyOutcome.REQUIRE_APPROVAL,
                action=action,
                reason=f"'{action.value}' requires approval for this role",
            )

        return PolicyDecision(
            outcome=PolicyOutcome.DENY,
            action=action,
            reason=f"'{action.value}' not allowed for this role",
        )


class PolicyResolver:
    """Maps a role to its capabilities. Pure: no I/O, no mutable state."""

    def __init__(
        self,
        table: Mapping[str, RolePolicy] | None = None,
        aliases: Mapping[str, str] | None = None,
    ) -> None:
        self._table = dict(DEFAULT_ROLE_POLICY if table is None else table)
        self._aliases = dict(ROLE_ALIASES if aliases is None else aliases)

    @property
    def roles(self) -> list[str]:
        return sorted(self._table)

    def resolve(self, role: str | Enum | None) -> CapabilitySet:
        rule = self._rule_for(role)
        if rule is None:
            return CapabilitySet.read_only()
        return CapabilitySet.from_role_policy(rule)

    def can_review(self, role: str | Enum | None) -> bool:
        rule = self._rule_for(role)
        return rule is not None and rule.can_review

    def _rule_for(self, role: str | Enum | None) -> RolePolicy | None:
        if role is None:
            return None
        key = role.value if isinstance(role, Enum) else role
        if not isinstance(key, str):
            return None
        key = key.strip().lower()
        key = self._aliases.get(key, key)
        return self._table.get(key)


_default_resolver = PolicyResolver()


def resolve(role: str | Enum | None) -> CapabilitySet:
    """Resolve a role against the default role table."""
    return _default_resolver.resolve(role)


def can_review(role: str | Enum | None) -> bool:
    return _default_resolver.can_review(role)
