"""This module decides what each role may do to plant records."""
from .policy import CapabilitySet, PolicyResolver, resolve, can_review
from .policy_decision import PolicyOutcome, PolicyDecision
from .role_policy import RolePolicy, DEFAULT_ROLE_POLICY, ROLE_ALIASES
