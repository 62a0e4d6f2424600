from dataclasses import dataclass

from plantops.domain.users.entities import Role
from .policy_decision import PolicyOutcome


@dataclass(frozen=True)
class RolePolicy:
    """Per-role rule: one outcome per mutation action, plus create/review rights."""

    can_create: bool
    edit: PolicyOutcome
    delete: PolicyOutcome
    can_review: bool = False


_DIRECT = RolePolicy(
    can_create=True,
    edit=PolicyOutcome.ALLOW,
    delete=PolicyOutcome.ALLOW,
    can_review=True,
)

_READ_ONLY = RolePolicy(
    can_create=False,
    edit=PolicyOutcome.DENY,
    delete=PolicyOutcome.DENY,
)


DEFAULT_ROLE_POLICY: dict[str, RolePolicy] = {
    Role.ADMIN.value: _DIRECT,
    Role.AVP.value: _DIRECT,
    Role.SUPERVISOR.value: _DIRECT,
    # Managers only read data, but sign off on requests.
    Role.MANAGER.value: RolePolicy(
        can_create=False,
        edit=PolicyOutcome.DENY,
        delete=PolicyOutcome.DENY,
        can_review=True,
    ),
    Role.OPERATOR.value: RolePolicy(
        can_create=True,
        edit=PolicyOutcome.REQUIRE_APPROVAL,
        delete=PolicyOutcome.REQUIRE_APPROVAL,
    ),
    Role.EXTERNAL.value: _READ_ONLY,
    Role.VIEWER.value: _READ_ONLY,
}

# Role names still stored in older user sheets.
ROLE_ALIASES: dict[str, str] = {
    "user": Role.OPERATOR.value,
    "eksternal": Role.EXTERNAL.value,
}
