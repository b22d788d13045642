"""
Workspace role hierarchy.

One closed enumeration with a total order, shared by the route dependencies and
the permission list handed to clients. The legacy role names used by the old
organization screens map onto the same ladder.
"""

from enum import Enum
from typing import FrozenSet


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def at_least(self, minimum: "Role") -> bool:
        return self.rank >= minimum.rank

    @property
    def is_manager(self) -> bool:
        return self.at_least(Role.ADMIN)

    @classmethod
    def parse(cls, value: str) -> "Role":
        """Accept a current or legacy role name. Raises ValueError for anything else."""
        normalized = (value or "").strip().lower()
        if normalized in LEGACY_ROLES:
            return LEGACY_ROLES[normalized]
        return cls(normalized)


_RANKS = {
    Role.VIEWER: 0,
    Role.MEMBER: 1,
    Role.ADMIN: 2,
    Role.OWNER: 3,
}

LEGACY_ROLES = {
    "manager": Role.ADMIN,
    "sales_rep": Role.MEMBER,
    "setter": Role.MEMBER,
    "appointment_setter": Role.MEMBER,
}


def roles_at_least(minimum: Role) -> FrozenSet[Role]:
    return frozenset(role for role in Role if role.at_least(minimum))
