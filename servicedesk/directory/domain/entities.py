"""
Directory Domain Entities
=========================

Users and teams as seen by the engine. The directory itself is owned by
another system; these are read-only projections.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from servicedesk.config import UserRole

# Free-text role names used on approval forms, mapped onto directory roles
ROLE_ALIASES = {
    "manager": UserRole.ADMIN,
    "supervisor": UserRole.ADMIN,
    "administrator": UserRole.ADMIN,
    "technician": UserRole.AGENT,
    "support": UserRole.AGENT,
    "staff": UserRole.AGENT,
    "requester": UserRole.USER,
    "employee": UserRole.USER,
}


def normalize_role(role: str) -> Optional[UserRole]:
    """
    Map a role name to a directory role.

    Returns None for names that are neither a directory role nor a known alias.
    """
    key = role.strip().lower()
    try:
        return UserRole(key)
    except ValueError:
        return ROLE_ALIASES.get(key)


@dataclass
class User:
    id: str
    name: str
    email: str
    role: UserRole = UserRole.USER

    def __post_init__(self):
        self.role = UserRole(self.role)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass
class Team:
    """
    A team with an optional leader and an ordered member list.

    Member order is the directory's insertion order; it is the tie-breaker
    wherever "first member" is used.
    """

    id: str
    name: str
    leader_id: Optional[str] = None
    member_ids: List[str] = field(default_factory=list)

    def default_assignee(self) -> Optional[str]:
        """The leader if set, else the first member, else None."""
        if self.leader_id:
            return self.leader_id
        if self.member_ids:
            return self.member_ids[0]
        return None

    def recipients(self) -> List[str]:
        """Leader followed by members, without duplicates."""
        seen = []
        for user_id in [self.leader_id, *self.member_ids]:
            if user_id and user_id not in seen:
                seen.append(user_id)
        return seen
