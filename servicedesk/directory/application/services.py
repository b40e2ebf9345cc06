"""
Directory Application Services
==============================

The narrow interface through which every other context reads users and
teams, plus the shared team-resolution helpers.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from servicedesk.config import UserRole
from servicedesk.core.exceptions import ResourceNotFoundException
from servicedesk.directory.domain import Team, User, normalize_role


# ========== Repository Interfaces (Dependency Inversion) ==========

class IDirectory(ABC):
    """Read-only lookups of users, teams, membership and leaders."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        """Get a user by ID."""

    @abstractmethod
    async def find_first_user_with_role(self, role: UserRole) -> Optional[User]:
        """Get the first user (directory order) holding a role."""

    @abstractmethod
    async def get_team(self, team_id: str) -> Optional[Team]:
        """Get a team with its leader and ordered members."""

    async def require_user(self, user_id: str) -> User:
        user = await self.get_user(user_id)
        if user is None:
            raise ResourceNotFoundException("User", user_id)
        return user


# ========== Resolution helpers ==========

async def resolve_team_assignee(directory: IDirectory, team_id: str) -> Optional[str]:
    """Team leader, else first member. None when the team is missing or empty."""
    team = await directory.get_team(team_id)
    if team is None:
        return None
    return team.default_assignee()


async def resolve_team_recipients(directory: IDirectory, team_id: str) -> List[str]:
    """Leader plus members of a team. Empty when the team is missing."""
    team = await directory.get_team(team_id)
    if team is None:
        return []
    return team.recipients()


async def resolve_role_holder(directory: IDirectory, role: str) -> Optional[str]:
    """First user holding the normalized role, or None."""
    normalized = normalize_role(role)
    if normalized is None:
        return None
    user = await directory.find_first_user_with_role(normalized)
    return user.id if user else None
