"""
Directory Infrastructure Repositories
=====================================

SQLAlchemy implementation of the read-only directory interface.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.config import UserRole
from servicedesk.directory.application import IDirectory
from servicedesk.directory.domain import Team, User
from servicedesk.directory.infrastructure.models import TeamMemberModel, TeamModel, UserModel


def _to_user(model: UserModel) -> User:
    return User(id=model.id, name=model.name, email=model.email, role=UserRole(model.role))


class SQLAlchemyDirectory(IDirectory):
    """Reads users, teams and membership from the shared database."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_user(self, user_id: str) -> Optional[User]:
        model = await self._session.get(UserModel, user_id)
        return _to_user(model) if model else None

    async def find_first_user_with_role(self, role: UserRole) -> Optional[User]:
        stmt = (
            select(UserModel)
            .where(UserModel.role == role.value)
            .order_by(UserModel.created_at.asc(), UserModel.id.asc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_user(model) if model else None

    async def get_team(self, team_id: str) -> Optional[Team]:
        team = await self._session.get(TeamModel, team_id)
        if team is None:
            return None

        stmt = (
            select(TeamMemberModel.user_id)
            .where(TeamMemberModel.team_id == team_id)
            .order_by(TeamMemberModel.position.asc())
        )
        result = await self._session.execute(stmt)

        return Team(
            id=team.id,
            name=team.name,
            leader_id=team.leader_id,
            member_ids=list(result.scalars().all()),
        )
