"""
Directory Infrastructure Layer
==============================

- Models: users, teams, team_members tables
- Repositories: SQLAlchemy directory adapter
"""

from servicedesk.directory.infrastructure.models import UserModel, TeamModel, TeamMemberModel
from servicedesk.directory.infrastructure.repositories import SQLAlchemyDirectory

__all__ = ["UserModel", "TeamModel", "TeamMemberModel", "SQLAlchemyDirectory"]
