"""
Directory Application Layer
===========================

Directory interface consumed by assignment, approval, notification and
escalation logic.
"""

from servicedesk.directory.application.services import (
    IDirectory,
    resolve_team_assignee,
    resolve_team_recipients,
    resolve_role_holder,
)

__all__ = [
    "IDirectory",
    "resolve_team_assignee",
    "resolve_team_recipients",
    "resolve_role_holder",
]
