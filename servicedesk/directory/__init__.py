"""
Directory Module
================

Bounded context adapter for the user/team directory.

Responsibilities:
- Look up users, teams, team membership and team leaders
- Normalize free-text role names ("manager" -> admin, "technician" -> agent)
- Resolve a team to an assignee (leader, else first member) or to its recipients
"""

__version__ = "1.0.0"
