"""
Directory Domain Layer
======================

Read-only user and team projections plus role-name normalization.
"""

from servicedesk.directory.domain.entities import User, Team, normalize_role, ROLE_ALIASES

__all__ = ["User", "Team", "normalize_role", "ROLE_ALIASES"]
