"""
Rulebook Domain Layer
=====================

The immutable rule snapshot shared by every context.
"""

from servicedesk.rulebook.domain.value_objects import Rulebook

__all__ = ["Rulebook"]
