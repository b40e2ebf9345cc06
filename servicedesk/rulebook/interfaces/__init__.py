"""
Rulebook Interfaces Layer
=========================
"""

from servicedesk.rulebook.interfaces.controllers import router as rulebook_router

__all__ = ["rulebook_router"]
