"""
Rulebook Application Layer
==========================
"""

from servicedesk.rulebook.application.dto import RulebookResponse, RulebookStatusResponse
from servicedesk.rulebook.application.services import IRulebookProvider, StaticRulebookProvider

__all__ = [
    "IRulebookProvider",
    "StaticRulebookProvider",
    "RulebookResponse",
    "RulebookStatusResponse",
]
