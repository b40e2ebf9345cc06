"""
Rulebook Infrastructure Layer
=============================

YAML loading and watchdog hot reload.
"""

from servicedesk.rulebook.infrastructure.external import (
    RulebookFileHandler,
    RulebookManager,
    parse_rulebook,
)

__all__ = ["RulebookFileHandler", "RulebookManager", "parse_rulebook"]
