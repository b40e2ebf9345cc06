"""
Rulebook Application Services
=============================

Access to the current rule snapshot.
"""

from abc import ABC, abstractmethod

from servicedesk.rulebook.domain import Rulebook


class IRulebookProvider(ABC):
    """Interface for rulebook access."""

    @abstractmethod
    def snapshot(self) -> Rulebook:
        """The rulebook as of now. Callers hold on to it for one operation."""


class StaticRulebookProvider(IRulebookProvider):
    """Serves a fixed rulebook. Used when embedding the engine and in tests."""

    def __init__(self, rulebook: Rulebook | None = None):
        self._rulebook = rulebook or Rulebook()

    def snapshot(self) -> Rulebook:
        return self._rulebook

    def replace(self, rulebook: Rulebook) -> None:
        self._rulebook = rulebook
