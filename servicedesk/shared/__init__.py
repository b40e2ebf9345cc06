"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts (directory, rulebook,
sla, assignment, approval, tickets).

Architecture Pattern: Modular Monolith
- Each module is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add ticket, rule or approval logic to the shared kernel.
"""

__version__ = "1.0.0"
