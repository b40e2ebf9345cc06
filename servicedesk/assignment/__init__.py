"""
Assignment Module
=================

Bounded context for rule-based auto-assignment.

Responsibilities:
- Evaluate active assignment rules in priority order (stable on ties)
- Resolve agent, team (leader, else first member) and round-robin targets
- Round robin balances on live open-ticket counts, never a stored pointer
"""

__version__ = "1.0.0"
