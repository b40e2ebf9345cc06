"""
Approval Module
===============

Bounded context for the multi-stage approval gate.

Responsibilities:
- Create one request per form stage when a gated ticket is created
- Activate stages strictly in order and resolve their approvers
- Apply approve / reject / need_more_info decisions
- Release or reject the ticket through the ticket state machine
"""

__version__ = "1.0.0"
