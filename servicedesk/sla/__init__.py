"""
SLA Module
==========

Bounded Context for service level agreements and escalation.

Responsibilities:
- Compute resolution deadlines from the enabled policy of a priority
- Evaluate escalation rules against every open ticket on a fixed interval
- Apply escalation actions through the ticket state machine
- Report each scan pass (fired rules, isolated per-ticket failures)
- Schedule the scan and notification delivery jobs with APScheduler
"""

__version__ = "1.0.0"
