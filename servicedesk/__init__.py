"""
Service Desk Engine
===================

Ticket lifecycle, SLA, routing and escalation engine for a service desk.
"""

__version__ = "1.0.0"
