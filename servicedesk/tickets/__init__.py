"""
Tickets Module
==============

Bounded Context for the ticket lifecycle.

Responsibilities:
- Ticket entity and its invariants
- The ticket state machine: the only writer of status, priority and assignment
- Append-only history, comments and the notification outbox
- Webhook delivery of queued notifications
- HTTP API for tickets
"""

__version__ = "1.0.0"
