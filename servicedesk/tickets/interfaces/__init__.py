"""
Ticket Interfaces Layer
=======================

FastAPI route handlers for tickets and the notification inbox.
"""

from servicedesk.tickets.interfaces.controllers import notifications_router, router as tickets_router

__all__ = ["tickets_router", "notifications_router"]
