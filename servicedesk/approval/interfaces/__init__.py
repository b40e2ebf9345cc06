"""
Approval Interfaces Layer
=========================
"""

from servicedesk.approval.interfaces.controllers import router as approvals_router

__all__ = ["approvals_router"]
