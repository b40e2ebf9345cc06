"""
Model Registry
==============

Imports every ORM model so ``Base.metadata`` knows all tables.
"""

from servicedesk.approval.infrastructure.models import ApprovalRequestModel
from servicedesk.directory.infrastructure.models import TeamMemberModel, TeamModel, UserModel
from servicedesk.sla.infrastructure.models import EscalationFiringModel
from servicedesk.tickets.infrastructure.models import (
    NotificationModel,
    TicketCommentModel,
    TicketHistoryModel,
    TicketModel,
)

__all__ = [
    "ApprovalRequestModel",
    "EscalationFiringModel",
    "NotificationModel",
    "TeamMemberModel",
    "TeamModel",
    "TicketCommentModel",
    "TicketHistoryModel",
    "TicketModel",
    "UserModel",
]
