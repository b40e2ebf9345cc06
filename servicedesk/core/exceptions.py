"""
Core Exceptions
================

Custom exceptions for the service desk engine.

Only real failures are exceptions. "Nothing to do" outcomes (no matching
assignment rule, no SLA policy for a priority, no approver for a stage) are
returned as values by the services that produce them.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class PermissionDeniedException(ApplicationException):
    """Exception when the acting user may not perform an operation."""


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class InvalidTransitionException(DomainException):
    """Exception raised when a status change is not allowed."""

    def __init__(
        self,
        ticket_id: str,
        from_status: str,
        to_status: str,
        details: Optional[dict] = None
    ):
        self.ticket_id = ticket_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Ticket {ticket_id} cannot move from '{from_status}' to '{to_status}'",
            details or {"ticket_id": ticket_id, "from": from_status, "to": to_status}
        )


class ApprovalStateException(DomainException):
    """Exception raised when an approval request is not in a state that allows the operation."""

    def __init__(
        self,
        request_id: str,
        status: str,
        message: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.request_id = request_id
        self.status = status
        super().__init__(
            message or f"Approval request {request_id} is not pending (status: {status})",
            details or {"request_id": request_id, "status": status}
        )
