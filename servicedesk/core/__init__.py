"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from servicedesk.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    PermissionDeniedException,
    ConfigurationException,
    InvalidTransitionException,
    ApprovalStateException,
)
from servicedesk.core.unit_of_work import IUnitOfWork, UnitOfWorkFactory

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "PermissionDeniedException",
    "ConfigurationException",
    "InvalidTransitionException",
    "ApprovalStateException",
    "IUnitOfWork",
    "UnitOfWorkFactory",
]
