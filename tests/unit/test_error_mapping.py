"""Unit tests for the exception-to-HTTP-status mapping."""

import pytest

from servicedesk.core import exceptions
from servicedesk.core.exceptions import (
    ApplicationException,
    ApprovalStateException,
    ConfigurationException,
    DomainException,
    InvalidTransitionException,
    PermissionDeniedException,
    RepositoryException,
    ResourceNotFoundException,
    ValidationException,
)
from servicedesk.shared.api.middleware import status_code_for

CASES = [
    (ResourceNotFoundException("Ticket", "t-1"), 404),
    (PermissionDeniedException("Admins only"), 403),
    (InvalidTransitionException("t-1", "closed", "in_progress"), 409),
    (ApprovalStateException("a-1", "approved"), 409),
    (ValidationException("Comments are required"), 422),
    (ConfigurationException("Bad rulebook"), 500),
    (RepositoryException("Ticket t-1 not found"), 400),
    (DomainException("Not allowed"), 400),
    (ApplicationException("Something else"), 400),
]


def _all_subclasses(cls):
    found = set()
    for sub in cls.__subclasses__():
        found.add(sub)
        found |= _all_subclasses(sub)
    return found


class TestStatusCodeFor:

    @pytest.mark.parametrize("exc,status_code", CASES, ids=[type(exc).__name__ for exc, _ in CASES])
    def test_status_code(self, exc, status_code):
        assert status_code_for(exc) == status_code

    def test_every_exception_class_is_mapped(self):
        declared = {
            cls for cls in _all_subclasses(ApplicationException)
            if cls.__module__ == exceptions.__name__
        } | {ApplicationException}

        assert declared == {type(exc) for exc, _ in CASES}
