"""
Pytest configuration and fixtures for testing.

Provides:
- A fixed clock pinned to T0
- An in-memory directory, store and unit of work
- A rulebook provider and a wired ServiceDeskEngine

Usage:
    pytest tests/ -v
"""

import pytest
import pytest_asyncio

from servicedesk.config import UserRole
from servicedesk.directory.domain import Team, User
from servicedesk.engine import ServiceDeskEngine
from servicedesk.rulebook.application import StaticRulebookProvider
from servicedesk.tickets.application import TicketStateMachine
from tests.factories import T0, make_rulebook, make_ticket
from tests.fakes import FakeDirectory, FixedClock, InMemoryStore


# ============================================================================
# Clock
# ============================================================================

@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


# ============================================================================
# Directory Fixtures
# ============================================================================

@pytest.fixture
def users() -> list[User]:
    """Directory order matters: the first admin is the 'manager' role holder."""
    return [
        User("u-alice", "Alice Requester", "alice@example.com", UserRole.USER),
        User("u-bob", "Bob Requester", "bob@example.com", UserRole.USER),
        User("u-admin", "Ada Admin", "ada@example.com", UserRole.ADMIN),
        User("u-net-lead", "Nina Network", "nina@example.com", UserRole.AGENT),
        User("u-x", "Xavier", "x@example.com", UserRole.AGENT),
        User("u-y", "Yara", "y@example.com", UserRole.AGENT),
        User("u-z", "Zane", "z@example.com", UserRole.AGENT),
        User("u-billing-desk", "Billing Desk", "billing@example.com", UserRole.AGENT),
        User("u-desk-manager", "Desk Manager", "desk@example.com", UserRole.AGENT),
        User("u-sec-lead", "Sam Security", "sam@example.com", UserRole.AGENT),
    ]


@pytest.fixture
def teams() -> list[Team]:
    return [
        Team("t-network", "Network", leader_id="u-net-lead", member_ids=["u-x", "u-y", "u-z"]),
        Team("t-security", "Security", leader_id="u-sec-lead", member_ids=["u-sec-lead"]),
        Team("t-service-desk", "Service Desk", member_ids=["u-x", "u-y"]),
        Team("t-empty", "Empty"),
    ]


@pytest.fixture
def directory(users, teams) -> FakeDirectory:
    return FakeDirectory(users, teams)


# ============================================================================
# Storage Fixtures
# ============================================================================

@pytest.fixture
def store(directory) -> InMemoryStore:
    return InMemoryStore(directory)


@pytest_asyncio.fixture
async def uow(store):
    """An open unit of work; committed at teardown unless the test raised."""
    async with store.uow() as unit:
        yield unit


@pytest_asyncio.fixture
async def stored_ticket(store):
    """A committed new, unassigned, medium priority ticket."""
    ticket = make_ticket()
    async with store.uow() as unit:
        await unit.tickets.add(ticket)
    return ticket


# ============================================================================
# Rulebook and Engine Fixtures
# ============================================================================

@pytest.fixture
def rulebook():
    return make_rulebook()


@pytest.fixture
def provider(rulebook) -> StaticRulebookProvider:
    return StaticRulebookProvider(rulebook)


@pytest.fixture
def machine_factory(rulebook, clock):
    """Builds a TicketStateMachine bound to a given unit of work."""
    def build(unit, enforce_transitions: bool = True) -> TicketStateMachine:
        return TicketStateMachine(unit, rulebook, clock, enforce_transitions)
    return build


@pytest.fixture
def engine(store, provider, clock) -> ServiceDeskEngine:
    return ServiceDeskEngine(store.uow, provider, clock=clock)
