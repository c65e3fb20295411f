"""
Pytest configuration and fixtures for modsync tests.
"""

import uuid
from typing import Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from modsync.database import Database
from modsync.directory import MemberSnapshot, RoleSnapshot, UserSnapshot
from modsync.lifecycle import InfractionLifecycleManager
from modsync.notifier import Notifier
from modsync.reconciliation import ReconciliationEngine
from modsync.services import Services


class FakeDirectory:
    """An in-memory guild whose roles and members tests can edit directly."""

    def __init__(self):
        self.roles: dict[int, RoleSnapshot] = {}
        self.members: dict[int, MemberSnapshot] = {}
        self.users: dict[int, UserSnapshot] = {}

        self.apply_sanction = AsyncMock(return_value=True)
        self.revert_sanction = AsyncMock(return_value=True)

    def add_role(self, role_id: int, name: Optional[str] = None, colour: int = 0) -> RoleSnapshot:
        role = RoleSnapshot(id=role_id, colour=colour, name=name or f"role-{role_id}")
        self.roles[role_id] = role
        return role

    def add_member(self, member_id: int, *role_ids: int, username: Optional[str] = None) -> MemberSnapshot:
        member = MemberSnapshot(
            id=member_id,
            avatar_url=f"https://cdn.example/{member_id}.png",
            discriminator="0",
            username=username or f"user-{member_id}",
            role_ids=frozenset(role_ids),
        )
        self.members[member_id] = member
        return member

    async def list_roles(self) -> list[RoleSnapshot]:
        return list(self.roles.values())

    async def list_members_with_roles(self) -> list[MemberSnapshot]:
        return list(self.members.values())

    async def get_member(self, member_id: int) -> Optional[MemberSnapshot]:
        return self.members.get(member_id)

    async def get_user(self, user_id: int) -> Optional[UserSnapshot]:
        return self.members.get(user_id) or self.users.get(user_id)


@pytest_asyncio.fixture
async def database():
    """A database backed by an in-memory MongoDB."""
    client = AsyncMongoMockClient()
    db = Database(client[f"modsync_test_{uuid.uuid4().hex}"])
    await db.init()
    yield db


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def notifier():
    """A notifier whose DMs succeed unless a test says otherwise."""
    mock = AsyncMock(spec=Notifier)
    mock.direct_message.return_value = True
    mock.channel_message.return_value = None
    return mock


@pytest.fixture
def services(database, directory, notifier):
    return Services(database=database, directory=directory, notifier=notifier)


@pytest.fixture
def engine(services):
    return ReconciliationEngine(services)


@pytest_asyncio.fixture
async def lifecycle(services):
    manager = InfractionLifecycleManager(services)
    yield manager
    manager.shutdown()
