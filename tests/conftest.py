"""
Pytest fixtures shared by the check-in tests.

Provides:
- An in-memory record store with the production keys and cascades
- A store whose individual operations can be made to fail
- A team repository with a deterministic clock
- An account service over a fake auth backend and an in-memory session
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Set, Tuple

import pytest

from hackzilla.models.team import TeamCreate, TeamMember
from hackzilla.repository.id_allocator import TeamIdAllocator
from hackzilla.repository.team_repository import TeamRepository
from hackzilla.services.account_service import AccountService
from hackzilla.storage.memory_store import InMemoryRecordStore
from hackzilla.storage.record_store import StoreResult
from hackzilla.storage.session_store import MemorySessionStore


class FlakyStore(InMemoryRecordStore):
    """In-memory store where chosen (operation, collection) pairs fail."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.failures: Set[Tuple[str, str]] = set()

    def fail(self, operation: str, collection: str) -> None:
        self.failures.add((operation, collection))

    def heal(self) -> None:
        self.failures.clear()

    def _injected(self, operation: str, collection: str) -> Optional[StoreResult]:
        if (operation, collection) in self.failures:
            self.calls.append((operation, collection))
            return StoreResult.failure(f"injected {operation} failure on {collection}")
        return None

    async def insert(self, collection, records):
        return self._injected("insert", collection) or await super().insert(collection, records)

    async def find_one(self, collection, filters):
        return self._injected("find_one", collection) or await super().find_one(
            collection, filters
        )

    async def find_many(
        self, collection, filters=None, order_by=None, descending=False, columns="*", limit=None, start=0
    ):
        return self._injected("find_many", collection) or await super().find_many(
            collection, filters, order_by, descending, columns, limit, start
        )

    async def update(self, collection, filters, values):
        return self._injected("update", collection) or await super().update(
            collection, filters, values
        )

    async def delete(self, collection, filters):
        return self._injected("delete", collection) or await super().delete(collection, filters)


class FakeAuth:
    """Stands in for the backend auth module: email -> (password, user id)."""

    def __init__(self):
        self.accounts: Dict[str, tuple] = {}
        self.signed_out = False

    async def sign_in(self, email: str, password: str) -> Optional[str]:
        account = self.accounts.get(email)
        if account and account[0] == password:
            return account[1]
        return None

    async def sign_up(self, email: str, password: str) -> Optional[str]:
        if email in self.accounts:
            return None
        user_id = f"auth-{len(self.accounts) + 1}"
        self.accounts[email] = (password, user_id)
        return user_id

    async def sign_out(self) -> None:
        self.signed_out = True


class TickingClock:
    """Returns a later time on every call so creation order is unambiguous."""

    def __init__(self):
        self.now = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore.with_default_schema()


@pytest.fixture
def repo(store) -> TeamRepository:
    return TeamRepository(store, allocator=TeamIdAllocator(store, offset=2500), clock=TickingClock())


@pytest.fixture
def alpha() -> TeamCreate:
    return TeamCreate(
        name="Alpha",
        leader="Amy",
        members=[TeamMember(name="Bob", college_name="X")],
        status="inactive",
    )


@pytest.fixture
def auth() -> FakeAuth:
    return FakeAuth()


@pytest.fixture
def session() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def accounts(store, auth, session) -> AccountService:
    return AccountService(store, auth, session)
