# hackzilla/services/account_service.py
from typing import List, Optional, Protocol, Union

from loguru import logger
from pydantic import ValidationError

from hackzilla.config.settings import settings
from hackzilla.models.enums import UserRole
from hackzilla.models.user import User
from hackzilla.storage.record_store import RecordStore
from hackzilla.storage.session_store import SessionStore

CURRENT_USER_KEY = "currentUser"


class AuthBackend(Protocol):
    async def sign_in(self, email: str, password: str) -> Optional[str]: ...

    async def sign_up(self, email: str, password: str) -> Optional[str]: ...

    async def sign_out(self) -> None: ...


class AccountService:
    """Admin and volunteer accounts.

    Credentials are checked by the backend auth module; the role lives in the
    users collection. The signed-in user is kept in the session store so it
    survives restarts.
    """

    def __init__(self, store: RecordStore, auth: AuthBackend, session: SessionStore):
        self.store = store
        self.auth = auth
        self.session = session
        self.users_table = settings.users_table
        self._users_cache: Optional[List[User]] = None

    @staticmethod
    def email_for(username: str) -> str:
        return f"{username.strip().lower()}@{settings.auth_email_domain}"

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        """Signs in and caches the user, or returns None when sign-in fails."""
        if not username or not password:
            return None
        auth_id = await self.auth.sign_in(self.email_for(username), password)
        if not auth_id:
            logger.warning(f"Sign-in rejected for {username}.")
            return None

        result = await self.store.find_one(self.users_table, {"id": auth_id})
        if not result.ok or result.data is None:
            logger.error(f"User data fetch error for {username}: {result.error or 'no user row'}")
            return None
        try:
            user = User.model_validate(result.data)
        except ValidationError as e:
            logger.error(f"Stored user {username} is malformed: {e}")
            return None

        self.set_current_user(user)
        logger.success(f"{user.username} signed in as {user.role.value}.")
        return user

    def current_user(self) -> Optional[User]:
        raw = self.session.get(CURRENT_USER_KEY)
        if not raw:
            return None
        try:
            return User.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Dropping unreadable cached user: {e}")
            self.session.remove(CURRENT_USER_KEY)
            return None

    def set_current_user(self, user: Optional[User]) -> None:
        if user:
            self.session.set(CURRENT_USER_KEY, user.model_dump_json())
        else:
            self.session.remove(CURRENT_USER_KEY)

    async def logout(self) -> None:
        await self.auth.sign_out()
        self.set_current_user(None)

    async def add_user(
        self, username: str, password: str, role: Union[UserRole, str]
    ) -> Optional[User]:
        """Creates the auth account and the users row. Returns None on failure."""
        role = UserRole(role)
        auth_id = await self.auth.sign_up(self.email_for(username), password)
        if not auth_id:
            return None

        user = User(id=auth_id, username=username, password=password, role=role)
        result = await self.store.insert(self.users_table, user.model_dump(mode="json"))
        if not result.ok:
            logger.error(f"User insert error for {username}: {result.error}")
            return None

        self._users_cache = None
        logger.success(f"Added {role.value} account {username}.")
        return user

    async def list_users(self) -> List[User]:
        if self._users_cache is not None:
            return [u.model_copy() for u in self._users_cache]

        result = await self.store.find_many(self.users_table, order_by="username")
        if not result.ok:
            logger.error(f"Error fetching users: {result.error}")
            return []
        self._users_cache = [User.model_validate(row) for row in result.rows]
        return [u.model_copy() for u in self._users_cache]
