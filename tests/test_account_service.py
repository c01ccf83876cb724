"""
Tests for AccountService sign-in, session caching and account management.
"""

from hackzilla.models.enums import UserRole
from hackzilla.models.user import User
from hackzilla.services.account_service import CURRENT_USER_KEY


class TestSignIn:
    async def test_authenticate_loads_role_and_caches_user(self, accounts, session):
        await accounts.add_user("admin", "admin123", "admin")
        user = await accounts.authenticate("admin", "admin123")
        assert user.role == UserRole.ADMIN
        assert session.get(CURRENT_USER_KEY) is not None
        assert accounts.current_user() == user

    async def test_usernames_map_to_synthetic_emails(self, accounts, auth):
        await accounts.add_user("Volunteer", "pw", UserRole.VOLUNTEER)
        assert "volunteer@hackzilla.app" in auth.accounts

    async def test_wrong_password_is_none(self, accounts, session):
        await accounts.add_user("admin", "admin123", "admin")
        assert await accounts.authenticate("admin", "nope") is None
        assert session.get(CURRENT_USER_KEY) is None

    async def test_missing_user_row_is_none(self, accounts, auth):
        await auth.sign_up("ghost@hackzilla.app", "pw")
        assert await accounts.authenticate("ghost", "pw") is None

    async def test_blank_credentials_are_none(self, accounts):
        assert await accounts.authenticate("", "") is None

    async def test_logout_clears_session(self, accounts, auth):
        await accounts.add_user("admin", "admin123", "admin")
        await accounts.authenticate("admin", "admin123")
        await accounts.logout()
        assert accounts.current_user() is None
        assert auth.signed_out

    def test_unreadable_cached_user_is_dropped(self, accounts, session):
        session.set(CURRENT_USER_KEY, "{broken")
        assert accounts.current_user() is None
        assert session.get(CURRENT_USER_KEY) is None


class TestAccounts:
    async def test_duplicate_username_fails(self, accounts):
        assert await accounts.add_user("admin", "a", "admin") is not None
        assert await accounts.add_user("admin", "b", "volunteer") is None

    async def test_list_users_is_cached_until_a_user_is_added(self, accounts, store):
        await accounts.add_user("bo", "pw", "volunteer")
        first = await accounts.list_users()
        reads = store.calls.count(("find_many", "users"))
        await accounts.list_users()
        assert store.calls.count(("find_many", "users")) == reads

        await accounts.add_user("al", "pw", "admin")
        users = await accounts.list_users()
        assert [u.username for u in first] == ["bo"]
        assert [u.username for u in users] == ["al", "bo"]

    async def test_list_users_returns_copies(self, accounts):
        await accounts.add_user("bo", "pw", "volunteer")
        (user,) = await accounts.list_users()
        user.role = UserRole.ADMIN
        (again,) = await accounts.list_users()
        assert again.role == UserRole.VOLUNTEER

    async def test_user_is_admin(self):
        assert User(id="1", username="a", password="p", role="admin").is_admin
        assert not User(id="2", username="v", password="p").is_admin
