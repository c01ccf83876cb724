"""
Tests for the command-line commands, run against the in-memory store.
"""

import json

import pytest

from hackzilla.models.enums import TeamStatus, UserRole
from hackzilla.models.user import User
from hackzilla.repository.errors import CheckinError, TeamValidationError
from main import build_parser, execute

ADMIN = User(id="u1", username="admin", password="admin123", role=UserRole.ADMIN)
VOLUNTEER = User(id="u2", username="volunteer", password="volunteer123", role=UserRole.VOLUNTEER)


@pytest.fixture
def admin_accounts(accounts):
    accounts.set_current_user(ADMIN)
    return accounts


async def run_command(argv, repo, accounts) -> int:
    return await execute(build_parser().parse_args(argv), repo, accounts)


class TestRegister:
    async def test_register_with_members(self, repo, admin_accounts):
        code = await run_command(
            ["register", "--name", "Alpha", "--leader", "Amy", "--member", "Bob:X"],
            repo,
            admin_accounts,
        )
        assert code == 0
        (team,) = await repo.get_all()
        assert [m.college_name for m in team.members] == ["X"]

    async def test_blank_name_is_a_validation_error(self, repo, store, admin_accounts):
        with pytest.raises(TeamValidationError):
            await run_command(["register", "--name", " ", "--leader", "Amy"], repo, admin_accounts)
        assert store.rows("teams") == []

    def test_member_needs_a_college(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["register", "--name", "A", "--leader", "B", "--member", "Bob"])


class TestEdit:
    async def test_edit_changes_status_and_replaces_members(self, repo, admin_accounts, alpha):
        created = (await repo.create(alpha)).team
        code = await run_command(
            ["edit", created.id, "--status", "active", "--member", "Eve:P", "--member", "Fay:Q"],
            repo,
            admin_accounts,
        )
        assert code == 0
        team = await repo.get_one(created.id)
        assert team.status == TeamStatus.ACTIVE
        assert team.name == "Alpha"
        assert [m.name for m in team.members] == ["Eve", "Fay"]

    async def test_edit_without_members_keeps_them(self, repo, admin_accounts, alpha):
        created = (await repo.create(alpha)).team
        assert await run_command(["edit", created.id, "--name", "Renamed"], repo, admin_accounts) == 0
        team = await repo.get_one(created.id)
        assert team.name == "Renamed"
        assert [m.name for m in team.members] == ["Bob"]

    async def test_edit_unknown_team(self, repo, admin_accounts):
        assert await run_command(["edit", "9999", "--name", "Nobody"], repo, admin_accounts) == 1

    async def test_edit_with_nothing_to_change(self, repo, admin_accounts, alpha):
        created = (await repo.create(alpha)).team
        assert await run_command(["edit", created.id], repo, admin_accounts) == 1

    async def test_edit_requires_admin(self, repo, accounts, alpha):
        created = (await repo.create(alpha)).team
        accounts.set_current_user(VOLUNTEER)
        assert await run_command(["edit", created.id, "--status", "active"], repo, accounts) == 1
        assert (await repo.get_one(created.id)).status == TeamStatus.INACTIVE


class TestRegisterMany:
    async def test_registers_every_valid_entry(self, repo, admin_accounts, tmp_path):
        path = tmp_path / "teams.json"
        path.write_text(
            json.dumps(
                [
                    {"name": "Rocket", "leader": "Ravi", "members": [{"name": "A", "college_name": "C"}]},
                    {"name": "", "leader": "Nobody"},
                    {"name": "Comet", "leader": "Cora", "status": "active"},
                ]
            )
        )
        code = await run_command(["register-many", str(path)], repo, admin_accounts)
        assert code == 1
        teams = await repo.get_all()
        assert sorted(t.name for t in teams) == ["Comet", "Rocket"]
        assert sorted(t.id for t in teams) == ["2501", "2502"]

    async def test_all_valid_entries_succeed(self, repo, admin_accounts, tmp_path):
        path = tmp_path / "teams.json"
        path.write_text(json.dumps([{"name": "Rocket", "leader": "Ravi"}]))
        assert await run_command(["register-many", str(path)], repo, admin_accounts) == 0

    async def test_file_must_hold_a_list(self, repo, admin_accounts, tmp_path):
        path = tmp_path / "teams.json"
        path.write_text(json.dumps({"name": "Rocket"}))
        with pytest.raises(CheckinError):
            await run_command(["register-many", str(path)], repo, admin_accounts)

    async def test_requires_admin(self, repo, accounts, store, tmp_path):
        path = tmp_path / "teams.json"
        path.write_text(json.dumps([{"name": "Rocket", "leader": "Ravi"}]))
        assert await run_command(["register-many", str(path)], repo, accounts) == 1
        assert store.rows("teams") == []
