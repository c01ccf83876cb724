"""
Tests for badge payloads, the role policy for meal changes and ScanService.
"""

import json

import pytest

from hackzilla.models.enums import MealStatus, UserRole
from hackzilla.models.user import User
from hackzilla.services.scan_service import (
    InvalidBadgeError,
    PermissionDeniedError,
    ScanService,
    check_transition,
    decode_badge,
    encode_badge,
)

ADMIN = User(id="u1", username="admin", password="admin123", role=UserRole.ADMIN)
VOLUNTEER = User(id="u2", username="volunteer", password="volunteer123", role=UserRole.VOLUNTEER)


@pytest.fixture
def scanner(repo) -> ScanService:
    return ScanService(repo)


class TestBadgePayload:
    async def test_badge_carries_team_details(self, repo, alpha):
        team = (await repo.create(alpha)).team
        payload = json.loads(encode_badge(team))
        assert payload["id"] == "2501"
        assert payload["members"] == [{"name": "Bob", "collegeName": "X"}]
        assert payload["foodStatus"] == {"lunch": "invalid", "dinner": "invalid", "snacks": "invalid"}

    async def test_decode_reads_id_from_encoded_badge(self, repo, alpha):
        team = (await repo.create(alpha)).team
        assert decode_badge(encode_badge(team)) == team.id

    def test_numeric_id_is_read_as_string(self):
        assert decode_badge('{"id": 2501}') == "2501"

    @pytest.mark.parametrize("text", ["", "not json", "[1, 2]", '{"name": "Alpha"}', '{"id": ""}'])
    def test_rejects_non_badges(self, text):
        with pytest.raises(InvalidBadgeError):
            decode_badge(text)


class TestTransitionPolicy:
    @pytest.mark.parametrize(
        "current,target",
        [
            (MealStatus.INVALID, MealStatus.VALID),
            (MealStatus.VALID, MealStatus.INVALID),
        ],
    )
    def test_admin_may_move_both_ways(self, current, target):
        check_transition(UserRole.ADMIN, current, target)

    def test_volunteer_may_validate(self):
        check_transition(UserRole.VOLUNTEER, MealStatus.INVALID, MealStatus.VALID)

    def test_volunteer_may_not_invalidate(self):
        with pytest.raises(PermissionDeniedError):
            check_transition("volunteer", MealStatus.VALID, MealStatus.INVALID)

    def test_unchanged_state_is_always_allowed(self):
        check_transition(UserRole.VOLUNTEER, MealStatus.INVALID, MealStatus.INVALID)


class TestScan:
    async def test_volunteer_scan_validates_meal(self, scanner, repo, alpha):
        team = (await repo.create(alpha)).team
        updated = await scanner.scan(encode_badge(team), "lunch", "valid", VOLUNTEER)
        assert updated.food_status.lunch == MealStatus.VALID
        assert ScanService.badge_summary(updated) == {
            "lunch": "valid",
            "dinner": "invalid",
            "snacks": "invalid",
        }

    async def test_volunteer_cannot_revert(self, scanner, repo, alpha):
        team = (await repo.create(alpha)).team
        await repo.set_meal_status(team.id, "lunch", "valid")
        with pytest.raises(PermissionDeniedError):
            await scanner.scan(encode_badge(team), "lunch", "invalid", VOLUNTEER)
        assert (await repo.get_one(team.id)).food_status.lunch == MealStatus.VALID

    async def test_admin_can_revert(self, scanner, repo, alpha):
        team = (await repo.create(alpha)).team
        await repo.set_meal_status(team.id, "lunch", "valid")
        updated = await scanner.scan(encode_badge(team), "lunch", "invalid", ADMIN)
        assert updated.food_status.lunch == MealStatus.INVALID

    async def test_policy_uses_stored_state_not_badge_state(self, scanner, repo, alpha):
        team = (await repo.create(alpha)).team
        stale_badge = encode_badge(team)  # printed while lunch was invalid
        await repo.set_meal_status(team.id, "lunch", "valid")
        with pytest.raises(PermissionDeniedError):
            await scanner.scan(stale_badge, "lunch", "invalid", VOLUNTEER)

    async def test_unknown_team_is_none(self, scanner):
        assert await scanner.scan('{"id": "9999"}', "lunch", "valid", ADMIN) is None
