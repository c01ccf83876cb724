# hackzilla/services/scan_service.py
import json
from typing import Any, Dict, Optional, Union

from loguru import logger

from hackzilla.models.enums import Meal, MealStatus, UserRole
from hackzilla.models.team import Team
from hackzilla.models.user import User
from hackzilla.repository.errors import CheckinError
from hackzilla.repository.team_repository import TeamRepository


class InvalidBadgeError(CheckinError):
    """The scanned text is not a team badge payload."""

    pass


class PermissionDeniedError(CheckinError):
    """The signed-in role may not make this meal change."""

    pass


def encode_badge(team: Team) -> str:
    """The JSON text encoded into a team's QR badge."""
    return json.dumps(
        {
            "id": team.id,
            "name": team.name,
            "leader": team.leader,
            "members": [
                {"name": m.name, "collegeName": m.college_name} for m in team.members
            ],
            "status": team.status.value,
            "foodStatus": team.food_status.model_dump(mode="json"),
        }
    )


def decode_badge(text: str) -> str:
    """Returns the team id carried by a badge payload."""
    try:
        payload: Any = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise InvalidBadgeError(f"Badge is not valid JSON: {e}") from e
    if not isinstance(payload, dict) or not payload.get("id"):
        raise InvalidBadgeError("Badge does not carry a team id.")
    return str(payload["id"])


def check_transition(
    role: Union[UserRole, str], current: MealStatus, target: MealStatus
) -> None:
    """Admins may set a meal either way; volunteers may only validate it."""
    role = UserRole(role)
    if role == UserRole.ADMIN or current == target:
        return
    if target != MealStatus.VALID:
        raise PermissionDeniedError(
            f"Role '{role.value}' cannot change a meal from {current.value} to {target.value}."
        )


class ScanService:
    """Applies scanned badges to a team's meal status on behalf of a signed-in user."""

    def __init__(self, repository: TeamRepository):
        self.repository = repository

    async def lookup(self, badge_text: str) -> Optional[Team]:
        team_id = decode_badge(badge_text)
        team = await self.repository.get_one(team_id)
        if team is None:
            logger.warning(f"Scanned badge for unknown team {team_id}.")
        return team

    async def scan(
        self,
        badge_text: str,
        meal: Union[Meal, str],
        status: Union[MealStatus, str],
        user: User,
    ) -> Optional[Team]:
        """Decodes the badge, checks the user's role and records the meal.

        Returns the updated team, or None if the badge names an unknown team.
        """
        meal, status = Meal(meal), MealStatus(status)
        team = await self.lookup(badge_text)
        if team is None:
            return None
        check_transition(user.role, team.food_status.get(meal), status)
        updated = await self.repository.set_meal_status(team.id, meal, status)
        if updated is not None:
            logger.info(
                f"{user.username} ({user.role.value}) set {meal.value} of team {team.id} to {status.value}."
            )
        return updated

    @staticmethod
    def badge_summary(team: Team) -> Dict[str, str]:
        """Meal name to status value, as shown after a scan."""
        return {meal.value: team.food_status.get(meal).value for meal in Meal}
