# hackzilla/models/team.py
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, Field, StringConstraints

from .enums import Meal, MealStatus, TeamStatus

# Display strings are stripped; an all-whitespace value counts as missing
NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class TeamMember(BaseModel):
    """A participant registered as part of a team."""

    name: NonEmptyStr
    college_name: NonEmptyStr

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "TeamMember":
        return cls(name=record["name"], college_name=record["college_name"])

    def to_record(self, team_id: str, position: int) -> Dict[str, Any]:
        return {
            "team_id": team_id,
            "name": self.name,
            "college_name": self.college_name,
            "position": position,
        }


class FoodStatus(BaseModel):
    """Per-meal validation state of a team. Every meal starts out invalid.

    When used inside a ``TeamPatch`` only the meals that were explicitly
    given are written, so ``FoodStatus(lunch="valid")`` leaves dinner and
    snacks alone.
    """

    lunch: MealStatus = MealStatus.INVALID
    dinner: MealStatus = MealStatus.INVALID
    snacks: MealStatus = MealStatus.INVALID

    @classmethod
    def from_record(cls, record: Optional[Dict[str, Any]]) -> "FoodStatus":
        if not record:
            return cls()
        return cls(
            lunch=record.get("lunch") or MealStatus.INVALID,
            dinner=record.get("dinner") or MealStatus.INVALID,
            snacks=record.get("snacks") or MealStatus.INVALID,
        )

    def get(self, meal: Meal) -> MealStatus:
        return getattr(self, Meal(meal).value)

    def explicit_fields(self) -> Dict[str, str]:
        """Meal fields that were set explicitly, as store values."""
        return {
            name: getattr(self, name).value
            for name in ("lunch", "dinner", "snacks")
            if name in self.model_fields_set
        }

    def to_record(self, team_id: str) -> Dict[str, Any]:
        return {
            "team_id": team_id,
            "lunch": self.lunch.value,
            "dinner": self.dinner.value,
            "snacks": self.snacks.value,
        }


class Team(BaseModel):
    """A registered team together with its members and food status."""

    id: str
    name: str
    leader: str
    status: TeamStatus = TeamStatus.INACTIVE
    members: List[TeamMember] = []
    food_status: FoodStatus = Field(default_factory=FoodStatus)
    created_at: datetime

    @classmethod
    def from_records(
        cls,
        team_record: Dict[str, Any],
        member_records: Optional[List[Dict[str, Any]]] = None,
        food_record: Optional[Dict[str, Any]] = None,
    ) -> "Team":
        """Hydrates a team from its base row and its related rows."""
        members = sorted(member_records or [], key=lambda r: r.get("position") or 0)
        return cls(
            id=str(team_record["id"]),
            name=team_record["name"],
            leader=team_record["leader"],
            status=team_record.get("status") or TeamStatus.INACTIVE,
            members=[TeamMember.from_record(m) for m in members],
            food_status=FoodStatus.from_record(food_record),
            created_at=team_record["created_at"],
        )


class TeamCreate(BaseModel):
    """Registration input. The id and creation time are assigned on create."""

    name: NonEmptyStr
    leader: NonEmptyStr
    status: TeamStatus = TeamStatus.INACTIVE
    members: List[TeamMember] = []
    food_status: Optional[FoodStatus] = None

    def to_record(self, team_id: str, created_at: datetime) -> Dict[str, Any]:
        return {
            "id": team_id,
            "name": self.name,
            "leader": self.leader,
            "status": self.status.value,
            "created_at": created_at.isoformat(),
        }


class TeamPatch(BaseModel):
    """Partial update. Fields left as None are not touched."""

    name: Optional[NonEmptyStr] = None
    leader: Optional[NonEmptyStr] = None
    status: Optional[TeamStatus] = None
    members: Optional[List[TeamMember]] = None
    food_status: Optional[FoodStatus] = None

    def base_values(self) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        if self.name is not None:
            values["name"] = self.name
        if self.leader is not None:
            values["leader"] = self.leader
        if self.status is not None:
            values["status"] = self.status.value
        return values
