# hackzilla/services/stats.py
from typing import List

from pydantic import BaseModel

from hackzilla.models.enums import Meal, MealStatus, TeamStatus
from hackzilla.models.team import Team


class DashboardStats(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0
    members: int = 0
    lunch_valid: int = 0
    dinner_valid: int = 0
    snacks_valid: int = 0


def compute_stats(teams: List[Team]) -> DashboardStats:
    """Headline counts for the dashboard."""
    active = sum(1 for t in teams if t.status == TeamStatus.ACTIVE)

    def valid(meal: Meal) -> int:
        return sum(1 for t in teams if t.food_status.get(meal) == MealStatus.VALID)

    return DashboardStats(
        total=len(teams),
        active=active,
        inactive=len(teams) - active,
        members=sum(len(t.members) for t in teams),
        lunch_valid=valid(Meal.LUNCH),
        dinner_valid=valid(Meal.DINNER),
        snacks_valid=valid(Meal.SNACKS),
    )
