# hackzilla/models/results.py
from typing import List

from pydantic import BaseModel

from .team import Team

# Names used in TeamWriteResult.degraded
MEMBERS = "members"
FOOD_STATUS = "food_status"


class TeamWriteResult(BaseModel):
    """Outcome of a team create or update.

    The base team row is always committed when a result is returned.
    ``degraded`` lists the dependent record groups whose write failed.
    """

    team: Team
    degraded: List[str] = []

    @property
    def is_consistent(self) -> bool:
        return not self.degraded
