# hackzilla/repository/cache.py
from enum import Enum
from typing import List, Optional

from hackzilla.models.team import Team


class CacheState(str, Enum):
    COLD = "cold"  # never populated
    WARM = "warm"
    INVALIDATED = "invalidated"


class TeamListCache:
    """Holds the hydrated team listing between writes.

    Reads hand out deep copies so callers can never mutate the cached teams.
    """

    def __init__(self):
        self.state = CacheState.COLD
        self.generation = 0  # bumped on every invalidation
        self._teams: List[Team] = []

    def get(self) -> Optional[List[Team]]:
        if self.state != CacheState.WARM:
            return None
        return [team.model_copy(deep=True) for team in self._teams]

    def fill(self, teams: List[Team], generation: Optional[int] = None) -> bool:
        """Stores ``teams`` unless an invalidation happened since ``generation``."""
        if generation is not None and generation != self.generation:
            return False
        self._teams = [team.model_copy(deep=True) for team in teams]
        self.state = CacheState.WARM
        return True

    def invalidate(self) -> None:
        self._teams = []
        self.generation += 1
        if self.state != CacheState.COLD:
            self.state = CacheState.INVALIDATED
