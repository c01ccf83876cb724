# hackzilla/repository/team_repository.py
import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Type, TypeVar, Union

from loguru import logger
from pydantic import BaseModel, ValidationError

from hackzilla.config.settings import settings
from hackzilla.models.enums import Meal, MealStatus
from hackzilla.models.results import FOOD_STATUS, MEMBERS, TeamWriteResult
from hackzilla.models.team import FoodStatus, Team, TeamCreate, TeamMember, TeamPatch
from hackzilla.storage.record_store import Record, RecordStore

from .cache import TeamListCache
from .errors import StoreUnavailableError, TeamValidationError
from .id_allocator import TeamIdAllocator

ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate(model_cls: Type[ModelT], data: Union[ModelT, Dict[str, Any]]) -> ModelT:
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise TeamValidationError.from_pydantic(e) from e


class TeamRepository:
    """Reads and writes team aggregates (team, members, food status).

    The three record groups are separate writes with no transaction around
    them. A failed base team write is raised; failed member or food status
    writes are logged and the base team is kept.

    The hydrated ``get_all()`` listing is cached and dropped on every write.
    The repository does not know about user roles: any caller may set any
    meal to any state.
    """

    def __init__(
        self,
        store: RecordStore,
        allocator: Optional[TeamIdAllocator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.allocator = allocator or TeamIdAllocator(store)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.cache = TeamListCache()
        self.teams_table = settings.teams_table
        self.members_table = settings.members_table
        self.food_table = settings.food_status_table

    # --- Reads ---

    async def get_all(self) -> List[Team]:
        """All teams, newest first, each with its members and food status."""
        cached = self.cache.get()
        if cached is not None:
            logger.debug(f"Serving {len(cached)} teams from cache.")
            return cached

        generation = self.cache.generation
        teams_result = await self.store.find_many(
            self.teams_table, order_by="created_at", descending=True
        )
        if not teams_result.ok:
            raise StoreUnavailableError("list", self.teams_table, teams_result.error)

        # Related rows for every team, fetched in bulk and joined locally
        members_result, food_result = await asyncio.gather(
            self.store.find_many(self.members_table, order_by="position"),
            self.store.find_many(self.food_table),
        )
        if not members_result.ok:
            logger.error(f"Error fetching team members, listing without them: {members_result.error}")
        if not food_result.ok:
            logger.error(f"Error fetching food statuses, using defaults: {food_result.error}")

        members_by_team: Dict[str, List[Record]] = defaultdict(list)
        for row in members_result.rows if members_result.ok else []:
            members_by_team[str(row.get("team_id"))].append(row)
        food_by_team: Dict[str, Record] = {}
        for row in food_result.rows if food_result.ok else []:
            food_by_team[str(row.get("team_id"))] = row

        teams: List[Team] = []
        for row in teams_result.rows:
            team_id = str(row.get("id"))
            team = self._hydrate_tolerant(
                row, members_by_team.get(team_id), food_by_team.get(team_id)
            )
            if team is not None:
                teams.append(team)
        self.cache.fill(teams, generation)
        logger.info(f"Loaded {len(teams)} teams from the store.")
        return teams

    @staticmethod
    def _hydrate_tolerant(
        team_row: Record,
        member_rows: Optional[List[Record]],
        food_row: Optional[Record],
    ) -> Optional[Team]:
        try:
            return Team.from_records(team_row, member_rows, food_row)
        except (KeyError, ValidationError) as e:
            logger.error(
                f"Bad related records for team {team_row.get('id')}, listing it without them: {e}"
            )
        try:
            return Team.from_records(team_row)
        except (KeyError, ValidationError) as e:
            logger.error(f"Skipping malformed team record {team_row.get('id')}: {e}")
            return None

    async def get_one(self, team_id: str) -> Optional[Team]:
        """A single hydrated team straight from the store, or None."""
        team_result = await self.store.find_one(self.teams_table, {"id": team_id})
        if not team_result.ok:
            raise StoreUnavailableError("get", self.teams_table, team_result.error)
        if team_result.data is None:
            return None

        members_result, food_result = await asyncio.gather(
            self.store.find_many(
                self.members_table, {"team_id": team_id}, order_by="position"
            ),
            self.store.find_one(self.food_table, {"team_id": team_id}),
        )
        if not members_result.ok:
            raise StoreUnavailableError("get", self.members_table, members_result.error)
        if not food_result.ok:
            raise StoreUnavailableError("get", self.food_table, food_result.error)
        return Team.from_records(team_result.data, members_result.rows, food_result.data)

    async def search(self, term: str) -> List[Team]:
        """Teams whose id, name or leader contains ``term`` (case-insensitive)."""
        needle = term.strip().lower()
        teams = await self.get_all()
        if not needle:
            return teams
        return [
            team
            for team in teams
            if needle in team.id.lower()
            or needle in team.name.lower()
            or needle in team.leader.lower()
        ]

    # --- Writes ---

    async def create(self, data: Union[TeamCreate, Dict[str, Any]]) -> TeamWriteResult:
        """Registers a team with a newly allocated id.

        Raises:
            TeamValidationError: ``data`` is incomplete. Nothing was written.
            StoreUnavailableError: the base team row could not be written.
        """
        team_input = _validate(TeamCreate, data)
        team_id = await self.allocator.next_id()
        created_at = self.clock()

        base_result = await self.store.insert(
            self.teams_table, team_input.to_record(team_id, created_at)
        )
        if not base_result.ok:
            # A duplicate id means another process allocated it; rescan next time
            self.allocator.reset()
            logger.error(f"Team insert error for '{team_input.name}': {base_result.error}")
            raise StoreUnavailableError("insert", self.teams_table, base_result.error)
        self.cache.invalidate()

        degraded: List[str] = []
        if team_input.members:
            members_result = await self.store.insert(
                self.members_table,
                [m.to_record(team_id, i) for i, m in enumerate(team_input.members)],
            )
            if not members_result.ok:
                logger.error(f"Team members insert error for team {team_id}: {members_result.error}")
                degraded.append(MEMBERS)

        food_status = FoodStatus(**(team_input.food_status or FoodStatus()).model_dump())
        food_result = await self.store.insert(self.food_table, food_status.to_record(team_id))
        if not food_result.ok:
            logger.error(f"Food status insert error for team {team_id}: {food_result.error}")
            degraded.append(FOOD_STATUS)

        team = Team(
            id=team_id,
            name=team_input.name,
            leader=team_input.leader,
            status=team_input.status,
            members=list(team_input.members),
            food_status=food_status,
            created_at=created_at,
        )
        if degraded:
            logger.warning(f"Team {team_id} created with degraded records: {', '.join(degraded)}")
        else:
            logger.success(f"Registered team {team_id} ('{team.name}').")
        return TeamWriteResult(team=team, degraded=degraded)

    async def create_many(
        self, inputs: Iterable[Union[TeamCreate, Dict[str, Any]]]
    ) -> List[TeamWriteResult]:
        """Registers teams one after another, skipping the ones that fail."""
        created: List[TeamWriteResult] = []
        for index, data in enumerate(inputs):
            try:
                created.append(await self.create(data))
            except (TeamValidationError, StoreUnavailableError) as e:
                logger.warning(f"Skipping team #{index + 1} in bulk registration: {e}")
        logger.info(f"Bulk registration stored {len(created)} teams.")
        return created

    async def update(
        self, team_id: str, patch: Union[TeamPatch, Dict[str, Any]]
    ) -> Optional[TeamWriteResult]:
        """Applies the fields present in ``patch`` and returns the refreshed team.

        ``members`` replaces the whole member list. ``food_status`` writes only
        the meals it sets explicitly. Member or food status writes that fail are
        listed in ``degraded``. Returns None when the team does not exist.
        """
        changes = _validate(TeamPatch, patch)

        existing = await self.store.find_one(self.teams_table, {"id": team_id})
        if not existing.ok:
            raise StoreUnavailableError("update", self.teams_table, existing.error)
        if existing.data is None:
            logger.warning(f"Update skipped, team {team_id} not found.")
            return None

        self.cache.invalidate()
        base_values = changes.base_values()
        if base_values:
            base_result = await self.store.update(
                self.teams_table, {"id": team_id}, base_values
            )
            if not base_result.ok:
                logger.error(f"Team update error for {team_id}: {base_result.error}")
                raise StoreUnavailableError("update", self.teams_table, base_result.error)

        degraded: List[str] = []
        if changes.members is not None:
            if not await self._replace_members(team_id, changes.members):
                degraded.append(MEMBERS)
        if changes.food_status is not None:
            if not await self._patch_food_status(
                team_id, changes.food_status.explicit_fields()
            ):
                degraded.append(FOOD_STATUS)

        team = await self.get_one(team_id)
        if team is None:
            logger.warning(f"Team {team_id} disappeared during update.")
            return None
        if degraded:
            logger.warning(f"Team {team_id} updated with degraded records: {', '.join(degraded)}")
        return TeamWriteResult(team=team, degraded=degraded)

    async def _replace_members(self, team_id: str, members: List[TeamMember]) -> bool:
        deleted = await self.store.delete(self.members_table, {"team_id": team_id})
        if not deleted.ok:
            # Inserting now would leave old and new members side by side
            logger.error(f"Could not clear members of team {team_id}: {deleted.error}")
            return False
        if not members:
            return True
        inserted = await self.store.insert(
            self.members_table, [m.to_record(team_id, i) for i, m in enumerate(members)]
        )
        if not inserted.ok:
            logger.error(f"Team members update error for {team_id}: {inserted.error}")
            return False
        return True

    async def _patch_food_status(self, team_id: str, fields: Dict[str, str]) -> bool:
        if not fields:
            return True
        current = await self.store.find_one(self.food_table, {"team_id": team_id})
        if not current.ok:
            logger.error(f"Error checking food status of team {team_id}: {current.error}")
            return False
        if current.data is None:
            result = await self.store.insert(
                self.food_table, FoodStatus(**fields).to_record(team_id)
            )
        else:
            result = await self.store.update(self.food_table, {"team_id": team_id}, fields)
        if not result.ok:
            logger.error(f"Food status update error for team {team_id}: {result.error}")
            return False
        return True

    async def delete(self, team_id: str) -> bool:
        """Removes the team row. Members and food status are left to the store's cascade."""
        result = await self.store.delete(self.teams_table, {"id": team_id})
        if not result.ok:
            logger.error(f"Team deletion error for {team_id}: {result.error}")
            return False
        self.cache.invalidate()
        logger.info(f"Deleted team {team_id}.")
        return True

    async def set_meal_status(
        self,
        team_id: str,
        meal: Union[Meal, str],
        status: Union[MealStatus, str],
    ) -> Optional[Team]:
        """Sets one meal of a team, leaving the other two meals as stored.

        Returns the refreshed team, or None when the team does not exist.
        """
        try:
            meal = Meal(meal)
            status = MealStatus(status)
        except ValueError as e:
            raise TeamValidationError(str(e)) from e

        team_row = await self.store.find_one(self.teams_table, {"id": team_id})
        if not team_row.ok:
            raise StoreUnavailableError("get", self.teams_table, team_row.error)
        if team_row.data is None:
            logger.warning(f"Meal update skipped, team {team_id} not found.")
            return None

        current = await self.store.find_one(self.food_table, {"team_id": team_id})
        if not current.ok:
            raise StoreUnavailableError("get", self.food_table, current.error)

        if current.data is None:
            # Meals other than the target start invalid
            record = FoodStatus(**{meal.value: status}).to_record(team_id)
            result = await self.store.insert(self.food_table, record)
        else:
            result = await self.store.update(
                self.food_table, {"team_id": team_id}, {meal.value: status.value}
            )
        self.cache.invalidate()
        if not result.ok:
            logger.error(f"Food status update error for team {team_id}: {result.error}")
            raise StoreUnavailableError("update", self.food_table, result.error)

        logger.info(f"Team {team_id}: {meal.value} set to {status.value}.")
        return await self.get_one(team_id)
