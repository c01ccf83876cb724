# hackzilla/repository/id_allocator.py
from typing import Optional

from loguru import logger

from hackzilla.config.settings import settings
from hackzilla.storage.record_store import RecordStore

# Must not exceed the remote API max-rows cap (1000 by default)
ID_PAGE_SIZE = 1000


class TeamIdAllocator:
    """Hands out sequential, human-readable team ids ("2501", "2502", ...).

    On cold start the highest numeric id already in the store is looked up and
    allocation resumes after it. Ids are text in the store, so the lookup pages
    through all of them rather than asking for the largest one. After that ids
    come from a local counter.

    The lookup-then-increment is not atomic: two processes allocating at the
    same time can both pick the same id. The primary key on the teams table
    turns that into a failed insert; ``reset()`` makes the next allocation
    rescan the store.
    """

    def __init__(
        self,
        store: RecordStore,
        offset: Optional[int] = None,
        collection: Optional[str] = None,
        page_size: int = ID_PAGE_SIZE,
    ):
        self.store = store
        self.page_size = page_size
        self.offset = settings.team_id_offset if offset is None else offset
        self.collection = collection or settings.teams_table
        self._last: Optional[int] = None
        self._synced = False

    @property
    def last_issued(self) -> Optional[int]:
        return self._last

    def reset(self) -> None:
        """Forget the sync so the next allocation rescans the store."""
        self._synced = False

    async def _highest_stored_id(self) -> Optional[int]:
        """Reads every stored id in pages; None if any page cannot be read."""
        highest = self.offset
        start = 0
        while True:
            result = await self.store.find_many(
                self.collection, order_by="id", columns="id", limit=self.page_size, start=start
            )
            if not result.ok:
                logger.warning(
                    f"Could not read existing team ids ({result.error}); "
                    f"continuing from last known id {self._last or self.offset}."
                )
                return None
            for row in result.rows:
                try:
                    highest = max(highest, int(str(row.get("id"))))
                except (TypeError, ValueError):
                    continue  # Imported or legacy ids that are not numbers
            if len(result.rows) < self.page_size:
                return highest
            start += self.page_size

    async def next_id(self) -> str:
        if not self._synced:
            highest = await self._highest_stored_id()
            if highest is not None:
                self._last = max(highest, self.offset, self._last or 0)
                self._synced = True
                logger.debug(f"Team id allocator synced, last id in store: {self._last}")
        if self._last is None:
            self._last = self.offset
        self._last += 1
        return str(self._last)
