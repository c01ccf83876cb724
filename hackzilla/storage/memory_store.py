# hackzilla/storage/memory_store.py
import copy
from typing import Dict, List, Optional, Tuple, Union

from loguru import logger

from hackzilla.config.settings import settings

from .record_store import Filters, Record, RecordStore, StoreResult

# (child collection, child column, parent column)
CascadeRule = Tuple[str, str, str]


class InMemoryRecordStore(RecordStore):
    """Dict-backed record store for tests and local runs.

    Supports unique keys and delete cascades so it can mirror the constraints
    of the SQL schema the Supabase store runs against.
    """

    def __init__(
        self,
        unique_keys: Optional[Dict[str, List[str]]] = None,
        cascades: Optional[Dict[str, List[CascadeRule]]] = None,
    ):
        self._collections: Dict[str, List[Record]] = {}
        self.unique_keys = unique_keys or {}
        self.cascades = cascades or {}
        self.calls: List[Tuple[str, str]] = []  # (operation, collection)

    @classmethod
    def with_default_schema(cls) -> "InMemoryRecordStore":
        """A store with the same keys and cascades as schema.sql."""
        return cls(
            unique_keys={
                settings.teams_table: ["id"],
                settings.food_status_table: ["team_id"],
                settings.users_table: ["username"],
            },
            cascades={
                settings.teams_table: [
                    (settings.members_table, "team_id", "id"),
                    (settings.food_status_table, "team_id", "id"),
                ]
            },
        )

    def rows(self, collection: str) -> List[Record]:
        """A copy of everything stored in ``collection``."""
        return copy.deepcopy(self._collections.get(collection, []))

    def clear(self) -> None:
        self._collections.clear()
        self.calls.clear()

    @staticmethod
    def _matches(row: Record, filters: Optional[Filters]) -> bool:
        return all(row.get(column) == value for column, value in (filters or {}).items())

    def _violates_unique(
        self, collection: str, record: Record, existing: List[Record]
    ) -> Optional[str]:
        for column in self.unique_keys.get(collection, []):
            if column in record and any(
                row.get(column) == record[column] for row in existing
            ):
                return f"duplicate key value violates unique constraint on {collection}.{column}"
        return None

    async def insert(
        self, collection: str, records: Union[Record, List[Record]]
    ) -> StoreResult:
        self.calls.append(("insert", collection))
        batch = records if isinstance(records, list) else [records]
        table = self._collections.setdefault(collection, [])
        staged: List[Record] = []
        for record in batch:
            # Checked against staged rows too so a batch is all-or-nothing
            problem = self._violates_unique(collection, record, table + staged)
            if problem:
                logger.debug(f"In-memory insert into {collection} rejected: {problem}")
                return StoreResult.failure(problem)
            staged.append(copy.deepcopy(record))
        table.extend(staged)
        return StoreResult.success(copy.deepcopy(staged))

    async def find_one(self, collection: str, filters: Filters) -> StoreResult:
        self.calls.append(("find_one", collection))
        for row in self._collections.get(collection, []):
            if self._matches(row, filters):
                return StoreResult.success(copy.deepcopy(row))
        return StoreResult.success(None)

    async def find_many(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        columns: str = "*",
        limit: Optional[int] = None,
        start: int = 0,
    ) -> StoreResult:
        self.calls.append(("find_many", collection))
        found = [
            row for row in self._collections.get(collection, []) if self._matches(row, filters)
        ]
        if order_by:
            found = sorted(
                found,
                key=lambda row: (row.get(order_by) is None, row.get(order_by)),
                reverse=descending,
            )
        if limit is not None:
            found = found[start : start + limit]
        if columns != "*":
            wanted = [c.strip() for c in columns.split(",")]
            found = [{c: row.get(c) for c in wanted} for row in found]
        return StoreResult.success(copy.deepcopy(found))

    async def update(
        self, collection: str, filters: Filters, values: Record
    ) -> StoreResult:
        self.calls.append(("update", collection))
        updated = []
        for row in self._collections.get(collection, []):
            if self._matches(row, filters):
                row.update(copy.deepcopy(values))
                updated.append(copy.deepcopy(row))
        return StoreResult.success(updated)

    async def delete(self, collection: str, filters: Filters) -> StoreResult:
        self.calls.append(("delete", collection))
        table = self._collections.get(collection, [])
        removed = [row for row in table if self._matches(row, filters)]
        self._collections[collection] = [
            row for row in table if not self._matches(row, filters)
        ]
        for child, child_column, parent_column in self.cascades.get(collection, []):
            for parent in removed:
                await self.delete(child, {child_column: parent.get(parent_column)})
        return StoreResult.success(removed)
