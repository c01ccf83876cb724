# hackzilla/storage/record_store.py
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

Record = Dict[str, Any]
Filters = Dict[str, Any]


class StoreResult(BaseModel):
    """Outcome of a single record store call.

    Backend failures are reported through ``error`` instead of being raised,
    so callers decide per call whether a failure is fatal.
    """

    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def rows(self) -> List[Record]:
        if self.data is None:
            return []
        if isinstance(self.data, list):
            return self.data
        return [self.data]

    @classmethod
    def success(cls, data: Any = None) -> "StoreResult":
        return cls(data=data)

    @classmethod
    def failure(cls, error: str) -> "StoreResult":
        return cls(error=error)


class RecordStore(ABC):
    """Collection-scoped access to a remote record store.

    Filters are equality matches on column values.
    """

    @abstractmethod
    async def insert(
        self, collection: str, records: Union[Record, List[Record]]
    ) -> StoreResult:
        """Insert one or more records. ``data`` holds the inserted rows."""
        pass

    @abstractmethod
    async def find_one(self, collection: str, filters: Filters) -> StoreResult:
        """Fetch the first matching record. ``data`` is None when nothing matched."""
        pass

    @abstractmethod
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
        """Fetch matching records, optionally ordered by one column.

        ``limit`` and ``start`` select one page of the ordered result.
        """
        pass

    @abstractmethod
    async def update(
        self, collection: str, filters: Filters, values: Record
    ) -> StoreResult:
        """Apply ``values`` to every matching record. ``data`` holds the updated rows."""
        pass

    @abstractmethod
    async def delete(self, collection: str, filters: Filters) -> StoreResult:
        """Delete every matching record. ``data`` holds the deleted rows."""
        pass
