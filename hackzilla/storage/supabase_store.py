# hackzilla/storage/supabase_store.py
from typing import Any, List, Optional, Union

import httpx
from loguru import logger
from postgrest import APIResponse
from postgrest.exceptions import APIError
from supabase import AsyncClient, create_async_client
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from hackzilla.config.settings import settings

from .record_store import Filters, Record, RecordStore, StoreResult

# Module-level storage for the async client instance
_async_supabase_client: Optional[AsyncClient] = None


async def initialize_supabase() -> Optional[AsyncClient]:
    """Initializes the global ASYNC Supabase client and returns it."""
    global _async_supabase_client
    if _async_supabase_client:
        logger.debug("Async Supabase client already initialized.")
        return _async_supabase_client

    if not settings.supabase_url or not settings.supabase_key:
        logger.critical("Supabase URL or Key not configured in settings.")
        raise SystemExit("Supabase configuration missing.")

    logger.debug(
        f"Attempting to initialize Async Supabase client with URL: {settings.supabase_url}"
    )
    key_snippet = f"{settings.supabase_key[:5]}...{settings.supabase_key[-5:]}"
    logger.debug(f"Using Supabase Key (snippet): {key_snippet}")

    try:
        client: AsyncClient = await create_async_client(
            settings.supabase_url, settings.supabase_key
        )
        _async_supabase_client = client
        logger.success("Async Supabase client initialized successfully.")
        return client
    except Exception as e:
        logger.exception(f"Failed to initialize Async Supabase client: {e}")
        return None


def _apply_filters(query: Any, filters: Optional[Filters]) -> Any:
    for column, value in (filters or {}).items():
        query = query.eq(column, value)
    return query


class SupabaseRecordStore(RecordStore):
    """Record store backed by Supabase tables through the async PostgREST client.

    Reads retry transient transport errors. Writes are sent once: a retried
    insert whose first attempt reached the server would duplicate rows.
    """

    def __init__(self, client: AsyncClient):
        self.client = client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _execute_read(self, query: Any) -> APIResponse:
        return await query.execute()

    async def _run(
        self, operation: str, collection: str, query: Any, read: bool = False
    ) -> StoreResult:
        try:
            if read:
                response: APIResponse = await self._execute_read(query)
            else:
                response = await query.execute()
            return StoreResult.success(response.data)
        except APIError as e:
            logger.error(f"Supabase API error during {operation} on {collection}: {e.message}")
            logger.debug(f"Full APIError details: {e}")
            return StoreResult.failure(e.message or str(e))
        except httpx.HTTPError as e:
            logger.error(f"Network error during {operation} on {collection}: {e}")
            return StoreResult.failure(f"network error: {e}")

    async def insert(
        self, collection: str, records: Union[Record, List[Record]]
    ) -> StoreResult:
        if isinstance(records, list) and not records:
            logger.debug(f"No data provided for insert to table {collection}. Skipping.")
            return StoreResult.success([])
        query = self.client.table(collection).insert(records)
        return await self._run("insert", collection, query)

    async def find_one(self, collection: str, filters: Filters) -> StoreResult:
        # limit(1) instead of single(): an empty match is data=None, not an error
        query = _apply_filters(self.client.table(collection).select("*"), filters).limit(1)
        result = await self._run("find_one", collection, query, read=True)
        if not result.ok:
            return result
        return StoreResult.success(result.rows[0] if result.rows else None)

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
        query = _apply_filters(self.client.table(collection).select(columns), filters)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.range(start, start + limit - 1)
        result = await self._run("find_many", collection, query, read=True)
        if result.ok and result.data is None:
            return StoreResult.success([])
        return result

    async def update(
        self, collection: str, filters: Filters, values: Record
    ) -> StoreResult:
        query = _apply_filters(self.client.table(collection).update(values), filters)
        return await self._run("update", collection, query)

    async def delete(self, collection: str, filters: Filters) -> StoreResult:
        query = _apply_filters(self.client.table(collection).delete(), filters)
        return await self._run("delete", collection, query)


class SupabaseAuthBackend:
    """Email/password sign-in through the Supabase auth module."""

    def __init__(self, client: AsyncClient):
        self.client = client

    async def sign_in(self, email: str, password: str) -> Optional[str]:
        """Returns the auth user id, or None when the credentials are rejected."""
        try:
            response = await self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            logger.error(f"Authentication error for {email}: {e}")
            return None
        return response.user.id if response.user else None

    async def sign_up(self, email: str, password: str) -> Optional[str]:
        """Creates an auth user and returns its id, or None on failure."""
        try:
            response = await self.client.auth.sign_up(
                {"email": email, "password": password}
            )
        except Exception as e:
            logger.error(f"Auth user creation error for {email}: {e}")
            return None
        return response.user.id if response.user else None

    async def sign_out(self) -> None:
        try:
            await self.client.auth.sign_out()
        except Exception as e:
            logger.warning(f"Sign-out failed: {e}")
