"""Core service exposing the collection operations of a project endpoint.

Translates caller arguments (filters, sort, fields, lookups) into ``Query``
objects and delegates to the PageFetcher for single requests and to the
PaginationEngine for whole collections.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence

from creeble.core.services.page_fetcher import PageFetcher
from creeble.core.services.pagination_engine import PaginationEngine
from creeble.domain.models.common import (
    DEFAULT_PAGE_SIZE,
    Item,
    ItemId,
    PageEnvelope,
    Query,
    ResourceName,
    clamp_page_size,
)
from creeble.domain.models.errors import ApiError, ErrorKind
from creeble.domain.models.lookup import Found, LookupFailed, LookupResult, NotFound
from creeble.domain.models.pagination import DEFAULT_CONCURRENCY, PaginationOptions, Strategy

logger = logging.getLogger(__name__)

Filters = Optional[Mapping[str, Any]]

ITEM_KINDS = ("pages", "rows")
DEFAULT_LIST_LIMIT = 20
LIGHTWEIGHT_FIELDS = ("id", "title")


class DataService:
    """High-level read operations over published collections."""

    def __init__(self, page_fetcher: PageFetcher, pagination_engine: PaginationEngine):
        self.page_fetcher = page_fetcher
        self.pagination_engine = pagination_engine

    # --- Single requests ---

    async def list(self, resource: str, filters: Filters = None) -> PageEnvelope:
        return await self.page_fetcher.fetch_query(resource, Query(filters=filters or {}))

    async def get(self, resource: str, item_id: ItemId) -> Any:
        """Fetches one item by id and returns the raw response payload."""
        return await self.page_fetcher.fetch_one(resource, item_id)

    async def paginate(self, resource: str, page: int = 1, limit: int = DEFAULT_LIST_LIMIT,
                       filters: Filters = None) -> PageEnvelope:
        return await self.page_fetcher.fetch_page(resource, page, limit, Query(filters=filters or {}))

    async def filter(self, resource: str, filters: Mapping[str, Any]) -> PageEnvelope:
        return await self.list(resource, filters)

    async def sort_by(self, resource: str, field: str, direction: str = "asc",
                      filters: Filters = None) -> PageEnvelope:
        query = Query(filters=filters or {}, sort=(field, direction))
        return await self.page_fetcher.fetch_query(resource, query)

    async def search(self, resource: str, text: str, filters: Filters = None) -> PageEnvelope:
        return await self.page_fetcher.fetch_query(resource, Query(filters=filters or {}, search=text))

    async def recent(self, resource: str, limit: int = 10) -> PageEnvelope:
        """Most recently created items first."""
        return await self.page_fetcher.fetch_query(resource, Query(sort=("created_at", "desc"), limit=limit))

    async def list_fields(self, resource: str, fields: Sequence[str], filters: Filters = None) -> PageEnvelope:
        """Lists items returning only the requested fields."""
        if not fields:
            raise ValueError("At least one field is required")
        return await self.page_fetcher.fetch_query(resource, Query(filters=filters or {}, fields=tuple(fields)))

    async def list_lightweight(self, resource: str, filters: Filters = None) -> PageEnvelope:
        return await self.list_fields(resource, LIGHTWEIGHT_FIELDS, filters)

    # --- Whole collections ---

    async def get_all_pages(
        self,
        resource: str,
        filters: Filters = None,
        strategy: Strategy = Strategy.SEQUENTIAL,
        page_size: int = DEFAULT_PAGE_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
        max_items: Optional[int] = None,
        prefer_concurrent: bool = True,
    ) -> List[Item]:
        """Collects every item of ``resource`` matching ``filters``.

        Args:
            resource: Collection name.
            filters: Filters applied to every page request.
            strategy: Traversal strategy, see PaginationEngine.
            page_size: Items per page; clamped to the server maximum.
            concurrency: Pages fetched in parallel per batch (concurrent only).
            max_items: Refuse collections larger than this (raises OVERSIZED).
            prefer_concurrent: Whether auto-select may choose concurrent.

        Returns:
            All items in page order.
        """
        options = PaginationOptions(
            strategy=strategy,
            concurrency=concurrency,
            page_size=page_size,
            max_items=max_items,
            prefer_concurrent=prefer_concurrent,
        )
        return await self.pagination_engine.collect_all(resource, Query(filters=filters or {}), options)

    async def get_all_pages_concurrent(self, resource: str, filters: Filters = None,
                                       page_size: int = DEFAULT_PAGE_SIZE,
                                       concurrency: int = DEFAULT_CONCURRENCY) -> List[Item]:
        return await self.get_all_pages(resource, filters, Strategy.CONCURRENT, page_size, concurrency)

    async def get_all_pages_optimized(self, resource: str, filters: Filters = None,
                                      page_size: int = DEFAULT_PAGE_SIZE,
                                      max_items: Optional[int] = None,
                                      prefer_concurrent: bool = True) -> List[Item]:
        """Probes the collection size first, then picks a strategy."""
        return await self.get_all_pages(
            resource, filters, Strategy.AUTO, page_size,
            max_items=max_items, prefer_concurrent=prefer_concurrent,
        )

    async def iter_pages(self, resource: str, filters: Filters = None,
                         page_size: int = DEFAULT_PAGE_SIZE) -> AsyncIterator[PageEnvelope]:
        """Yields pages one at a time so callers can process them as they arrive.

        Follows ``next_page`` like the sequential traversal. Responses without
        a pagination block continue while pages come back full.
        """
        query = Query(filters=filters or {})
        page_size = clamp_page_size(page_size)
        page = 1
        while True:
            envelope = await self.page_fetcher.fetch_page(resource, page, page_size, query)
            yield envelope

            pagination = envelope.pagination
            if pagination is None:
                if len(envelope.items) < page_size:
                    return
                page += 1
                continue
            if not pagination.has_more_pages or pagination.next_page is None or pagination.next_page <= page:
                return
            page = pagination.next_page

    # --- Lookups ---

    async def find_by(self, resource: str, field: str, value: Any, kind: str = "pages",
                      filters: Filters = None) -> Optional[Item]:
        """Returns the first item whose ``field`` equals ``value``, or None.

        Issues exactly one request; later pages are never scanned.
        """
        if kind not in ITEM_KINDS:
            raise ValueError(f"kind must be one of {ITEM_KINDS}, got '{kind}'")
        query_filters: Dict[str, Any] = dict(filters or {})
        query_filters["type"] = kind
        query = Query(filters=query_filters, find_by=(field, value), limit=1)
        envelope = await self.page_fetcher.fetch_query(resource, query)
        if not envelope.items:
            logger.debug(f"No {kind} in '{resource}' with {field}={value!r}")
            return None
        return envelope.items[0]

    async def find_page_by(self, resource: str, field: str, value: Any) -> Optional[Item]:
        return await self.find_by(resource, field, value, "pages")

    async def find_row_by(self, resource: str, field: str, value: Any) -> Optional[Item]:
        return await self.find_by(resource, field, value, "rows")

    async def lookup(self, resource: str, item_id: ItemId) -> LookupResult:
        """Fetches an item by id, reporting absence and failure separately."""
        try:
            payload = await self.get(resource, item_id)
        except ApiError as e:
            if e.kind is ErrorKind.NOT_FOUND:
                return NotFound(e)
            logger.warning(f"Lookup of '{resource}/{item_id}' failed: {e.kind.value}: {e}")
            return LookupFailed(e)
        if isinstance(payload, Mapping) and "data" in payload:
            payload = payload["data"]
        return Found(payload)

    async def exists(self, resource: str, item_id: ItemId) -> bool:
        """True if the item exists, False on 404.

        Raises:
            ApiError: When the lookup itself failed (auth, network, server).
        """
        return (await self.lookup(resource, item_id)).exists

    # --- Navigation ---

    async def next_page(self, envelope: PageEnvelope, filters: Filters = None,
                        resource: Optional[str] = None) -> Optional[PageEnvelope]:
        return await self.page_fetcher.next_page(envelope, Query(filters=filters or {}), resource)

    async def prev_page(self, envelope: PageEnvelope, filters: Filters = None,
                        resource: Optional[str] = None) -> Optional[PageEnvelope]:
        return await self.page_fetcher.prev_page(envelope, Query(filters=filters or {}), resource)

    @staticmethod
    def has_more_pages(envelope: PageEnvelope) -> bool:
        return PageFetcher.has_more_pages(envelope)

    @staticmethod
    def is_last_page(envelope: PageEnvelope) -> bool:
        return PageFetcher.is_last_page(envelope)

    # --- Database helpers ---
    # Rows carry the name of their source database in the 'database' field.

    async def get_rows_by_database(self, resource: str, database_name: str) -> List[Item]:
        """First page of rows belonging to ``database_name``."""
        envelope = await self.list(resource, {"type": "rows", "database": database_name})
        return envelope.items

    async def get_rows_by_database_paginated(self, resource: str, database_name: str, page: int = 1,
                                             limit: int = DEFAULT_LIST_LIMIT) -> PageEnvelope:
        return await self.paginate(resource, page, limit, {"type": "rows", "database": database_name})

    async def get_all_rows_by_database(self, resource: str, database_name: str,
                                       filters: Filters = None) -> List[Item]:
        query_filters: Dict[str, Any] = dict(filters or {})
        query_filters.update({"type": "rows", "database": database_name})
        return await self.get_all_pages(resource, query_filters)

    async def get_databases(self, resource: str) -> List[Item]:
        envelope = await self.list(resource, {"type": "databases"})
        return envelope.items

    async def get_database_names(self, resource: str) -> List[str]:
        names = []
        for database in await self.get_databases(resource):
            name = database.get("title") or database.get("name")
            if name and name not in names:
                names.append(name)
        return names

    async def get_row_by_field(self, resource: str, database_name: str, field: str,
                               value: Any) -> Optional[Item]:
        return await self.find_by(resource, field, value, "rows", {"database": database_name})

    async def get_all_rows(self, resource: str) -> List[Item]:
        """Every row of every database in the project."""
        return await self.get_all_pages(resource, {"type": "rows"})


class EndpointHelper:
    """DataService operations bound to one resource name."""

    def __init__(self, data_service: DataService, resource: ResourceName):
        if not resource:
            raise ValueError("Endpoint name must not be empty")
        self.data_service = data_service
        self.resource = resource

    def __repr__(self) -> str:
        return f"EndpointHelper({self.resource!r})"

    async def list(self, filters: Filters = None) -> PageEnvelope:
        return await self.data_service.list(self.resource, filters)

    async def get(self, item_id: ItemId) -> Any:
        return await self.data_service.get(self.resource, item_id)

    async def paginate(self, page: int = 1, limit: int = DEFAULT_LIST_LIMIT,
                       filters: Filters = None) -> PageEnvelope:
        return await self.data_service.paginate(self.resource, page, limit, filters)

    async def filter(self, filters: Mapping[str, Any]) -> PageEnvelope:
        return await self.data_service.filter(self.resource, filters)

    async def sort_by(self, field: str, direction: str = "asc", filters: Filters = None) -> PageEnvelope:
        return await self.data_service.sort_by(self.resource, field, direction, filters)

    async def search(self, text: str, filters: Filters = None) -> PageEnvelope:
        return await self.data_service.search(self.resource, text, filters)

    async def recent(self, limit: int = 10) -> PageEnvelope:
        return await self.data_service.recent(self.resource, limit)

    async def list_fields(self, fields: Sequence[str], filters: Filters = None) -> PageEnvelope:
        return await self.data_service.list_fields(self.resource, fields, filters)

    async def list_lightweight(self, filters: Filters = None) -> PageEnvelope:
        return await self.data_service.list_lightweight(self.resource, filters)

    async def get_all_pages(self, filters: Filters = None, **options: Any) -> List[Item]:
        return await self.data_service.get_all_pages(self.resource, filters, **options)

    async def get_all_pages_concurrent(self, filters: Filters = None, **options: Any) -> List[Item]:
        return await self.data_service.get_all_pages_concurrent(self.resource, filters, **options)

    async def get_all_pages_optimized(self, filters: Filters = None, **options: Any) -> List[Item]:
        return await self.data_service.get_all_pages_optimized(self.resource, filters, **options)

    async def find_by(self, field: str, value: Any, kind: str = "pages") -> Optional[Item]:
        return await self.data_service.find_by(self.resource, field, value, kind)

    async def find_page_by(self, field: str, value: Any) -> Optional[Item]:
        return await self.data_service.find_page_by(self.resource, field, value)

    async def find_row_by(self, field: str, value: Any) -> Optional[Item]:
        return await self.data_service.find_row_by(self.resource, field, value)

    async def lookup(self, item_id: ItemId) -> LookupResult:
        return await self.data_service.lookup(self.resource, item_id)

    async def exists(self, item_id: ItemId) -> bool:
        return await self.data_service.exists(self.resource, item_id)

    async def next_page(self, envelope: PageEnvelope, filters: Filters = None) -> Optional[PageEnvelope]:
        return await self.data_service.next_page(envelope, filters, self.resource)

    async def prev_page(self, envelope: PageEnvelope, filters: Filters = None) -> Optional[PageEnvelope]:
        return await self.data_service.prev_page(envelope, filters, self.resource)

    def has_more_pages(self, envelope: PageEnvelope) -> bool:
        return self.data_service.has_more_pages(envelope)

    def is_last_page(self, envelope: PageEnvelope) -> bool:
        return self.data_service.is_last_page(envelope)

    async def get_rows_by_database(self, database_name: str) -> List[Item]:
        return await self.data_service.get_rows_by_database(self.resource, database_name)

    async def get_rows_by_database_paginated(self, database_name: str, page: int = 1,
                                             limit: int = DEFAULT_LIST_LIMIT) -> PageEnvelope:
        return await self.data_service.get_rows_by_database_paginated(self.resource, database_name, page, limit)

    async def get_all_rows_by_database(self, database_name: str, filters: Filters = None) -> List[Item]:
        return await self.data_service.get_all_rows_by_database(self.resource, database_name, filters)

    async def get_databases(self) -> List[Item]:
        return await self.data_service.get_databases(self.resource)

    async def get_database_names(self) -> List[str]:
        return await self.data_service.get_database_names(self.resource)

    async def get_row_by_field(self, database_name: str, field: str, value: Any) -> Optional[Item]:
        return await self.data_service.get_row_by_field(self.resource, database_name, field, value)

    async def get_all_rows(self) -> List[Item]:
        return await self.data_service.get_all_rows(self.resource)
