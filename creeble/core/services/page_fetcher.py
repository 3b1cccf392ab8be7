"""Core service that fetches single pages of a collection.

Builds the page request, sends it through the Transport (optionally wrapped
by a RetryPolicy) and normalizes the response into a PageEnvelope.
"""

import logging
from typing import Any, Mapping, Optional

from creeble.domain.interfaces.transport import Transport
from creeble.domain.models.common import (
    ItemId,
    PageEnvelope,
    PaginationMeta,
    Query,
    ResponseMeta,
)
from creeble.infrastructure.resilience.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)


def resource_path(resource: str, *parts: str) -> str:
    """Builds '/v1/<resource>[/<part>...]'."""
    if not resource:
        raise ValueError("Resource name must not be empty")
    return "/".join(["/v1", resource.strip("/"), *(str(part) for part in parts)])


def normalize_envelope(raw: Any) -> PageEnvelope:
    """Converts a raw list response into a PageEnvelope.

    ``data`` may be a list, a single object or missing. A response that is
    itself a bare list is treated as the item list of a legacy endpoint.
    """
    if isinstance(raw, list):
        return PageEnvelope(items=list(raw))
    if not isinstance(raw, Mapping):
        logger.warning(f"Unexpected response payload type {type(raw).__name__}; treating as empty page")
        return PageEnvelope(items=[])

    data = raw.get("data")
    if data is None:
        items = []
    elif isinstance(data, list):
        items = list(data)
    else:
        items = [data]

    pagination_raw = raw.get("pagination")
    pagination = PaginationMeta.from_dict(pagination_raw) if isinstance(pagination_raw, Mapping) else None

    meta_raw = raw.get("meta")
    meta = None
    if isinstance(meta_raw, Mapping):
        meta = ResponseMeta(
            endpoint=meta_raw.get("endpoint"),
            request_id=meta_raw.get("request_id"),
            response_time_ms=meta_raw.get("response_time_ms"),
        )
    return PageEnvelope(items=items, pagination=pagination, meta=meta)


class PageFetcher:
    """Issues "page N of size L" requests for a resource."""

    def __init__(self, transport: Transport, retry_policy: Optional[RetryPolicy] = None):
        """Initializes the PageFetcher.

        Args:
            transport: Transport used for every request.
            retry_policy: Wraps each fetch when given. Fetches are idempotent
                GETs, so retrying them is safe.
        """
        self.transport = transport
        self.retry_policy = retry_policy

    async def _get(self, path: str, params: Mapping[str, Any], context: str) -> Any:
        async def operation() -> Any:
            return await self.transport.get(path, params)

        if self.retry_policy is None:
            return await operation()
        return await self.retry_policy.execute(operation, context)

    async def fetch_page(self, resource: str, page_number: int, page_size: int,
                         query: Optional[Query] = None) -> PageEnvelope:
        """Fetches one page and normalizes it.

        Args:
            resource: Collection name.
            page_number: 1-based page to fetch.
            page_size: Requested number of items per page.
            query: Filters, sort, fields and lookups to merge into the request.

        Returns:
            The normalized page.
        """
        if page_number < 1:
            raise ValueError(f"page_number must be >= 1, got {page_number}")
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        params = (query or Query()).with_page(page_number, page_size).to_params()
        path = resource_path(resource)
        raw = await self._get(path, params, f"GET {path} page {page_number}")
        envelope = normalize_envelope(raw)
        logger.debug(
            f"Fetched {resource} page {page_number}: {len(envelope.items)} item(s), "
            f"paginated={envelope.is_paginated}"
        )
        return envelope

    async def fetch_raw(self, resource: str, query: Optional[Query] = None) -> Any:
        """Lists a resource and returns the raw payload, without paging parameters."""
        path = resource_path(resource)
        return await self._get(path, (query or Query()).to_params(), f"GET {path}")

    async def fetch_one(self, resource: str, item_id: ItemId) -> Any:
        """Fetches a single item by id; returns the raw payload."""
        path = resource_path(resource, str(item_id))
        return await self._get(path, {}, f"GET {path}")

    async def fetch_query(self, resource: str, query: Query) -> PageEnvelope:
        """Fetches using exactly the paging in ``query`` and normalizes the result."""
        return normalize_envelope(await self.fetch_raw(resource, query))

    # --- Navigation from an existing envelope ---

    @staticmethod
    def has_more_pages(envelope: PageEnvelope) -> bool:
        return envelope.pagination is not None and envelope.pagination.has_more_pages

    @staticmethod
    def is_last_page(envelope: PageEnvelope) -> bool:
        return envelope.pagination is None or envelope.pagination.is_last_page

    async def next_page(self, envelope: PageEnvelope, query: Optional[Query] = None,
                        resource: Optional[str] = None) -> Optional[PageEnvelope]:
        """Fetches the page after ``envelope``, or None when it is the last one.

        The resource is taken from ``meta.endpoint`` unless given explicitly.
        """
        pagination = envelope.pagination
        if pagination is None or not pagination.has_more_pages or pagination.next_page is None:
            return None
        return await self.fetch_page(self._resume_resource(envelope, resource), pagination.next_page,
                                     pagination.per_page, query)

    async def prev_page(self, envelope: PageEnvelope, query: Optional[Query] = None,
                        resource: Optional[str] = None) -> Optional[PageEnvelope]:
        """Fetches the page before ``envelope``, or None on the first page."""
        pagination = envelope.pagination
        if pagination is None or pagination.prev_page is None or pagination.current_page <= 1:
            return None
        return await self.fetch_page(self._resume_resource(envelope, resource), pagination.prev_page,
                                     pagination.per_page, query)

    @staticmethod
    def _resume_resource(envelope: PageEnvelope, resource: Optional[str]) -> str:
        if resource:
            return resource
        if envelope.meta is None or not envelope.meta.endpoint:
            raise ValueError("Envelope has no meta.endpoint; pass the resource explicitly")
        return envelope.meta.endpoint
