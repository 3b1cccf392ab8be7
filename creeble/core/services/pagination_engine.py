"""Core service that turns a paged endpoint into one complete, ordered collection.

Three traversal strategies share the ``collect_all`` contract:

* sequential: page 1, 2, 3, ... until the server says stop. Always correct,
  and the fallback for the other two.
* concurrent: fetch page 1 to learn ``last_page``, then fetch the remaining
  pages in fixed-size batches of parallel requests. Any unrecovered batch
  failure restarts the whole traversal sequentially.
* auto: probe the size of the collection with a minimal request, refuse
  collections larger than ``max_items``, then pick one of the above.

Item order always follows page order, regardless of which request in a batch
completes first.
"""

import asyncio
import logging
from typing import List, Optional

from creeble.core.services.page_fetcher import PageFetcher
from creeble.domain.events.api_events import (
    ConcurrentFallbackTriggered,
    DomainEvent,
    EventHook,
    PageFetched,
    StrategySelected,
)
from creeble.domain.models.common import Item, PageEnvelope, Query
from creeble.domain.models.errors import ApiError
from creeble.domain.models.pagination import SMALL_COLLECTION_PAGES, PaginationOptions, Strategy

logger = logging.getLogger(__name__)


class PaginationEngine:
    """Collects every item of a resource using a configurable strategy."""

    def __init__(self, page_fetcher: PageFetcher, on_event: Optional[EventHook] = None):
        """Initializes the PaginationEngine.

        Args:
            page_fetcher: Fetcher used for every page request. Wrap it with a
                RetryPolicy to retry individual pages.
            on_event: Optional hook receiving PageFetched, StrategySelected and
                ConcurrentFallbackTriggered events.
        """
        self.page_fetcher = page_fetcher
        self.on_event = on_event

    async def collect_all(self, resource: str, query: Optional[Query] = None,
                          options: Optional[PaginationOptions] = None) -> List[Item]:
        """Fetches every page of ``resource`` and returns the concatenated items.

        Raises:
            ApiError: The classified failure that stopped the traversal, or an
                OVERSIZED error when the collection exceeds ``max_items``.
        """
        options = options or PaginationOptions()
        query = query or Query()
        logger.info(f"Collecting '{resource}' using {options.strategy.value} strategy (page_size={options.page_size})")

        if options.strategy is Strategy.CONCURRENT:
            return await self.collect_concurrent(resource, query, options)
        if options.strategy is Strategy.AUTO:
            return await self.collect_auto(resource, query, options)
        return await self.collect_sequential(resource, query, options)

    async def collect_sequential(self, resource: str, query: Query, options: PaginationOptions) -> List[Item]:
        page_size = options.page_size
        items: List[Item] = []
        page = 1
        while True:
            envelope = await self.page_fetcher.fetch_page(resource, page, page_size, query)
            items.extend(envelope.items)
            self._page_fetched(resource, page, envelope)
            self._check_cap(envelope, len(items), options.max_items)

            pagination = envelope.pagination
            if pagination is None:
                # Legacy response: a short page means there is nothing after it
                if len(envelope.items) < page_size:
                    break
                page += 1
                continue

            if not pagination.has_more_pages:
                break
            next_page = pagination.next_page
            if next_page is None or next_page <= page:
                logger.warning(
                    f"'{resource}' reported more pages after page {page} but next_page={next_page}; stopping"
                )
                break
            page = next_page

        logger.info(f"Collected {len(items)} item(s) from '{resource}' sequentially (last page {page})")
        return items

    async def collect_concurrent(self, resource: str, query: Query, options: PaginationOptions) -> List[Item]:
        page_size = options.page_size
        first = await self.page_fetcher.fetch_page(resource, 1, page_size, query)
        self._page_fetched(resource, 1, first)
        self._check_cap(first, len(first.items), options.max_items)

        pagination = first.pagination
        if pagination is None or not pagination.has_more_pages:
            return list(first.items)

        items: List[Item] = list(first.items)
        remaining = list(range(2, pagination.last_page + 1))
        concurrency = options.concurrency
        for start in range(0, len(remaining), concurrency):
            batch = remaining[start:start + concurrency]
            logger.debug(f"Fetching '{resource}' pages {batch[0]}-{batch[-1]} concurrently")
            results = await asyncio.gather(
                *(self.page_fetcher.fetch_page(resource, page, page_size, query) for page in batch),
                return_exceptions=True,
            )

            failures = []
            for page, result in zip(batch, results):
                if isinstance(result, Exception):
                    failures.append((page, result))
                elif isinstance(result, BaseException):
                    raise result
            if failures:
                return await self._fall_back_to_sequential(resource, query, options, failures)

            # Merge only once the whole batch has completed, in page order
            for page, envelope in zip(batch, results):
                items.extend(envelope.items)
                self._page_fetched(resource, page, envelope)
            self._check_cap(first, len(items), options.max_items)

        logger.info(
            f"Collected {len(items)} item(s) from '{resource}' concurrently "
            f"({pagination.last_page} pages, concurrency={concurrency})"
        )
        return items

    async def collect_auto(self, resource: str, query: Query, options: PaginationOptions) -> List[Item]:
        probe = await self.page_fetcher.fetch_page(resource, 1, 1, query.with_fields("id"))
        pagination = probe.pagination
        if pagination is None:
            logger.info(f"'{resource}' is not paginated; using sequential strategy")
            return await self.collect_sequential(resource, query, options)

        total = pagination.total
        if options.max_items is not None and total > options.max_items:
            raise ApiError.oversized(total, options.max_items)

        last_page = max(1, -(-total // options.page_size))
        if last_page <= SMALL_COLLECTION_PAGES or not options.prefer_concurrent:
            strategy = Strategy.SEQUENTIAL
        else:
            strategy = Strategy.CONCURRENT
        logger.info(f"Auto-selected {strategy.value} strategy for '{resource}' ({total} items, {last_page} pages)")
        self._emit(StrategySelected(resource=resource, strategy=strategy.value, total=total, last_page=last_page))

        if strategy is Strategy.CONCURRENT:
            return await self.collect_concurrent(resource, query, options)
        return await self.collect_sequential(resource, query, options)

    async def _fall_back_to_sequential(self, resource: str, query: Query, options: PaginationOptions,
                                       failures: list) -> List[Item]:
        failed_pages = [page for page, _ in failures]
        reason = "; ".join(f"page {page}: {error}" for page, error in failures)
        logger.warning(
            f"Concurrent fetch of '{resource}' failed ({reason}); restarting sequentially from page 1"
        )
        self._emit(ConcurrentFallbackTriggered(resource=resource, failed_pages=failed_pages, reason=reason))
        return await self.collect_sequential(resource, query, options)

    def _check_cap(self, envelope: PageEnvelope, collected: int, max_items: Optional[int]) -> None:
        """Raises OVERSIZED instead of silently truncating a collection."""
        if max_items is None:
            return
        total = envelope.pagination.total if envelope.pagination is not None else collected
        if total > max_items or collected > max_items:
            raise ApiError.oversized(max(total, collected), max_items)

    def _page_fetched(self, resource: str, page: int, envelope: PageEnvelope) -> None:
        last_page = envelope.pagination.last_page if envelope.pagination is not None else None
        self._emit(PageFetched(resource=resource, page=page, item_count=len(envelope.items), last_page=last_page))

    def _emit(self, event: DomainEvent) -> None:
        if self.on_event is None:
            return
        try:
            self.on_event(event)
        except Exception as e:
            logger.error(f"Event hook failed for {type(event).__name__}: {e}", exc_info=True)
