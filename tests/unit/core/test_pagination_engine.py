import pytest

from creeble.core.services.page_fetcher import PageFetcher
from creeble.core.services.pagination_engine import PaginationEngine
from creeble.domain.events.api_events import ConcurrentFallbackTriggered, PageFetched, StrategySelected
from creeble.domain.models.common import Query
from creeble.domain.models.errors import ApiError, ErrorKind
from creeble.domain.models.pagination import PaginationOptions, Strategy


@pytest.fixture
def events():
    return []


@pytest.fixture
def build_engine(fake_transport_factory, retry_policy, events):
    def factory(handler, delay=None):
        transport = fake_transport_factory(handler, delay=delay)
        engine = PaginationEngine(PageFetcher(transport, retry_policy), on_event=events.append)
        return engine, transport
    return factory


@pytest.mark.asyncio
async def test_sequential_47_items_in_two_fetches(build_engine, paged_resource_factory, events):
    resource = paged_resource_factory(47)
    engine, transport = build_engine(resource)
    envelopes = []
    fetch_page = engine.page_fetcher.fetch_page

    async def recording_fetch_page(*args, **kwargs):
        envelope = await fetch_page(*args, **kwargs)
        envelopes.append(envelope)
        return envelope

    engine.page_fetcher.fetch_page = recording_fetch_page

    items = await engine.collect_all("posts", Query(), PaginationOptions(page_size=25))

    assert items == resource.items
    assert transport.pages_requested() == [1, 2]
    fetched = [event for event in events if isinstance(event, PageFetched)]
    assert [(event.page, event.item_count) for event in fetched] == [(1, 25), (2, 22)]
    assert [len(envelope.items) for envelope in envelopes] == [25, 22]
    assert [envelope.pagination.is_last_page for envelope in envelopes] == [False, True]


@pytest.mark.asyncio
@pytest.mark.parametrize("total", [0, 1, 24, 25, 26, 100])
@pytest.mark.parametrize("page_size", [1, 7, 25])
async def test_sequential_returns_every_item_once(build_engine, paged_resource_factory, total, page_size):
    resource = paged_resource_factory(total)
    engine, transport = build_engine(resource)

    items = await engine.collect_all("posts", options=PaginationOptions(page_size=page_size))

    assert items == resource.items
    assert len(transport.calls) == max(1, -(-total // page_size))


@pytest.mark.asyncio
@pytest.mark.parametrize("total", [0, 47, 100, 101])
@pytest.mark.parametrize("concurrency", [1, 2, 3, 5])
async def test_concurrent_matches_sequential(build_engine, paged_resource_factory, total, concurrency):
    resource = paged_resource_factory(total)
    sequential_engine, _ = build_engine(resource)
    concurrent_engine, _ = build_engine(resource)

    sequential = await sequential_engine.collect_all("posts", options=PaginationOptions())
    concurrent = await concurrent_engine.collect_all(
        "posts", options=PaginationOptions(strategy=Strategy.CONCURRENT, concurrency=concurrency)
    )

    assert concurrent == sequential == resource.items


@pytest.mark.asyncio
async def test_concurrent_keeps_page_order_when_later_pages_finish_first(build_engine, paged_resource_factory):
    resource = paged_resource_factory(100)
    # Page 4 answers first, page 2 last
    engine, transport = build_engine(resource, delay=lambda call: 0.01 * (5 - call.page) if call.page > 1 else 0)

    items = await engine.collect_all("posts", options=PaginationOptions(strategy="concurrent", concurrency=3))

    assert items == resource.items
    assert len(transport.calls) == 4
    assert sorted(transport.pages_requested()) == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_concurrent_falls_back_to_sequential_after_batch_failure(
    build_engine, paged_resource_factory, events, recording_sleep
):
    # Page 3 fails on every attempt of the concurrent pass (1 try + 3 retries)
    resource = paged_resource_factory(100, failures={3: [ApiError.server("boom", 500) for _ in range(4)]})
    engine, transport = build_engine(resource)

    items = await engine.collect_all("posts", options=PaginationOptions(strategy=Strategy.CONCURRENT))

    assert items == resource.items
    fallbacks = [event for event in events if isinstance(event, ConcurrentFallbackTriggered)]
    assert len(fallbacks) == 1
    assert fallbacks[0].failed_pages == [3]
    # Sequential restart from page 1 after the failed batch
    assert transport.pages_requested()[-4:] == [1, 2, 3, 4]
    assert len(recording_sleep.delays) == 3


@pytest.mark.asyncio
async def test_concurrent_first_page_failure_propagates(build_engine, paged_resource_factory):
    resource = paged_resource_factory(100, failures={1: [ApiError.unauthorized("Invalid API key")]})
    engine, transport = build_engine(resource)

    with pytest.raises(ApiError) as exc_info:
        await engine.collect_all("posts", options=PaginationOptions(strategy=Strategy.CONCURRENT))

    assert exc_info.value.kind is ErrorKind.UNAUTHORIZED
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_sequential_error_propagates_without_partial_result(build_engine, paged_resource_factory):
    resource = paged_resource_factory(60, failures={2: [ApiError.validation("bad filter", {})]})
    engine, _ = build_engine(resource)

    with pytest.raises(ApiError) as exc_info:
        await engine.collect_all("posts")

    assert exc_info.value.kind is ErrorKind.VALIDATION


@pytest.mark.asyncio
@pytest.mark.parametrize("total, expected_calls", [(30, 2), (50, 3), (10, 1)])
async def test_sequential_without_pagination_stops_on_short_page(
    build_engine, paged_resource_factory, total, expected_calls
):
    resource = paged_resource_factory(total, paginated=False)
    engine, transport = build_engine(resource)

    items = await engine.collect_all("posts", options=PaginationOptions(page_size=25))

    assert items == resource.items
    assert len(transport.calls) == expected_calls


@pytest.mark.asyncio
async def test_sequential_stops_when_next_page_does_not_advance(build_engine):
    def handler(call):
        return {
            "data": [{"id": str(call.page)}],
            "pagination": {"current_page": 1, "per_page": 1, "total": 5, "last_page": 5,
                           "has_more_pages": True, "next_page": 1},
        }

    engine, transport = build_engine(handler)

    items = await engine.collect_all("posts", options=PaginationOptions(page_size=1))

    assert items == [{"id": "1"}]
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_auto_refuses_oversized_collection_after_probe_only(build_engine, paged_resource_factory):
    engine, transport = build_engine(paged_resource_factory(1000))

    with pytest.raises(ApiError) as exc_info:
        await engine.collect_all("posts", options=PaginationOptions(strategy=Strategy.AUTO, max_items=500))

    error = exc_info.value
    assert error.kind is ErrorKind.OVERSIZED
    assert error.total == 1000
    assert error.max_items == 500
    assert len(transport.calls) == 1
    assert transport.calls[0].params["fields"] == "id"
    assert transport.calls[0].params["limit"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("total, prefer_concurrent, expected", [
    (60, True, "sequential"),
    (75, True, "sequential"),
    (100, True, "concurrent"),
    (100, False, "sequential"),
])
async def test_auto_selects_strategy_from_probe(
    build_engine, paged_resource_factory, events, total, prefer_concurrent, expected
):
    resource = paged_resource_factory(total)
    engine, transport = build_engine(resource)

    items = await engine.collect_all(
        "posts", options=PaginationOptions(strategy=Strategy.AUTO, prefer_concurrent=prefer_concurrent)
    )

    assert items == resource.items
    selected = [event for event in events if isinstance(event, StrategySelected)]
    assert len(selected) == 1
    assert selected[0].strategy == expected
    assert selected[0].total == total
    # One probe plus one request per page
    assert len(transport.calls) == 1 + -(-total // 25)


@pytest.mark.asyncio
async def test_auto_without_pagination_uses_sequential(build_engine, paged_resource_factory):
    resource = paged_resource_factory(30, paginated=False)
    engine, _ = build_engine(resource)

    items = await engine.collect_all("posts", options=PaginationOptions(strategy=Strategy.AUTO))

    assert items == resource.items


@pytest.mark.asyncio
@pytest.mark.parametrize("strategy", [Strategy.SEQUENTIAL, Strategy.CONCURRENT])
async def test_max_items_raises_instead_of_truncating(build_engine, paged_resource_factory, strategy):
    engine, transport = build_engine(paged_resource_factory(100))

    with pytest.raises(ApiError) as exc_info:
        await engine.collect_all("posts", options=PaginationOptions(strategy=strategy, max_items=50))

    assert exc_info.value.kind is ErrorKind.OVERSIZED
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_failing_event_hook_does_not_break_traversal(fake_transport_factory, paged_resource_factory):
    def broken_hook(event):
        raise RuntimeError("listener down")

    resource = paged_resource_factory(30)
    engine = PaginationEngine(PageFetcher(fake_transport_factory(resource)), on_event=broken_hook)

    assert await engine.collect_all("posts") == resource.items


def test_options_validation():
    assert PaginationOptions(page_size=100).page_size == 25
    assert PaginationOptions(strategy="auto").strategy is Strategy.AUTO
    with pytest.raises(ValueError):
        PaginationOptions(concurrency=0)
    with pytest.raises(ValueError):
        PaginationOptions(max_items=-1)
