import pytest

from creeble.core.services.page_fetcher import PageFetcher, normalize_envelope, resource_path
from creeble.domain.models.common import Query
from creeble.domain.models.errors import ApiError


def test_resource_path():
    assert resource_path("posts") == "/v1/posts"
    assert resource_path("/posts/", "42") == "/v1/posts/42"
    assert resource_path("site", "forms", "contact") == "/v1/site/forms/contact"
    with pytest.raises(ValueError):
        resource_path("")


def test_normalize_envelope_variants():
    assert normalize_envelope([{"id": 1}]).items == [{"id": 1}]
    assert normalize_envelope({"data": {"id": 1}}).items == [{"id": 1}]
    assert normalize_envelope({"data": None}).items == []
    assert normalize_envelope("unexpected").items == []

    envelope = normalize_envelope({
        "data": [{"id": 1}],
        "pagination": {"current_page": 1, "per_page": 1, "total": 3, "total_pages": 3},
        "meta": {"endpoint": "posts", "request_id": "req-1"},
    })
    assert envelope.is_paginated
    assert envelope.pagination.last_page == 3
    assert envelope.pagination.next_page == 2
    assert envelope.meta.endpoint == "posts"


@pytest.mark.asyncio
async def test_fetch_page_builds_request(fake_transport_factory, paged_resource_factory):
    transport = fake_transport_factory(paged_resource_factory(47))
    fetcher = PageFetcher(transport)

    envelope = await fetcher.fetch_page("posts", 2, 25, Query(filters={"type": "rows"}, sort=("title", "desc")))

    call = transport.calls[0]
    assert call.method == "GET"
    assert call.path == "/v1/posts"
    assert call.params == {"type": "rows", "sort": "title", "order": "desc", "page": 2, "limit": 25}
    assert len(envelope.items) == 22
    assert envelope.pagination.is_last_page


@pytest.mark.asyncio
async def test_fetch_page_rejects_invalid_arguments(fake_transport_factory, paged_resource_factory):
    fetcher = PageFetcher(fake_transport_factory(paged_resource_factory(5)))

    with pytest.raises(ValueError):
        await fetcher.fetch_page("posts", 0, 25)
    with pytest.raises(ValueError):
        await fetcher.fetch_page("posts", 1, 0)


@pytest.mark.asyncio
async def test_fetch_page_is_retried_through_policy(fake_transport_factory, paged_resource_factory, retry_policy):
    resource = paged_resource_factory(10, failures={1: [ApiError.server("boom", 502)]})
    transport = fake_transport_factory(resource)
    fetcher = PageFetcher(transport, retry_policy)

    envelope = await fetcher.fetch_page("posts", 1, 25)

    assert len(envelope.items) == 10
    assert transport.pages_requested() == [1, 1]


@pytest.mark.asyncio
async def test_next_and_prev_page_resume_from_meta(fake_transport_factory, paged_resource_factory):
    transport = fake_transport_factory(paged_resource_factory(60))
    fetcher = PageFetcher(transport)

    first = await fetcher.fetch_page("posts", 1, 25)
    second = await fetcher.next_page(first)
    third = await fetcher.next_page(second)

    assert second.pagination.current_page == 2
    assert third.pagination.is_last_page
    assert await fetcher.next_page(third) is None

    back = await fetcher.prev_page(third)
    assert back.pagination.current_page == 2
    assert await fetcher.prev_page(first) is None
    assert transport.pages_requested() == [1, 2, 3, 2]


@pytest.mark.asyncio
async def test_next_page_without_endpoint_needs_resource(fake_transport_factory):
    transport = fake_transport_factory(lambda call: {
        "data": [{"id": "1"}],
        "pagination": {"current_page": 1, "per_page": 1, "total": 2, "last_page": 2},
    })
    fetcher = PageFetcher(transport)
    first = await fetcher.fetch_page("posts", 1, 1)

    with pytest.raises(ValueError):
        await fetcher.next_page(first)

    assert (await fetcher.next_page(first, resource="posts")) is not None


def test_page_state_helpers():
    last = normalize_envelope({"data": [], "pagination": {"current_page": 2, "per_page": 25, "total": 30}})
    unpaginated = normalize_envelope({"data": []})

    assert not PageFetcher.has_more_pages(last)
    assert PageFetcher.is_last_page(last)
    assert not PageFetcher.has_more_pages(unpaginated)
    assert PageFetcher.is_last_page(unpaginated)
