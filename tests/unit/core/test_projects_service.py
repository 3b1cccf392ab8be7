import pytest

from creeble.core.services.projects_service import ProjectsService
from creeble.domain.models.errors import ApiError


@pytest.fixture
def project_handler():
    def handler(call):
        if call.path == "/v1/blog/info":
            return {"id": "p1", "name": "Blog", "status": "active"}
        if call.path == "/v1/blog/schema":
            return {"fields": [{"name": "title"}, {"name": "slug"}]}
        if call.path == "/v1/blog/stats":
            return {"total_items": 42}
        return ApiError.not_found("Endpoint not found")
    return handler


@pytest.mark.asyncio
async def test_project_endpoints(fake_transport_factory, project_handler):
    service = ProjectsService(fake_transport_factory(project_handler))

    assert (await service.info("blog"))["name"] == "Blog"
    assert (await service.stats("blog")) == {"total_items": 42}
    assert await service.fields("blog") == [{"name": "title"}, {"name": "slug"}]


@pytest.mark.asyncio
async def test_fields_default_to_empty(fake_transport_factory):
    service = ProjectsService(fake_transport_factory(lambda call: {"version": 2}))

    assert await service.fields("blog") == []


@pytest.mark.asyncio
async def test_exists(fake_transport_factory, project_handler, retry_policy):
    service = ProjectsService(fake_transport_factory(project_handler), retry_policy)

    assert await service.exists("blog") is True
    assert await service.exists("missing") is False


@pytest.mark.asyncio
async def test_exists_propagates_auth_failure(fake_transport_factory):
    service = ProjectsService(fake_transport_factory(lambda call: ApiError.unauthorized()))

    with pytest.raises(ApiError):
        await service.exists("blog")
