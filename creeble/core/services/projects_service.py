"""Core service for project-level information: info, schema and statistics."""

import logging
from typing import Any, List, Mapping, Optional

from creeble.core.services.page_fetcher import resource_path
from creeble.domain.interfaces.transport import Transport
from creeble.domain.models.errors import ApiError, ErrorKind
from creeble.domain.models.lookup import Found, LookupFailed, LookupResult, NotFound
from creeble.infrastructure.resilience.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)


class ProjectsService:
    """Reads metadata about a published project endpoint."""

    def __init__(self, transport: Transport, retry_policy: Optional[RetryPolicy] = None):
        self.transport = transport
        self.retry_policy = retry_policy

    async def _get(self, endpoint: str, section: str) -> Any:
        path = resource_path(endpoint, section)

        async def operation() -> Any:
            return await self.transport.get(path)

        if self.retry_policy is None:
            return await operation()
        return await self.retry_policy.execute(operation, f"GET {path}")

    async def info(self, endpoint: str) -> Any:
        return await self._get(endpoint, "info")

    async def schema(self, endpoint: str) -> Any:
        return await self._get(endpoint, "schema")

    async def stats(self, endpoint: str) -> Any:
        return await self._get(endpoint, "stats")

    async def fields(self, endpoint: str) -> List[Any]:
        """Field definitions from the project schema; empty if none."""
        schema = await self.schema(endpoint)
        if isinstance(schema, Mapping):
            return list(schema.get("fields") or [])
        return []

    async def lookup(self, endpoint: str) -> LookupResult:
        try:
            return Found(await self.info(endpoint))
        except ApiError as e:
            if e.kind is ErrorKind.NOT_FOUND:
                return NotFound(e)
            logger.warning(f"Project lookup of '{endpoint}' failed: {e.kind.value}: {e}")
            return LookupFailed(e)

    async def exists(self, endpoint: str) -> bool:
        """True if the endpoint is published and accessible, False on 404.

        Raises:
            ApiError: When the check itself failed.
        """
        return (await self.lookup(endpoint)).exists
