"""Composition root of the library: the ``Creeble`` client.

Wires the transport, retry policy, page fetcher, pagination engine and the
endpoint services together. Every collaborator can be injected, which is how
the tests substitute a fake transport and a no-op sleep.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from creeble.core.services.data_service import DataService, EndpointHelper
from creeble.core.services.forms_service import FormsService
from creeble.core.services.page_fetcher import PageFetcher
from creeble.core.services.pagination_engine import PaginationEngine
from creeble.core.services.projects_service import ProjectsService
from creeble.domain.events.api_events import EventHook
from creeble.domain.interfaces.transport import Transport
from creeble.domain.models.common import ApiKey, Item, PageEnvelope, ResourceName
from creeble.domain.models.errors import ConfigurationError
from creeble.infrastructure.config.settings import ClientSettings
from creeble.infrastructure.http.configuration import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_MS, TransportConfiguration
from creeble.infrastructure.http.httpx_transport import HttpxTransport
from creeble.infrastructure.resilience.retry_policy import RetryPolicy


class Creeble:
    """Async client for the Creeble content API.

    Usage::

        async with Creeble("napi_...") as client:
            posts = await client.data.get_all_pages_optimized("blog-posts", max_items=500)
    """

    def __init__(
        self,
        api_key: Optional[ApiKey],
        base_url: str = DEFAULT_BASE_URL,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        transport: Optional[Transport] = None,
        retry_policy: Optional[RetryPolicy] = None,
        on_event: Optional[EventHook] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initializes the client.

        Args:
            api_key: The project API key ('napi_...'). Required.
            base_url: API host; requests go to '<base_url>/api'.
            timeout_ms: Per-request deadline for the default transport.
            transport: Replaces the default HttpxTransport.
            retry_policy: Replaces the default RetryPolicy (3 retries,
                1s base delay, 30s cap).
            on_event: Receives retry and traversal events.
            logger: Logger for client-level messages.

        Raises:
            ConfigurationError: The API key is missing, or the transport
                settings are invalid.
        """
        if not api_key:
            raise ConfigurationError("API key is required")
        self.logger = logger or logging.getLogger(__name__)

        if transport is None:
            try:
                configuration = TransportConfiguration(api_key=api_key, base_url=base_url, timeout_ms=timeout_ms)
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
            transport = HttpxTransport(configuration)
        self.transport = transport
        self.retry_policy = retry_policy or RetryPolicy(on_retry=on_event)

        self.page_fetcher = PageFetcher(self.transport, self.retry_policy)
        self.pagination_engine = PaginationEngine(self.page_fetcher, on_event=on_event)
        self.data = DataService(self.page_fetcher, self.pagination_engine)
        self.projects = ProjectsService(self.transport, self.retry_policy)
        self.forms = FormsService(self.transport)
        self.logger.debug(f"Creeble client initialized with {type(self.transport).__name__}")

    @classmethod
    def from_settings(cls, settings: ClientSettings, transport: Optional[Transport] = None,
                      on_event: Optional[EventHook] = None) -> "Creeble":
        """Builds a client from resolved settings (see ``load_settings``).

        Settings are validated before the default HttpxTransport is opened.
        """
        api_key = ApiKey(settings.require_api_key())
        retry_policy = settings.retry_policy(on_retry=on_event)
        if transport is None:
            transport = HttpxTransport(settings.transport_configuration())
        return cls(
            api_key,
            base_url=settings.base_url,
            timeout_ms=settings.timeout_ms,
            transport=transport,
            retry_policy=retry_policy,
            on_event=on_event,
        )

    async def __aenter__(self) -> "Creeble":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def _get(self, path: str) -> Any:
        async def operation() -> Any:
            return await self.transport.get(path)

        return await self.retry_policy.execute(operation, f"GET {path}")

    async def ping(self) -> Any:
        """Tests the API connection."""
        return await self._get("/ping")

    async def version(self) -> Any:
        return await self._get("/version")

    def endpoint(self, name: ResourceName) -> EndpointHelper:
        """Returns the data operations bound to one endpoint."""
        return EndpointHelper(self.data, name)

    # --- Database helpers ---

    async def get_rows_by_database(self, endpoint: str, database_name: str) -> List[Item]:
        return await self.data.get_rows_by_database(endpoint, database_name)

    async def get_rows_by_database_paginated(self, endpoint: str, database_name: str, page: int = 1,
                                             limit: int = 20) -> PageEnvelope:
        return await self.data.get_rows_by_database_paginated(endpoint, database_name, page, limit)

    async def get_all_rows_by_database(self, endpoint: str, database_name: str,
                                       filters: Optional[Mapping[str, Any]] = None) -> List[Item]:
        return await self.data.get_all_rows_by_database(endpoint, database_name, filters)

    async def get_databases(self, endpoint: str) -> List[Item]:
        return await self.data.get_databases(endpoint)

    async def get_database_names(self, endpoint: str) -> List[str]:
        return await self.data.get_database_names(endpoint)

    async def get_row_by_field(self, endpoint: str, database_name: str, field: str, value: Any) -> Optional[Item]:
        return await self.data.get_row_by_field(endpoint, database_name, field, value)

    async def get_all_rows(self, endpoint: str) -> List[Item]:
        return await self.data.get_all_rows(endpoint)

    @staticmethod
    def simplify_item(item: Mapping[str, Any]) -> Dict[str, Any]:
        """Flattens ``properties`` into the top level.

        Property objects of the form ``{"type": ..., "value": ...}`` are
        reduced to their value. Top-level keys win over same-named properties.
        """
        simplified = {key: value for key, value in item.items() if key != "properties"}
        properties = item.get("properties") or {}
        for key, prop in properties.items():
            if key in simplified:
                continue
            if isinstance(prop, Mapping) and "value" in prop:
                simplified[key] = prop["value"]
            else:
                simplified[key] = prop
        return simplified
