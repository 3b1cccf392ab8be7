"""Async client for the Creeble content API.

Fetches paginated collections with sequential, concurrent or auto-selected
traversal, retries transient failures with exponential backoff, and submits
form data.
"""

from creeble.client import Creeble
from creeble.core.services.data_service import DataService, EndpointHelper
from creeble.core.services.forms_service import FormsService, ValidationResult
from creeble.core.services.page_fetcher import PageFetcher
from creeble.core.services.pagination_engine import PaginationEngine
from creeble.core.services.projects_service import ProjectsService
from creeble.domain.events.api_events import (
    ConcurrentFallbackTriggered,
    DomainEvent,
    PageFetched,
    RetryScheduled,
    StrategySelected,
)
from creeble.domain.interfaces.transport import Transport
from creeble.domain.models.common import PageEnvelope, PaginationMeta, Query, ResponseMeta
from creeble.domain.models.errors import ApiError, ConfigurationError, ErrorKind
from creeble.domain.models.items import BaseModel, DataItem, Form, ProjectInfo
from creeble.domain.models.lookup import Found, LookupFailed, LookupResult, NotFound
from creeble.domain.models.pagination import PaginationOptions, Strategy
from creeble.infrastructure.config.settings import ClientSettings, load_settings
from creeble.infrastructure.http.configuration import RequestSpec, TransportConfiguration
from creeble.infrastructure.http.httpx_transport import HttpxTransport
from creeble.infrastructure.monitoring.logger_setup import setup_logging
from creeble.infrastructure.resilience.retry_policy import RetryPolicy

__version__ = "1.0.0"

__all__ = [
    "ApiError",
    "BaseModel",
    "ClientSettings",
    "ConcurrentFallbackTriggered",
    "ConfigurationError",
    "Creeble",
    "DataItem",
    "DataService",
    "DomainEvent",
    "EndpointHelper",
    "ErrorKind",
    "Form",
    "FormsService",
    "Found",
    "HttpxTransport",
    "LookupFailed",
    "LookupResult",
    "NotFound",
    "PageEnvelope",
    "PageFetched",
    "PageFetcher",
    "PaginationEngine",
    "PaginationMeta",
    "PaginationOptions",
    "ProjectInfo",
    "ProjectsService",
    "Query",
    "RequestSpec",
    "ResponseMeta",
    "RetryPolicy",
    "RetryScheduled",
    "StrategySelected",
    "Strategy",
    "Transport",
    "TransportConfiguration",
    "ValidationResult",
    "load_settings",
    "setup_logging",
]
