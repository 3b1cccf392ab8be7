"""Immutable transport configuration.

Interceptors are ordered tuples of plain functions applied around each call.
Adding one returns a new configuration; nothing is registered globally.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from creeble.domain.models.errors import ApiError

DEFAULT_BASE_URL = "https://creeble.io"
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_USER_AGENT = "creeble-python/1.0"


@dataclass(frozen=True)
class RequestSpec:
    """A request as seen by request interceptors."""
    method: str
    path: str
    params: Mapping[str, Any] = field(default_factory=dict)
    body: Optional[Any] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout_ms: Optional[int] = None


RequestInterceptor = Callable[[RequestSpec], RequestSpec]
ResponseInterceptor = Callable[[Any], Any]
ErrorInterceptor = Callable[[ApiError], ApiError]


@dataclass(frozen=True)
class TransportConfiguration:
    """Everything the HTTP transport needs, fixed at construction."""
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    user_agent: str = DEFAULT_USER_AGENT
    extra_headers: Mapping[str, str] = field(default_factory=dict)
    request_interceptors: Tuple[RequestInterceptor, ...] = ()
    response_interceptors: Tuple[ResponseInterceptor, ...] = ()
    error_interceptors: Tuple[ErrorInterceptor, ...] = ()

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ValueError("API key is required")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @property
    def api_root(self) -> str:
        return f"{self.base_url}/api"

    def default_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "X-API-Key": self.api_key,
        }
        headers.update(self.extra_headers)
        return headers

    def with_request_interceptor(self, interceptor: RequestInterceptor) -> "TransportConfiguration":
        return replace(self, request_interceptors=self.request_interceptors + (interceptor,))

    def with_response_interceptor(self, interceptor: ResponseInterceptor) -> "TransportConfiguration":
        return replace(self, response_interceptors=self.response_interceptors + (interceptor,))

    def with_error_interceptor(self, interceptor: ErrorInterceptor) -> "TransportConfiguration":
        return replace(self, error_interceptors=self.error_interceptors + (interceptor,))

    def apply_request_interceptors(self, spec: RequestSpec) -> RequestSpec:
        for interceptor in self.request_interceptors:
            spec = interceptor(spec)
        return spec

    def apply_response_interceptors(self, payload: Any) -> Any:
        for interceptor in self.response_interceptors:
            payload = interceptor(payload)
        return payload

    def apply_error_interceptors(self, error: ApiError) -> ApiError:
        for interceptor in self.error_interceptors:
            error = interceptor(error)
        return error
