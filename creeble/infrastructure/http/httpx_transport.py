"""Concrete implementation of the Transport interface using httpx.

Performs one bounded request per call and translates every failure into an
``ApiError`` so that callers (and the retry policy) can branch on its kind.
"""

import logging
import time
from typing import Any, List, Mapping, Optional, Tuple

import httpx

from creeble.domain.interfaces.transport import Transport
from creeble.domain.models.errors import ApiError, ErrorKind
from creeble.infrastructure.http.configuration import RequestSpec, TransportConfiguration

logger = logging.getLogger(__name__)


def encode_params(params: Mapping[str, Any]) -> List[Tuple[str, str]]:
    """Flattens parameters for the query string.

    Sequences become repeated ``key[]`` entries, booleans are lower-cased and
    ``None`` values are dropped.
    """
    encoded: List[Tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set, frozenset)):
            encoded.extend((f"{key}[]", _stringify(item)) for item in value)
        else:
            encoded.append((key, _stringify(value)))
    return encoded


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_retry_after(value: Optional[str]) -> int:
    try:
        return max(0, int(value)) if value is not None else 0
    except ValueError:
        return 0


class HttpxTransport(Transport):
    """httpx implementation of the Transport interface."""

    def __init__(self, configuration: TransportConfiguration, client: Optional[httpx.AsyncClient] = None):
        """Initializes the transport.

        Args:
            configuration: API key, base URL, timeout and interceptors.
            client: Optional pre-built AsyncClient (e.g. with a MockTransport).
                Its base URL is overridden with the configured API root.
        """
        self.configuration = configuration
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=configuration.timeout_ms / 1000)
        client.base_url = configuration.api_root
        self._client = client
        logger.debug(f"HttpxTransport initialized for {configuration.api_root} (timeout={configuration.timeout_ms}ms)")

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> Any:
        if not isinstance(path, str):
            raise TypeError("path must be a string")
        spec = RequestSpec(
            method=method.upper(),
            path=path,
            params=dict(params or {}),
            body=body,
            headers=dict(headers or {}),
            timeout_ms=timeout_ms,
        )
        spec = self.configuration.apply_request_interceptors(spec)
        try:
            payload = await self._send(spec)
        except ApiError as error:
            intercepted = self.configuration.apply_error_interceptors(error)
            if intercepted is error:
                raise
            raise intercepted from error
        return self.configuration.apply_response_interceptors(payload)

    async def _send(self, spec: RequestSpec) -> Any:
        timeout_ms = spec.timeout_ms or self.configuration.timeout_ms
        headers = self.configuration.default_headers()
        headers.update(spec.headers)
        logger.debug(f"{spec.method} Request: {spec.path} params={dict(spec.params)}")
        start_time = time.perf_counter()
        try:
            response = await self._client.request(
                spec.method,
                spec.path,
                params=encode_params(spec.params),
                json=spec.body if spec.method not in ("GET", "DELETE") else None,
                headers=headers,
                timeout=timeout_ms / 1000,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"{spec.method} {spec.path} timed out after {timeout_ms}ms")
            raise ApiError.timeout() from e
        except (httpx.NetworkError, httpx.RemoteProtocolError) as e:
            logger.warning(f"{spec.method} {spec.path} network failure: {e}")
            raise ApiError.network(str(e)) from e
        except httpx.HTTPError as e:
            logger.error(f"{spec.method} {spec.path} failed: {e}")
            raise ApiError.generic(f"Request failed: {e}") from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"{spec.method} Response: {spec.path} {response.status_code} ({latency_ms:.0f}ms)")

        if not response.is_success:
            raise self._classify_error(response)
        return self._parse_response(response)

    def _parse_response(self, response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                return response.json()
            except ValueError as e:
                raise ApiError.generic("Invalid JSON response from API", status_code=response.status_code) from e
        return response.text

    def _classify_error(self, response: httpx.Response) -> ApiError:
        """Maps a non-2xx response to an ApiError."""
        status_code = response.status_code
        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        if not isinstance(error_data, dict):
            error_data = {}
        message = error_data.get("message") or response.reason_phrase or "Unknown error"

        if status_code == 401:
            error = ApiError.unauthorized(message)
        elif status_code == 404:
            error = ApiError.not_found(message)
        elif status_code == 422:
            error = ApiError.validation(message, error_data.get("errors") or {})
        elif status_code == 429:
            error = ApiError.rate_limited(message, _parse_retry_after(response.headers.get("Retry-After")))
        elif 500 <= status_code < 600:
            error = ApiError.server(message, status_code)
        else:
            error = ApiError.generic(message, status_code=status_code)

        log = logger.warning if error.kind in (ErrorKind.RATE_LIMITED, ErrorKind.SERVER) else logger.info
        log(f"{response.request.method} {response.request.url.path} -> {status_code} ({error.kind.value}): {message}")
        return error
