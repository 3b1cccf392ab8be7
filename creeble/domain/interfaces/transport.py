"""Interface for the transport that performs a single API exchange.

Implementations execute exactly one request, enforce its deadline and
translate failures into ``ApiError`` with the proper ``ErrorKind``.
"""

import abc
from typing import Any, Mapping, Optional


class Transport(abc.ABC):
    """Abstract Base Class for one bounded request/response exchange."""

    @abc.abstractmethod
    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> Any:
        """Executes one request asynchronously.

        Args:
            method: HTTP verb ('GET', 'POST', ...).
            path: Path relative to the API root, e.g. '/v1/posts'.
            params: Query parameters.
            body: JSON-serializable request body.
            headers: Extra headers merged over the defaults.
            timeout_ms: Per-request deadline; the configured default if None.

        Returns:
            The parsed JSON payload, or the text body for non-JSON responses.

        Raises:
            ApiError: Classified failure (auth, validation, rate limit,
                server, not found, timeout, network, generic).
        """
        pass

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: Optional[Any] = None) -> Any:
        return await self.request("POST", path, body=body if body is not None else {})

    async def aclose(self) -> None:
        """Releases any pooled connections. No-op by default."""
        pass
