"""Error taxonomy for the Creeble client.

A single tagged error type is used for every classified failure. The ``kind``
discriminant drives retry eligibility and caller-visible behavior; payload
fields are only populated for the kinds that carry them.
"""

import enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, enum.Enum):
    """Classification of a failed API interaction."""
    UNAUTHORIZED = "unauthorized"   # HTTP 401
    VALIDATION = "validation"       # HTTP 422, or local form validation
    RATE_LIMITED = "rate_limited"   # HTTP 429
    SERVER = "server"               # HTTP 5xx
    NOT_FOUND = "not_found"         # HTTP 404
    GENERIC = "generic"             # Other non-2xx, malformed response
    TIMEOUT = "timeout"             # Request deadline expired
    NETWORK = "network"             # Connection refused/reset, protocol errors
    OVERSIZED = "oversized"         # Collection larger than the caller's cap


ValidationErrors = Dict[str, List[str]]


class ApiError(Exception):
    """Classified failure raised by the transport and the pagination engine."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[ValidationErrors] = None,
        retry_after: Optional[int] = None,
        total: Optional[int] = None,
        max_items: Optional[int] = None,
    ):
        """Initializes the error.

        Args:
            kind: The classification of the failure.
            message: Human readable description.
            status_code: HTTP status code, when the server answered.
            errors: Field -> messages map (VALIDATION only).
            retry_after: Seconds suggested by the server (RATE_LIMITED only).
            total: Size reported by the server (OVERSIZED only).
            max_items: The cap that was exceeded (OVERSIZED only).
        """
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.errors: ValidationErrors = errors or {}
        self.retry_after = retry_after
        self.total = total
        self.max_items = max_items

    def __repr__(self) -> str:
        return f"ApiError(kind={self.kind.value!r}, message={self.message!r}, status_code={self.status_code!r})"

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view used by the CLI when printing failures."""
        data: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.errors:
            data["errors"] = self.errors
        if self.retry_after is not None:
            data["retry_after"] = self.retry_after
        if self.kind is ErrorKind.OVERSIZED:
            data["total"] = self.total
            data["max_items"] = self.max_items
        return data

    # --- Named constructors ---

    @classmethod
    def unauthorized(cls, message: str = "Authentication failed") -> "ApiError":
        return cls(ErrorKind.UNAUTHORIZED, message, status_code=401)

    @classmethod
    def validation(cls, message: str = "Validation failed", errors: Optional[ValidationErrors] = None,
                   status_code: Optional[int] = 422) -> "ApiError":
        return cls(ErrorKind.VALIDATION, message, status_code=status_code, errors=errors)

    @classmethod
    def rate_limited(cls, message: str = "Rate limit exceeded", retry_after: int = 0) -> "ApiError":
        return cls(ErrorKind.RATE_LIMITED, message, status_code=429, retry_after=retry_after)

    @classmethod
    def server(cls, message: str, status_code: int = 500) -> "ApiError":
        return cls(ErrorKind.SERVER, f"Server error: {message}", status_code=status_code)

    @classmethod
    def not_found(cls, message: str = "Not found") -> "ApiError":
        return cls(ErrorKind.NOT_FOUND, message, status_code=404)

    @classmethod
    def generic(cls, message: str, status_code: Optional[int] = None) -> "ApiError":
        return cls(ErrorKind.GENERIC, message, status_code=status_code)

    @classmethod
    def timeout(cls, message: str = "Request timeout") -> "ApiError":
        return cls(ErrorKind.TIMEOUT, message)

    @classmethod
    def network(cls, message: str) -> "ApiError":
        return cls(ErrorKind.NETWORK, f"Request failed: {message}")

    @classmethod
    def oversized(cls, total: int, max_items: int) -> "ApiError":
        return cls(
            ErrorKind.OVERSIZED,
            f"Collection has {total} items, which exceeds the limit of {max_items}",
            total=total,
            max_items=max_items,
        )


class ConfigurationError(Exception):
    """Raised when client settings are missing or malformed."""
