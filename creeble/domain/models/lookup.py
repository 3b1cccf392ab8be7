"""Result type for direct lookups by id.

Distinguishes "the server says it does not exist" from "we could not ask",
so an outage is never mistaken for a missing item.
"""

from dataclasses import dataclass
from typing import Any, Union

from .errors import ApiError


@dataclass(frozen=True)
class Found:
    item: Any

    @property
    def exists(self) -> bool:
        return True


@dataclass(frozen=True)
class NotFound:
    error: ApiError

    @property
    def exists(self) -> bool:
        return False


@dataclass(frozen=True)
class LookupFailed:
    """The lookup itself failed (auth, network, server...)."""
    error: ApiError

    @property
    def exists(self) -> bool:
        raise self.error


LookupResult = Union[Found, NotFound, LookupFailed]
