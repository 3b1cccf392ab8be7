"""Core service for reading form definitions and submitting form data.

Submissions are plain POSTs and are never retried: a submission that timed
out may still have been recorded by the server.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping
from urllib.parse import urlparse

from creeble.core.services.page_fetcher import resource_path
from creeble.domain.interfaces.transport import Transport
from creeble.domain.models.errors import ApiError, ValidationErrors

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[\d\s\-\+\(\)]+$")
MIN_PHONE_DIGITS = 10


@dataclass
class ValidationResult:
    valid: bool
    errors: ValidationErrors = field(default_factory=dict)


def is_valid_email(value: Any) -> bool:
    return bool(EMAIL_PATTERN.match(str(value)))


def is_valid_url(value: Any) -> bool:
    try:
        parsed = urlparse(str(value))
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc)


def is_valid_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    try:
        return not math.isnan(float(value))
    except (TypeError, ValueError):
        return False


def is_valid_phone(value: Any) -> bool:
    text = str(value)
    if not PHONE_PATTERN.match(text):
        return False
    return sum(char.isdigit() for char in text) >= MIN_PHONE_DIGITS


TYPE_CHECKS = {
    "email": (is_valid_email, "The {name} must be a valid email address."),
    "url": (is_valid_url, "The {name} must be a valid URL."),
    "number": (is_valid_number, "The {name} must be a number."),
    "phone_number": (is_valid_phone, "The {name} must be a valid phone number."),
}


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


class FormsService:
    """Reads form definitions and submits data to them."""

    def __init__(self, transport: Transport):
        self.transport = transport

    async def get_form(self, endpoint: str, slug: str) -> Any:
        """Fetches the form's schema and settings."""
        return await self.transport.get(resource_path(endpoint, "forms", slug))

    async def submit(self, endpoint: str, slug: str, form_data: Mapping[str, Any]) -> Any:
        """Submits ``form_data`` with a single POST."""
        logger.info(f"Submitting form '{slug}' on '{endpoint}' ({len(form_data)} field(s))")
        return await self.transport.post(resource_path(endpoint, "forms", slug), dict(form_data))

    async def get_schema(self, endpoint: str, slug: str) -> Dict[str, Any]:
        response = await self.get_form(endpoint, slug)
        if isinstance(response, Mapping) and isinstance(response.get("schema"), Mapping):
            return dict(response["schema"])
        return response

    def validate_form_data(self, schema: Mapping[str, Any], form_data: Mapping[str, Any]) -> ValidationResult:
        """Validates ``form_data`` against a form schema without any request.

        Checks required fields (per-field ``required`` flags and the schema's
        ``required`` list) and the email, url, number and phone_number types.
        """
        errors: Dict[str, List[str]] = {}
        properties = (schema or {}).get("properties") or {}
        required_names = set((schema or {}).get("required") or [])

        for name, config in properties.items():
            config = config or {}
            value = form_data.get(name)
            if _is_blank(value):
                if config.get("required") or name in required_names:
                    errors[name] = [f"The {name} field is required."]
                continue

            check = TYPE_CHECKS.get(config.get("type"))
            if check is not None:
                is_valid, message = check
                if not is_valid(value):
                    errors.setdefault(name, []).append(message.format(name=name))

        if errors:
            logger.debug(f"Form data failed validation: {sorted(errors)}")
        return ValidationResult(valid=not errors, errors=errors)

    async def submit_with_validation(self, endpoint: str, slug: str, form_data: Mapping[str, Any]) -> Any:
        """Validates locally against the live schema, then submits.

        Raises:
            ApiError: VALIDATION with the field errors; nothing is posted.
        """
        schema = await self.get_schema(endpoint, slug)
        validation = self.validate_form_data(schema if isinstance(schema, Mapping) else {}, form_data)
        if not validation.valid:
            raise ApiError.validation("Form validation failed", validation.errors, status_code=None)
        return await self.submit(endpoint, slug, form_data)
