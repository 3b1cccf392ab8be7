"""Thin record wrappers around API payloads.

The pagination core works on plain dicts; these classes only add
convenience accessors for callers that want them.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        # fromisoformat does not accept a trailing 'Z' before 3.11
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class BaseModel:
    """Read-only mapping wrapper for an API record."""

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, Any] = dict(data or {})

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._data!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BaseModel):
            return NotImplemented
        return type(self) is type(other) and self._data == other._data

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def has(self, key: str) -> bool:
        """True if the key is present and not None."""
        return self._data.get(key) is not None

    def get(self, key: str, default: Any = None) -> Any:
        return self._data[key] if self.has(key) else default

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)

    def to_json(self) -> str:
        return json.dumps(self._data, default=str)


class DataItem(BaseModel):
    """A content item (page or database row) returned by a data endpoint."""

    @property
    def id(self) -> Optional[str]:
        return self.get("id")

    @property
    def title(self) -> str:
        return self.get("title", self.get("name", "Untitled"))

    @property
    def description(self) -> str:
        return self.get("description", "")

    @property
    def properties(self) -> Dict[str, Any]:
        return self.get("properties", {})

    def get_property(self, key: str, default: Any = None) -> Any:
        value = self.properties.get(key)
        return default if value is None else value

    @property
    def url(self) -> Optional[str]:
        return self.get("url", self.get("notion_url"))

    @property
    def created_at(self) -> Optional[datetime]:
        return _parse_timestamp(self.get("created_time", self.get("created_at")))

    @property
    def last_modified(self) -> Optional[datetime]:
        return _parse_timestamp(self.get("last_edited_time", self.get("updated_at")))


class ProjectInfo(BaseModel):
    """Project information returned by ``/v1/<endpoint>/info``."""

    @property
    def id(self) -> Optional[str]:
        return self.get("id")

    @property
    def name(self) -> str:
        return self.get("name", "Unnamed Project")

    @property
    def description(self) -> str:
        return self.get("description", "")

    @property
    def status(self) -> str:
        return self.get("status", "inactive")

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def endpoints(self) -> List[Any]:
        return self.get("endpoints", [])

    @property
    def created_at(self) -> Optional[datetime]:
        return _parse_timestamp(self.get("created_at"))


class Form(BaseModel):
    """Form configuration, including its field schema and display settings."""

    @property
    def name(self) -> Optional[str]:
        return self.get("form_name", self.get("name"))

    @property
    def slug(self) -> Optional[str]:
        return self.get("form_slug", self.get("slug"))

    @property
    def is_enabled(self) -> bool:
        return bool(self.get("is_form_enabled", self.get("enabled", False)))

    @property
    def schema(self) -> Dict[str, Any]:
        return self.get("schema", {})

    @property
    def fields(self) -> Dict[str, Dict[str, Any]]:
        return self.schema.get("properties") or {}

    @property
    def settings(self) -> Dict[str, Any]:
        return self.get("form_settings", self.get("settings", {}))

    @property
    def success_message(self) -> str:
        return self.settings.get("success_message") or "Thank you for your submission!"

    @property
    def submit_button_text(self) -> str:
        return self.settings.get("submit_button_text") or "Submit"

    @property
    def description(self) -> str:
        return self.settings.get("description") or ""

    @property
    def requires_captcha(self) -> bool:
        return bool(self.settings.get("requires_captcha", False))

    @property
    def required_fields(self) -> List[str]:
        return [name for name, config in self.fields.items() if config.get("required")]

    def field(self, field_name: str) -> Optional[Dict[str, Any]]:
        return self.fields.get(field_name)

    def has_field(self, field_name: str) -> bool:
        return field_name in self.fields

    def field_type(self, field_name: str) -> Optional[str]:
        config = self.field(field_name)
        return config.get("type") if config else None

    def is_field_required(self, field_name: str) -> bool:
        config = self.field(field_name)
        return bool(config.get("required", False)) if config else False

    def field_options(self, field_name: str) -> List[str]:
        config = self.field(field_name)
        if not config or config.get("type") not in ("select", "multi_select", "multiselect"):
            return []
        return list(config.get("options", []))

    def empty_form_data(self) -> Dict[str, str]:
        return {name: "" for name in self.fields}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "slug": self.slug,
            "enabled": self.is_enabled,
            "schema": self.schema,
            "settings": self.settings,
            "fields": self.fields,
        }
