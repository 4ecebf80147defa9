"""Data types of the configuration service and its key helpers."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Callable

CONFIG_INFO_SPLITER = "@@"

ConfigListener = Callable[[str, str, str, str], None]


def _lookup(data: dict[str, Any], name: str, default: Any = None) -> Any:
    if name in data:
        return data[name]
    lowered = name.lower()
    for key, value in data.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return default


def get_config_cache_key(data_id: str, group: str, tenant: str) -> str:
    """Return the cache key ``dataId@@group@@tenant``."""
    return data_id + CONFIG_INFO_SPLITER + group + CONFIG_INFO_SPLITER + tenant


def md5_hex(content: str) -> str:
    """Return the hex MD5 digest of the UTF-8 bytes of ``content``."""
    return hashlib.md5(content.encode("utf-8")).hexdigest()


@dataclass
class ConfigParam:
    """Identifies one configuration; ``on_change(namespace, group, data_id, data)``."""

    data_id: str = ""
    group: str = ""
    content: str = ""
    datum_id: str = ""
    app_name: str = ""
    type: str = ""
    on_change: ConfigListener | None = field(default=None, compare=False)

    def to_params(self) -> dict[str, str]:
        """Return the non-empty fields under their request parameter names."""
        pairs = (
            ("dataId", self.data_id),
            ("group", self.group),
            ("content", self.content),
            ("datumId", self.datum_id),
            ("appName", self.app_name),
            ("type", self.type),
        )
        return {name: value for name, value in pairs if value}


@dataclass
class SearchConfigParam:
    search: str = ""
    data_id: str = ""
    group: str = ""
    tag: str = ""
    app_name: str = ""
    page_no: int = 0
    page_size: int = 0

    def to_params(self) -> dict[str, str]:
        """Return the non-empty fields under their request parameter names."""
        pairs = (
            ("search", self.search),
            ("dataId", self.data_id),
            ("group", self.group),
            ("tag", self.tag),
            ("appName", self.app_name),
            ("pageNo", str(self.page_no) if self.page_no else ""),
            ("pageSize", str(self.page_size) if self.page_size else ""),
        )
        return {name: value for name, value in pairs if value}


@dataclass
class ConfigItem:
    id: str = ""
    data_id: str = ""
    group: str = ""
    content: str = ""
    md5: str = ""
    tenant: str = ""
    app_name: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConfigItem:
        def text(name: str) -> str:
            value = _lookup(data, name)
            return "" if value is None else str(value)

        return cls(
            id=text("id"),
            data_id=text("dataId"),
            group=text("group"),
            content=text("content"),
            md5=text("md5"),
            tenant=text("tenant"),
            app_name=text("appName"),
        )


@dataclass
class ConfigPage:
    total_count: int = 0
    page_number: int = 0
    pages_available: int = 0
    page_items: list[ConfigItem] = field(default_factory=list)


def config_page_from_json(text: str) -> ConfigPage:
    """Parse a search result page; raise ValueError if it is malformed."""
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("config page must be a JSON object")
    items = _lookup(data, "pageItems") or []
    if not isinstance(items, list):
        raise ValueError("pageItems must be a list")
    try:
        return ConfigPage(
            total_count=int(_lookup(data, "totalCount", 0)),
            page_number=int(_lookup(data, "pageNumber", 0)),
            pages_available=int(_lookup(data, "pagesAvailable", 0)),
            page_items=[ConfigItem.from_dict(item) for item in items],
        )
    except (TypeError, AttributeError) as exc:
        raise ValueError(f"malformed config page: {exc}") from exc