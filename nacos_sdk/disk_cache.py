"""Local file cache of services and configuration contents."""

from __future__ import annotations

import logging
import os

from .naming_types import Service, get_service_cache_key, service_from_json

logger = logging.getLogger(__name__)

WINDOWS_LEGAL_NAME_SPLITER = "&&"


class ConfigCacheError(OSError):
    """A cached configuration could not be read."""


def get_file_name(cache_key: str, cache_dir: str) -> str:
    """Return the path of the cache file for ``cache_key``."""
    if os.name == "nt":
        cache_key = cache_key.replace(":", WINDOWS_LEGAL_NAME_SPLITER)
    return cache_dir + os.sep + cache_key


def _write(path: str, cache_dir: str, content: str) -> None:
    os.makedirs(cache_dir, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(content)


def write_services_to_file(service: Service, cache_dir: str) -> None:
    """Store ``service`` as JSON; failures are logged, not raised."""
    content = service.to_json()
    path = get_file_name(get_service_cache_key(service.name, service.clusters), cache_dir)
    try:
        _write(path, cache_dir, content)
    except OSError as exc:
        logger.error("failed to write name cache:%s ,value:%s ,err:%s", path, content, exc)


def read_services_from_file(cache_dir: str) -> dict[str, Service]:
    """Load every cached service, keyed by file name."""
    try:
        names = sorted(os.listdir(cache_dir))
    except OSError as exc:
        logger.error("read cacheDir:%s failed!err:%s", cache_dir, exc)
        return {}
    services: dict[str, Service] = {}
    for name in names:
        path = get_file_name(name, cache_dir)
        try:
            with open(path, encoding="utf-8") as handle:
                text = handle.read()
        except OSError as exc:
            logger.error("failed to read name cache file:%s,err:%s", path, exc)
            continue
        service = service_from_json(text)
        if service is not None:
            services[name] = service
    logger.info("finish loading name cache, total: %d", len(names))
    return services


def write_config_to_file(cache_key: str, cache_dir: str, content: str) -> None:
    """Store a configuration content; failures are logged, not raised."""
    path = get_file_name(cache_key, cache_dir)
    try:
        _write(path, cache_dir, content)
    except OSError as exc:
        logger.error("failed to write config cache:%s ,value:%s ,err:%s", path, content, exc)


def read_config_from_file(cache_key: str, cache_dir: str) -> str:
    """Return a cached configuration content; raise ConfigCacheError if unreadable."""
    path = get_file_name(cache_key, cache_dir)
    try:
        with open(path, encoding="utf-8") as handle:
            return handle.read()
    except OSError as exc:
        raise ConfigCacheError(f"failed to read config cache file:{path},err:{exc}") from exc