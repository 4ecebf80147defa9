"""Client library for Nacos configuration management and service discovery."""

__version__ = "0.1.0"

__all__ = [
    "beat_reactor",
    "client_factory",
    "concurrent_map",
    "config_client",
    "config_listening",
    "config_proxy",
    "config_types",
    "disk_cache",
    "host_reactor",
    "nacos_client",
    "naming_client",
    "naming_proxy",
    "naming_types",
    "push_receiver",
    "subscribe_callback",
]