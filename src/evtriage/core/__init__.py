"""
Core configuration for evtriage.
"""

from .config import AppConfig, CollectionConfig, TransportConfig, get_config, reload_config

__all__ = [
    "AppConfig",
    "CollectionConfig",
    "TransportConfig",
    "get_config",
    "reload_config",
]
