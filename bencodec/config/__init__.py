"""Configuration management.

This module handles configuration loading from TOML files and the environment.
"""

from __future__ import annotations

from bencodec.config.config import (
    ConfigManager,
    get_codec_config,
    get_config,
    get_observability_config,
    init_config,
    reload_config,
    reset_config,
    set_config,
)
from bencodec.models import CodecConfig, Config, ObservabilityConfig

__all__ = [
    "CodecConfig",
    "Config",
    "ConfigManager",
    "ObservabilityConfig",
    "get_codec_config",
    "get_config",
    "get_observability_config",
    "init_config",
    "reload_config",
    "reset_config",
    "set_config",
]
