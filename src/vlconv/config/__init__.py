"""Configuration module for vlconv.

Provides configuration loading with precedence: CLI > env > file > defaults.
"""

from vlconv.config.env import EnvReader
from vlconv.config.loader import (
    ConfigValidationError,
    build_config,
    clear_config_cache,
    get_config,
    get_data_dir,
    get_default_config_path,
    load_config_file,
)
from vlconv.config.models import (
    ConversionConfig,
    DetectionConfig,
    LoggingConfig,
    ToolPathsConfig,
    VLConvConfig,
)

__all__ = [
    "ConfigValidationError",
    "ConversionConfig",
    "DetectionConfig",
    "EnvReader",
    "LoggingConfig",
    "ToolPathsConfig",
    "VLConvConfig",
    "build_config",
    "clear_config_cache",
    "get_config",
    "get_data_dir",
    "get_default_config_path",
    "load_config_file",
]
