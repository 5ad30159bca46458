"""Configuration loader with precedence handling.

Configuration is loaded with the following precedence (highest to lowest):
1. CLI arguments (passed directly to get_config)
2. Environment variables (VLCONV_*)
3. Config file (~/.vlconv/config.toml)
4. Default values

Environment variables:
- VLCONV_CONFIG_PATH: Path to config file (overrides default location)
- VLCONV_DATA_DIR: Data directory (overrides ~/.vlconv/)
- VLCONV_FFMPEG_PATH: Path to ffmpeg executable
- VLCONV_FFPROBE_PATH: Path to ffprobe executable
- VLCONV_BUNDLE_DIR: Directory containing bundled binaries
- VLCONV_DISABLE_HW_ACCEL: Skip hardware encoder detection
- VLCONV_CRF, VLCONV_AUDIO_BITRATE_KBPS, VLCONV_PREFER_HARDWARE: Quality defaults
- VLCONV_TIMEOUT_SECONDS, VLCONV_CANCEL_GRACE_SECONDS: Encoder timeouts
- VLCONV_LOG_LEVEL, VLCONV_LOG_FILE, VLCONV_LOG_FORMAT: Logging
"""

from __future__ import annotations

import logging
import threading
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from vlconv.config.env import EnvReader
from vlconv.config.models import (
    ConversionConfig,
    DetectionConfig,
    LoggingConfig,
    ToolPathsConfig,
    VLConvConfig,
)
from vlconv.config.schema import ConfigFileModel

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".vlconv"
CONFIG_FILE_NAME = "config.toml"

_config_cache: VLConvConfig | None = None
_config_cache_lock = threading.Lock()


class ConfigValidationError(ValueError):
    """Raised when the config file contains invalid values."""

    def __init__(self, path: Path, error: ValidationError) -> None:
        """Initialize the exception.

        Args:
            path: Config file that failed validation.
            error: Underlying pydantic error.
        """
        self.path = path
        self.errors = error.errors()
        details = "; ".join(
            f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in self.errors
        )
        super().__init__(f"Invalid configuration in {path}: {details}")


def get_data_dir(env: Mapping[str, str] | None = None) -> Path:
    """Get the vlconv data directory.

    Can be overridden by VLCONV_DATA_DIR. Supports tilde expansion.

    Returns:
        Path to the data directory (~/.vlconv/ by default).
    """
    value = EnvReader(env).get_str("VLCONV_DATA_DIR")
    if value:
        return Path(value).expanduser()
    return DEFAULT_DATA_DIR


def get_default_config_path(env: Mapping[str, str] | None = None) -> Path:
    """Get the default config file path.

    Can be overridden by VLCONV_CONFIG_PATH.
    """
    value = EnvReader(env).get_str("VLCONV_CONFIG_PATH")
    if value:
        return Path(value).expanduser()
    return get_data_dir(env) / CONFIG_FILE_NAME


def load_config_file(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from TOML file.

    Args:
        path: Path to config file. If None, uses default location.

    Returns:
        Parsed configuration dict. Empty dict if the file doesn't exist or
        is not valid TOML (a warning is logged).
    """
    if path is None:
        path = get_default_config_path()

    if not path.exists():
        logger.debug("Config file not found: %s", path)
        return {}

    try:
        with path.open("rb") as f:
            config = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Failed to load config file %s: %s", path, e)
        return {}

    logger.debug("Loaded config from %s", path)
    return config


def _pick(*values: Any) -> Any:
    """Return the first value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None


def build_config(
    file_config: Mapping[str, Any],
    env: Mapping[str, str] | None = None,
    *,
    config_path: Path | None = None,
    ffmpeg_path: Path | None = None,
    ffprobe_path: Path | None = None,
) -> VLConvConfig:
    """Merge file values, environment variables and CLI overrides.

    Args:
        file_config: Parsed TOML dictionary.
        env: Environment mapping (None reads os.environ).
        config_path: Path the file was read from, for error messages.
        ffmpeg_path: CLI override for ffmpeg path.
        ffprobe_path: CLI override for ffprobe path.

    Returns:
        VLConvConfig with merged configuration.

    Raises:
        ConfigValidationError: If the file contains invalid values.
        ValueError: If an environment variable yields an invalid value.
    """
    try:
        model = ConfigFileModel.model_validate(dict(file_config))
    except ValidationError as e:
        raise ConfigValidationError(config_path or Path(CONFIG_FILE_NAME), e) from e

    reader = EnvReader(env)
    defaults = VLConvConfig()

    tools = ToolPathsConfig(
        ffmpeg=_pick(
            ffmpeg_path, reader.get_path("VLCONV_FFMPEG_PATH"), model.tools.ffmpeg
        ),
        ffprobe=_pick(
            ffprobe_path, reader.get_path("VLCONV_FFPROBE_PATH"), model.tools.ffprobe
        ),
        bundle_dir=_pick(reader.get_path("VLCONV_BUNDLE_DIR"), model.tools.bundle_dir),
    )

    detection = DetectionConfig(
        disable_hw_accel=_pick(
            reader.get_bool("VLCONV_DISABLE_HW_ACCEL"),
            model.detection.disable_hw_accel,
            defaults.detection.disable_hw_accel,
        ),
        timeout_seconds=_pick(
            model.detection.timeout_seconds, defaults.detection.timeout_seconds
        ),
    )

    conv_file = model.conversion
    conv_default = defaults.conversion
    conversion = ConversionConfig(
        crf=_pick(reader.get_int("VLCONV_CRF"), conv_file.crf, conv_default.crf),
        audio_bitrate_kbps=_pick(
            reader.get_int("VLCONV_AUDIO_BITRATE_KBPS"),
            conv_file.audio_bitrate_kbps,
            conv_default.audio_bitrate_kbps,
        ),
        prefer_hardware=_pick(
            reader.get_bool("VLCONV_PREFER_HARDWARE"),
            conv_file.prefer_hardware,
            conv_default.prefer_hardware,
        ),
        timeout_seconds=_pick(
            reader.get_int("VLCONV_TIMEOUT_SECONDS"),
            conv_file.timeout_seconds,
            conv_default.timeout_seconds,
        ),
        cancel_grace_seconds=_pick(
            reader.get_float("VLCONV_CANCEL_GRACE_SECONDS"),
            conv_file.cancel_grace_seconds,
            conv_default.cancel_grace_seconds,
        ),
        backup_suffix=_pick(conv_file.backup_suffix, conv_default.backup_suffix),
        log_tail_lines=_pick(conv_file.log_tail_lines, conv_default.log_tail_lines),
    )

    log_file = model.logging
    log_default = defaults.logging
    logging_config = LoggingConfig(
        level=_pick(
            reader.get_str("VLCONV_LOG_LEVEL"), log_file.level, log_default.level
        ),
        file=_pick(
            reader.get_path("VLCONV_LOG_FILE", must_exist=False),
            log_file.file,
            log_default.file,
        ),
        format=_pick(
            reader.get_str("VLCONV_LOG_FORMAT"), log_file.format, log_default.format
        ),
        include_stderr=_pick(log_file.include_stderr, log_default.include_stderr),
        max_bytes=_pick(log_file.max_bytes, log_default.max_bytes),
        backup_count=_pick(log_file.backup_count, log_default.backup_count),
    )

    return VLConvConfig(
        tools=tools,
        detection=detection,
        conversion=conversion,
        logging=logging_config,
    )


def get_config(
    config_path: Path | None = None,
    *,
    ffmpeg_path: Path | None = None,
    ffprobe_path: Path | None = None,
) -> VLConvConfig:
    """Get configuration with full precedence handling.

    The result without overrides is cached for the process; call
    clear_config_cache() after changing the environment or file.

    Args:
        config_path: Path to config file (overrides VLCONV_CONFIG_PATH).
        ffmpeg_path: CLI override for ffmpeg path.
        ffprobe_path: CLI override for ffprobe path.

    Returns:
        VLConvConfig with merged configuration.
    """
    global _config_cache

    cacheable = config_path is None and ffmpeg_path is None and ffprobe_path is None
    if cacheable and _config_cache is not None:
        return _config_cache

    path = config_path or get_default_config_path()
    config = build_config(
        load_config_file(path),
        config_path=path,
        ffmpeg_path=ffmpeg_path,
        ffprobe_path=ffprobe_path,
    )

    if cacheable:
        with _config_cache_lock:
            _config_cache = config
    return config


def clear_config_cache() -> None:
    """Forget the cached configuration."""
    global _config_cache
    with _config_cache_lock:
        _config_cache = None
