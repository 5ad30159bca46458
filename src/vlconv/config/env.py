"""Typed access to VLCONV_* environment variables.

EnvReader takes an optional mapping so the loader can be tested without
touching os.environ.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


class EnvReader:
    """Reads and converts environment variables.

    Unset variables return the default. Values that fail to convert are
    logged and also return the default, so a typo in the environment never
    stops a batch from starting.

    Example:
        EnvReader().get_int("VLCONV_CRF", 20)
        EnvReader(env={"VLCONV_CRF": "18"}).get_int("VLCONV_CRF", 20)  # 18
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env: Mapping[str, str] = os.environ if env is None else env

    def _convert(
        self, var: str, convert: Callable[[str], T], default: T | None
    ) -> T | None:
        raw = self._env.get(var)
        if raw is None:
            return default
        try:
            return convert(raw)
        except ValueError:
            logger.warning("Ignoring %s=%r: not a valid value", var, raw)
            return default

    def get_str(self, var: str, default: str | None = None) -> str | None:
        return self._env.get(var, default)

    def get_int(self, var: str, default: int | None = None) -> int | None:
        return self._convert(var, int, default)

    def get_float(self, var: str, default: float | None = None) -> float | None:
        return self._convert(var, float, default)

    def get_bool(self, var: str, default: bool | None = None) -> bool | None:
        """Parse a flag; "1", "true", "yes" and "on" are true, anything else false."""
        return self._convert(
            var, lambda raw: raw.strip().casefold() in _TRUE_VALUES, default
        )

    def get_path(
        self, var: str, must_exist: bool = True, default: Path | None = None
    ) -> Path | None:
        """Read a path, expanding ``~``.

        Args:
            var: Environment variable name.
            must_exist: Ignore, with a warning, paths that do not exist.
            default: Returned when unset, empty or missing on disk.
        """
        raw = self._env.get(var)
        if not raw:
            return default
        path = Path(raw).expanduser()
        if must_exist and not path.exists():
            logger.warning("Ignoring %s: %s does not exist", var, raw)
            return default
        return path
