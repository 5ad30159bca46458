"""Process-wide capability snapshot.

Detection spawns several ffmpeg processes, so it runs once per process and
the frozen result is shared.
"""

import logging
import threading

from vlconv.config.models import VLConvConfig
from vlconv.tools.detection import detect_capabilities
from vlconv.tools.models import Capabilities

logger = logging.getLogger(__name__)

_capabilities: Capabilities | None = None
_capabilities_lock = threading.Lock()


def probe(config: VLConvConfig | None = None) -> Capabilities:
    """Detect capabilities now, bypassing the shared snapshot."""
    config = config or VLConvConfig()
    return detect_capabilities(config.tools, config.detection)


def get_capabilities(config: VLConvConfig | None = None) -> Capabilities:
    """Return the shared capability snapshot, probing on first use.

    Thread-safe: concurrent first calls probe only once.

    Args:
        config: Configuration used for the first probe. Ignored afterwards.
    """
    global _capabilities

    if _capabilities is not None:
        return _capabilities

    with _capabilities_lock:
        if _capabilities is None:
            _capabilities = probe(config)
            for message in _capabilities.messages:
                logger.debug("Capability note: %s", message)
        return _capabilities


def reset_capabilities() -> None:
    """Forget the shared snapshot. For tests."""
    global _capabilities
    with _capabilities_lock:
        _capabilities = None
