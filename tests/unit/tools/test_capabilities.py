"""Tests for the shared capability snapshot and its model."""

import threading
from pathlib import Path
from unittest.mock import patch

from vlconv.tools import capabilities as capabilities_module
from vlconv.tools.capabilities import get_capabilities, reset_capabilities
from vlconv.tools.models import Capabilities


class TestCapabilitiesModel:
    """Tests for Capabilities properties."""

    def test_can_remux_follows_remux_path(self) -> None:
        """Remux needs only a runnable ffmpeg."""
        assert Capabilities(remux_path=Path("/usr/bin/ffmpeg")).can_remux is True
        assert Capabilities().can_remux is False

    def test_stats_period_by_version(self) -> None:
        """-stats_period needs ffmpeg 4.3 or newer."""
        ffmpeg = Path("/usr/bin/ffmpeg")
        old = Capabilities(remux_path=ffmpeg, version_tuple=(4, 2, 7))
        new = Capabilities(remux_path=ffmpeg, version_tuple=(4, 3))
        git = Capabilities(remux_path=ffmpeg, version_tuple=None)
        assert old.supports_stats_period is False
        assert new.supports_stats_period is True
        assert git.supports_stats_period is True

    def test_to_dict(self) -> None:
        """Serialized snapshot uses plain strings."""
        caps = Capabilities(
            has_encoder=True,
            encoder_path=Path("/usr/bin/ffmpeg"),
            remux_path=Path("/usr/bin/ffmpeg"),
            messages=("note",),
        )
        data = caps.to_dict()
        assert data["encoder_path"] == "/usr/bin/ffmpeg"
        assert data["ffprobe_path"] is None
        assert data["messages"] == ["note"]


class TestGetCapabilities:
    """Tests for the process-wide snapshot."""

    def test_probes_once(self) -> None:
        """Repeated calls reuse the first snapshot."""
        snapshot = Capabilities(has_encoder=True)
        with patch.object(
            capabilities_module, "probe", return_value=snapshot
        ) as probe:
            assert get_capabilities() is snapshot
            assert get_capabilities() is snapshot
        probe.assert_called_once()

    def test_concurrent_first_calls_probe_once(self) -> None:
        """Threads racing on the first call share one probe."""
        snapshot = Capabilities()
        results: list[Capabilities] = []

        with patch.object(
            capabilities_module, "probe", return_value=snapshot
        ) as probe:
            threads = [
                threading.Thread(target=lambda: results.append(get_capabilities()))
                for _ in range(8)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        probe.assert_called_once()
        assert all(result is snapshot for result in results)

    def test_reset(self) -> None:
        """reset_capabilities forces a new probe."""
        with patch.object(
            capabilities_module, "probe", side_effect=[Capabilities(), Capabilities()]
        ) as probe:
            get_capabilities()
            reset_capabilities()
            get_capabilities()
        assert probe.call_count == 2
