"""Tests for configuration dataclasses and quality settings."""

import pytest

from vlconv.config.logging_factory import build_logging_config
from vlconv.config.models import ConversionConfig, LoggingConfig
from vlconv.conversion.models import QualitySettings


class TestQualitySettings:
    """Tests for QualitySettings validation."""

    def test_defaults(self) -> None:
        """Defaults are CRF 20, 192 kbps, hardware preferred."""
        quality = QualitySettings()
        assert quality.crf == 20
        assert quality.audio_bitrate_kbps == 192
        assert quality.prefer_hardware is True

    @pytest.mark.parametrize("crf", [15, 30])
    def test_crf_bounds_inclusive(self, crf: int) -> None:
        """CRF 15 and 30 are both accepted."""
        assert QualitySettings(crf=crf).crf == crf

    @pytest.mark.parametrize("crf", [14, 31])
    def test_crf_out_of_range(self, crf: int) -> None:
        """CRF outside 15-30 is rejected."""
        with pytest.raises(ValueError, match="crf"):
            QualitySettings(crf=crf)

    @pytest.mark.parametrize("bitrate", [127, 321])
    def test_audio_bitrate_out_of_range(self, bitrate: int) -> None:
        """Audio bitrate outside 128-320 kbps is rejected."""
        with pytest.raises(ValueError, match="audio_bitrate_kbps"):
            QualitySettings(audio_bitrate_kbps=bitrate)


class TestConversionConfig:
    """Tests for ConversionConfig validation."""

    def test_quality_uses_config_values(self) -> None:
        """quality() mirrors the configured defaults."""
        config = ConversionConfig(crf=18, audio_bitrate_kbps=256, prefer_hardware=False)
        assert config.quality() == QualitySettings(
            crf=18, audio_bitrate_kbps=256, prefer_hardware=False
        )

    def test_rejects_non_positive_timeout(self) -> None:
        """Timeout must be positive."""
        with pytest.raises(ValueError, match="timeout_seconds"):
            ConversionConfig(timeout_seconds=0)

    def test_rejects_negative_grace(self) -> None:
        """Cancel grace period cannot be negative."""
        with pytest.raises(ValueError, match="cancel_grace_seconds"):
            ConversionConfig(cancel_grace_seconds=-1)

    def test_rejects_bad_quality(self) -> None:
        """Quality range checks run at construction time."""
        with pytest.raises(ValueError):
            ConversionConfig(crf=50)


class TestLoggingConfig:
    """Tests for LoggingConfig and the CLI override factory."""

    def test_rejects_unknown_level(self) -> None:
        """Unknown levels are rejected."""
        with pytest.raises(ValueError, match="level"):
            LoggingConfig(level="verbose")

    def test_rejects_unknown_format(self) -> None:
        """Unknown formats are rejected."""
        with pytest.raises(ValueError, match="format"):
            LoggingConfig(format="xml")

    def test_overrides_applied(self, tmp_path) -> None:
        """CLI overrides replace base values and keep the rest."""
        base = LoggingConfig(level="error", max_bytes=1024, backup_count=2)
        result = build_logging_config(
            base, level="debug", file=tmp_path / "x.log", format="json"
        )
        assert result.level == "debug"
        assert result.file == tmp_path / "x.log"
        assert result.format == "json"
        assert result.max_bytes == 1024
        assert result.backup_count == 2

    def test_none_overrides_keep_base(self) -> None:
        """Unset overrides leave the base untouched."""
        base = LoggingConfig(level="info", include_stderr=True)
        assert build_logging_config(base) == base
