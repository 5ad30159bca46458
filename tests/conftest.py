"""Shared test fixtures for vlconv."""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from vlconv.config import clear_config_cache
from vlconv.conversion.models import MediaProbe
from vlconv.introspector import MediaIntrospectionError
from vlconv.tools import reset_capabilities
from vlconv.tools.models import Capabilities


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test isolation."""
    dir_path = tempfile.mkdtemp()
    yield Path(dir_path)
    shutil.rmtree(dir_path, ignore_errors=True)


@pytest.fixture(autouse=True)
def _isolate_process_caches(monkeypatch: pytest.MonkeyPatch):
    """Drop cached config and capability snapshots between tests."""
    for var in (
        "VLCONV_CONFIG_PATH",
        "VLCONV_DATA_DIR",
        "VLCONV_FFMPEG_PATH",
        "VLCONV_FFPROBE_PATH",
        "VLCONV_CRF",
        "VLCONV_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    clear_config_cache()
    reset_capabilities()
    yield
    clear_config_cache()
    reset_capabilities()


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """Undo handlers installed by configure_logging() or the CLI."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


# =============================================================================
# Capability Snapshots
# =============================================================================


def make_capabilities(
    *,
    has_encoder: bool = True,
    remux: bool = True,
    hw_encoder: str | None = None,
    ffprobe: bool = True,
    version_tuple: tuple[int, ...] | None = (6, 1),
) -> Capabilities:
    """Build a Capabilities snapshot without running ffmpeg."""
    ffmpeg = Path("/usr/bin/ffmpeg")
    return Capabilities(
        has_encoder=has_encoder,
        encoder_path=ffmpeg if has_encoder else None,
        hw_accel_available=hw_encoder is not None,
        hw_encoder=hw_encoder,
        remux_path=ffmpeg if remux else None,
        ffprobe_path=Path("/usr/bin/ffprobe") if ffprobe else None,
        version="6.1",
        version_tuple=version_tuple,
        encoders=frozenset({"libx264", "aac"}) if has_encoder else frozenset(),
        messages=() if has_encoder else ("ffmpeg lacks libx264, aac",),
    )


@pytest.fixture
def capabilities() -> Capabilities:
    """Capabilities of a full software-only ffmpeg."""
    return make_capabilities()


# =============================================================================
# Fake Introspector
# =============================================================================


class FakeIntrospector:
    """MediaIntrospector returning canned probes keyed by file name."""

    def __init__(self, probes: dict[str, MediaProbe] | None = None) -> None:
        self.probes = dict(probes or {})
        self.calls: list[Path] = []

    def add(
        self,
        name: str,
        video: str | None = "h264",
        audio: tuple[str, ...] = ("aac",),
        duration: float | None = 10.0,
    ) -> None:
        self.probes[name] = MediaProbe(
            path=Path(name),
            video_codec=video,
            audio_codecs=audio,
            duration_seconds=duration,
        )

    def probe(self, path: Path) -> MediaProbe:
        self.calls.append(path)
        try:
            template = self.probes[path.name]
        except KeyError:
            raise MediaIntrospectionError(f"cannot read {path.name}") from None
        return MediaProbe(
            path=path,
            container=template.container,
            video_codec=template.video_codec,
            audio_codecs=template.audio_codecs,
            duration_seconds=template.duration_seconds,
        )


@pytest.fixture
def introspector() -> FakeIntrospector:
    """Empty fake introspector; tests register files with add()."""
    return FakeIntrospector()


# =============================================================================
# Fake Encoder Processes
# =============================================================================


class FakeProcess:
    """Stand-in for asyncio.subprocess.Process driven by a script.

    The script is a list of stderr chunks (bytes) and float delays. After
    the script runs the process exits with ``returncode`` unless it has
    been terminated or killed. ``on_exit`` runs just before a natural exit,
    where ffmpeg would have finished writing its output. With
    ``ignore_terminate`` the process only dies on kill().
    """

    def __init__(
        self,
        args: Sequence[str],
        script: Sequence[bytes | float] = (),
        returncode: int = 0,
        *,
        hang: bool = False,
        ignore_terminate: bool = False,
        on_exit: Callable[[FakeProcess], None] | None = None,
    ) -> None:
        self.args = list(args)
        self.stderr = asyncio.StreamReader()
        self.returncode: int | None = None
        self.terminated = False
        self.killed = False
        self._exit_code = returncode
        self._hang = hang
        self._ignore_terminate = ignore_terminate
        self._on_exit = on_exit
        self._done = asyncio.Event()
        self._driver = asyncio.get_running_loop().create_task(self._drive(script))

    @property
    def output_path(self) -> Path:
        return Path(self.args[-1])

    async def _drive(self, script: Sequence[bytes | float]) -> None:
        for item in script:
            if self._done.is_set():
                return
            if isinstance(item, float):
                await asyncio.sleep(item)
            else:
                self.stderr.feed_data(item)
        if self._hang:
            await self._done.wait()
            return
        if self._on_exit is not None:
            self._on_exit(self)
        self._exit(self._exit_code)

    def _exit(self, code: int) -> None:
        if self.returncode is not None:
            return
        self.returncode = code
        self.stderr.feed_eof()
        self._done.set()

    async def wait(self) -> int:
        await self._done.wait()
        assert self.returncode is not None
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        if not self._ignore_terminate:
            self._exit(-15)

    def kill(self) -> None:
        self.killed = True
        self._exit(-9)


def write_output(process: FakeProcess) -> None:
    """on_exit hook that writes a non-empty file where ffmpeg would."""
    process.output_path.write_bytes(b"\x00\x00\x00\x18ftypmp42")


class FakeProcessFactory:
    """Process factory handing out FakeProcesses from a queue of specs.

    Each spec is a dict of FakeProcess keyword arguments. The last spec is
    reused once the queue runs out.
    """

    def __init__(self, *specs: dict) -> None:
        self.specs = list(specs) or [{"on_exit": write_output}]
        self.processes: list[FakeProcess] = []

    async def __call__(self, args: Sequence[str]) -> FakeProcess:
        index = min(len(self.processes), len(self.specs) - 1)
        spec = dict(self.specs[index])
        if spec.pop("spawn_error", False):
            raise FileNotFoundError(2, "No such file or directory", args[0])
        process = FakeProcess(args, **spec)
        self.processes.append(process)
        return process


def progress_line(seconds: float) -> bytes:
    """ffmpeg-style progress line ending in a carriage return."""
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return (
        f"frame=  100 fps= 30 size=  512kB "
        f"time={int(hours):02d}:{int(minutes):02d}:{secs:05.2f} "
        f"bitrate= 500.0kbits/s speed=1.0x\r"
    ).encode()
