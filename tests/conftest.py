import sys
import stat
import threading
import time
import pytest
from pathlib import Path
from thumbgen.config.models import GeneralConfig
from thumbgen.domain.errors import ConversionError, ConversionReason
from thumbgen.domain.models import ConversionJob, MediaKind
from thumbgen.infrastructure.converter import ProcessResult
from thumbgen.infrastructure.event_bus import EventBus

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def general_config():
    """Returns a GeneralConfig with a fixed parallelism for testing."""
    return GeneralConfig(parallelism=2, target_height=120)

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

# ============================================================================
# File System Fixtures
# ============================================================================

@pytest.fixture
def album_root(tmp_path):
    """Creates album folders: two images, one video, one empty, one unsupported."""
    root = tmp_path / "albums"
    root.mkdir()
    layout = {
        "beach": ["b.jpg", "a.JPG"],
        "cats": ["cat.png", "notes.txt"],
        "party": ["clip.mp4"],
        "empty": [],
        "docs": ["readme.txt"],
    }
    for album, files in layout.items():
        folder = root / album
        folder.mkdir()
        for name in files:
            (folder / name).write_bytes(b"media content")
    return root


@pytest.fixture
def make_job(tmp_path):
    """Factory for jobs whose source lives under tmp_path/src."""
    def _make(name: str, kind: MediaKind = MediaKind.IMAGE, create_source: bool = True) -> ConversionJob:
        source = tmp_path / "src" / name
        if create_source:
            source.parent.mkdir(parents=True, exist_ok=True)
            source.write_bytes(b"media content")
        return ConversionJob(
            source_path=source,
            destination_path=tmp_path / "out" / f"{Path(name).stem}_thumb.webp",
            media_kind=kind,
        )
    return _make

# ============================================================================
# Fake conversion tools
# ============================================================================

FAKE_TOOL = """#!/bin/sh
# Writes a fixed payload to the last argument (ImageMagick 'fmt:' prefix stripped)
for last; do :; done
out="${last#*:}"
if [ -n "$FAKE_TOOL_SLEEP" ]; then sleep "$FAKE_TOOL_SLEEP"; fi
printf 'thumbnail-bytes' > "$out"
"""

FAILING_TOOL = """#!/bin/sh
echo "fake tool failure" >&2
exit 3
"""

EMPTY_OUTPUT_TOOL = """#!/bin/sh
for last; do :; done
out="${last#*:}"
: > "$out"
"""

HANGING_TOOL = """#!/bin/sh
exec sleep 30
"""


def _write_tool(directory: Path, name: str, body: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_tools(tmp_path):
    """POSIX shell scripts standing in for ImageMagick and ffmpeg."""
    if sys.platform == "win32":
        pytest.skip("fake tools are POSIX shell scripts")
    bin_dir = tmp_path / "bin"
    return {
        "ok": _write_tool(bin_dir, "fake-convert", FAKE_TOOL),
        "fail": _write_tool(bin_dir, "fake-fail", FAILING_TOOL),
        "empty": _write_tool(bin_dir, "fake-empty", EMPTY_OUTPUT_TOOL),
        "hang": _write_tool(bin_dir, "fake-hang", HANGING_TOOL),
    }


class FakeConverter:
    """In-process converter that tracks how many conversions overlap."""

    def __init__(self, delay: float = 0.05, fail_names=()):
        self.delay = delay
        self.fail_names = set(fail_names)
        self.active = 0
        self.max_active = 0
        self.invoked = []
        self.finalized = []
        self._lock = threading.Lock()

    def invoke(self, job, shutdown_event=None):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.invoked.append(job)
        try:
            time.sleep(self.delay)
            if job.source_path.name in self.fail_names:
                raise ConversionError(ConversionReason.NON_ZERO_EXIT, "fake exit 1", returncode=1)
            return ProcessResult(returncode=0, stderr="", elapsed_seconds=self.delay)
        finally:
            with self._lock:
                self.active -= 1

    def finalize(self, job, result):
        with self._lock:
            self.finalized.append(job)


@pytest.fixture
def fake_converter():
    return FakeConverter()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
