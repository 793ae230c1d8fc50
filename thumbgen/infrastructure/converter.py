import subprocess
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from thumbgen.config.models import GeneralConfig
from thumbgen.domain.errors import ConversionError, ConversionReason
from thumbgen.domain.models import ConversionJob, MediaKind

IMAGE_QUALITY = 80
VIDEO_SEEK_SECONDS = 1
STDERR_TAIL_CHARS = 2000

# ImageMagick output format prefixes and ffmpeg encoders per destination suffix
_MAGICK_FORMATS = {".webp": "webp", ".jpg": "jpg", ".jpeg": "jpg", ".png": "png"}
_FFMPEG_CODECS = {".webp": "libwebp", ".jpg": "mjpeg", ".jpeg": "mjpeg", ".png": "png"}


@dataclass
class ProcessResult:
    """Exit information of one finished tool process."""

    returncode: int
    stderr: str
    elapsed_seconds: float


def temp_path_for(destination: Path) -> Path:
    return destination.with_suffix(".tmp")


class ConverterAdapter:
    """Runs the external conversion tools (ImageMagick for stills, ffmpeg for video).

    A conversion is split in two steps so the caller can release resources as
    soon as the process exits: `invoke` spawns the tool and waits for it,
    `finalize` validates the written file and moves it into place.
    """

    def __init__(self, config: GeneralConfig, poll_interval: float = 0.1, kill_grace_s: float = 3.0):
        self.config = config
        self.poll_interval = poll_interval
        self.kill_grace_s = kill_grace_s
        self.logger = logging.getLogger(__name__)

    def _build_image_command(self, job: ConversionJob, tmp_path: Path) -> List[str]:
        fmt = _MAGICK_FORMATS[job.destination_path.suffix.lower()]
        return [
            self.config.image_tool,
            f"{job.source_path}[0]",  # first frame/page only (gif, tiff)
            "-auto-orient",
            "-resize", f"x{self.config.target_height}",
            "-quality", str(IMAGE_QUALITY),
            "-strip",
            f"{fmt}:{tmp_path}",
        ]

    def _build_video_command(self, job: ConversionJob, tmp_path: Path) -> List[str]:
        codec = _FFMPEG_CODECS[job.destination_path.suffix.lower()]
        return [
            self.config.video_tool,
            "-y",
            "-loglevel", "error",
            "-ss", str(VIDEO_SEEK_SECONDS),
            "-i", str(job.source_path),
            "-frames:v", "1",
            "-vf", f"scale=-2:{self.config.target_height}",
            "-c:v", codec,
            "-f", "image2",
            "-update", "1",
            str(tmp_path),
        ]

    def build_command(self, job: ConversionJob) -> List[str]:
        """Constructs the tool command line for the job's media kind."""
        tmp_path = temp_path_for(job.destination_path)
        if job.media_kind == MediaKind.IMAGE:
            return self._build_image_command(job, tmp_path)
        return self._build_video_command(job, tmp_path)

    def _terminate(self, process: subprocess.Popen):
        process.terminate()
        try:
            process.wait(timeout=self.kill_grace_s)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    def _cleanup_tmp(self, job: ConversionJob):
        tmp_path = temp_path_for(job.destination_path)
        try:
            if tmp_path.exists():
                tmp_path.unlink()
        except OSError as e:
            self.logger.warning(f"TMP_CLEANUP_FAILED: {tmp_path} ({e})")

    def invoke(self, job: ConversionJob, shutdown_event: Optional[threading.Event] = None) -> ProcessResult:
        """Spawns the tool for `job` and blocks until it exits.

        Raises ConversionError when the process cannot be started, exits
        non-zero, runs past `timeout_s`, or is stopped through `shutdown_event`.
        The process is no longer running when this method returns or raises.
        """
        if not job.source_path.is_file():
            raise ConversionError(
                ConversionReason.MISSING_INPUT,
                f"Source file not found: {job.source_path}",
            )

        try:
            job.destination_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConversionError(
                ConversionReason.IO,
                f"Cannot create destination directory {job.destination_path.parent}: {e}",
            ) from e

        cmd = self.build_command(job)
        self.logger.debug(f"CONVERT_CMD: {' '.join(cmd)}")

        start_time = time.monotonic()
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                universal_newlines=True,
            )
        except FileNotFoundError as e:
            raise ConversionError(
                ConversionReason.TOOL_NOT_FOUND,
                f"Conversion tool not found: {cmd[0]}",
            ) from e
        except OSError as e:
            raise ConversionError(
                ConversionReason.TOOL_NOT_FOUND,
                f"Cannot start {cmd[0]}: {e}",
            ) from e

        deadline = start_time + self.config.timeout_s if self.config.timeout_s else None
        stderr = ""
        while True:
            try:
                _, stderr = process.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                pass

            if shutdown_event is not None and shutdown_event.is_set():
                self._terminate(process)
                self._cleanup_tmp(job)
                raise ConversionError(
                    ConversionReason.INTERRUPTED,
                    f"{cmd[0]} interrupted by shutdown request",
                )
            if deadline is not None and time.monotonic() >= deadline:
                self._terminate(process)
                self._cleanup_tmp(job)
                raise ConversionError(
                    ConversionReason.TIMEOUT,
                    f"{cmd[0]} exceeded timeout of {self.config.timeout_s}s",
                )

        elapsed = time.monotonic() - start_time
        stderr = (stderr or "")[-STDERR_TAIL_CHARS:]
        if process.returncode != 0:
            self._cleanup_tmp(job)
            raise ConversionError(
                ConversionReason.NON_ZERO_EXIT,
                f"{cmd[0]} exited with code {process.returncode}",
                returncode=process.returncode,
                stderr=stderr,
            )
        return ProcessResult(returncode=process.returncode, stderr=stderr, elapsed_seconds=elapsed)

    def finalize(self, job: ConversionJob, result: ProcessResult) -> None:
        """Checks the tool's output and renames it to the destination path."""
        tmp_path = temp_path_for(job.destination_path)
        try:
            size = tmp_path.stat().st_size if tmp_path.exists() else 0
        except OSError:
            size = 0
        if size == 0:
            self._cleanup_tmp(job)
            raise ConversionError(
                ConversionReason.OUTPUT_INVALID,
                f"No thumbnail written for {job.source_path.name} (empty or missing output)",
                returncode=result.returncode,
                stderr=result.stderr,
            )

        try:
            tmp_path.replace(job.destination_path)
        except OSError as e:
            self._cleanup_tmp(job)
            raise ConversionError(
                ConversionReason.IO,
                f"Cannot write {job.destination_path}: {e}",
            ) from e
