"""Runs the real ImageMagick and ffmpeg binaries when they are installed."""
import shutil
import subprocess
import pytest
from thumbgen.config.models import GeneralConfig
from thumbgen.pipeline.catalog import CatalogBuilder
from thumbgen.pipeline.executor import PipelineExecutor

pytestmark = [
    pytest.mark.integration,
    pytest.mark.real_tools,
    pytest.mark.skipif(
        shutil.which("ffmpeg") is None or shutil.which("convert") is None,
        reason="ffmpeg and ImageMagick convert are required",
    ),
]


def _ffmpeg(*args):
    subprocess.run(["ffmpeg", "-y", "-loglevel", "error", *args], check=True)


@pytest.fixture
def real_albums(tmp_path):
    root = tmp_path / "albums"
    (root / "still").mkdir(parents=True)
    (root / "clip").mkdir()
    _ffmpeg("-f", "lavfi", "-i", "testsrc=size=640x480:rate=1", "-frames:v", "1", str(root / "still" / "photo.png"))
    _ffmpeg("-f", "lavfi", "-i", "testsrc=size=320x240:rate=10", "-t", "2", "-pix_fmt", "yuv420p", str(root / "clip" / "movie.mp4"))
    return root


def test_real_tools_write_thumbnails(real_albums):
    config = GeneralConfig(thumbnail_name="thumbnail.png", target_height=60)
    catalog = CatalogBuilder(config).build([real_albums / "still", real_albums / "clip"])

    run = PipelineExecutor(config).run(catalog, parallelism=2)

    failures = {str(o.job.source_path): o.error for o in run.failed}
    assert run.all_succeeded, failures
    for job in catalog.jobs:
        assert job.destination_path.stat().st_size > 0
