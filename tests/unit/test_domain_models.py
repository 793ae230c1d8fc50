import pytest
from pathlib import Path
from pydantic import ValidationError
from thumbgen.domain.errors import ConversionError, ConversionReason
from thumbgen.domain.models import ConversionJob, JobOutcome, JobStatus, MediaKind, PipelineRun


def _job(name="a.jpg", kind=MediaKind.IMAGE):
    return ConversionJob(source_path=Path(name), destination_path=Path(f"{name}.webp"), media_kind=kind)


def test_conversion_job_is_immutable():
    job = _job()
    with pytest.raises(ValidationError):
        job.source_path = Path("other.jpg")


def test_conversion_job_equality_by_value():
    assert _job("a.jpg") == _job("a.jpg")
    assert _job("a.jpg") != _job("b.jpg")


def test_successful_outcome_cannot_carry_error():
    err = ConversionError(ConversionReason.NON_ZERO_EXIT, "boom")
    with pytest.raises(ValidationError):
        JobOutcome(job=_job(), succeeded=True, error=err)


def test_failed_outcome_requires_error():
    with pytest.raises(ValidationError):
        JobOutcome(job=_job(), succeeded=False)


def test_outcome_status():
    err = ConversionError(ConversionReason.TIMEOUT, "slow")
    assert JobOutcome(job=_job(), succeeded=True).status == JobStatus.SUCCEEDED
    assert JobOutcome(job=_job(), succeeded=False, error=err).status == JobStatus.FAILED


def test_pipeline_run_finished_only_with_all_outcomes():
    jobs = [_job("a.jpg"), _job("b.mp4", MediaKind.VIDEO)]
    partial = PipelineRun(jobs=jobs, outcomes={0: JobOutcome(job=jobs[0], succeeded=True)})
    assert not partial.finished
    assert not partial.all_succeeded

    err = ConversionError(ConversionReason.NON_ZERO_EXIT, "boom")
    complete = PipelineRun(
        jobs=jobs,
        outcomes={
            0: JobOutcome(job=jobs[0], succeeded=True),
            1: JobOutcome(job=jobs[1], succeeded=False, error=err),
        },
    )
    assert complete.finished
    assert [o.job for o in complete.succeeded] == [jobs[0]]
    assert [o.job for o in complete.failed] == [jobs[1]]
    assert not complete.all_succeeded


def test_pipeline_run_rejects_unknown_outcome_key():
    jobs = [_job("a.jpg")]
    with pytest.raises(ValidationError):
        PipelineRun(jobs=jobs, outcomes={3: JobOutcome(job=jobs[0], succeeded=True)})


def test_pipeline_run_rejects_outcome_for_other_job():
    jobs = [_job("a.jpg"), _job("b.jpg")]
    with pytest.raises(ValidationError):
        PipelineRun(jobs=jobs, outcomes={0: JobOutcome(job=jobs[1], succeeded=True)})


def test_empty_run_is_finished():
    run = PipelineRun(jobs=[])
    assert run.finished
    assert run.all_succeeded


def test_conversion_error_io_class():
    assert ConversionError(ConversionReason.MISSING_INPUT, "x").is_io_error
    assert ConversionError(ConversionReason.IO, "x").is_io_error
    assert not ConversionError(ConversionReason.NON_ZERO_EXIT, "x").is_io_error
