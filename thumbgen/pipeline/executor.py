"""Bounded executor for thumbnail conversion jobs.

Runs every job of a catalog exactly once while keeping at most `P` external
tool processes alive. `P` defaults to the CPU count.

Key points:
- A BoundedSemaphore of size P is acquired before each dispatch, so the
  caller stops submitting once P conversions are in flight (submit-on-demand,
  no queue of thousands of futures).
- The permit is released as soon as the tool process exits, before output
  validation and bookkeeping.
- Each job writes its outcome into its own pre-sized slot; slots are read only
  after every future has completed.
- One job's failure never stops the others. The returned PipelineRun always
  has one outcome per job.
"""

import os
import logging
import threading
import time
import concurrent.futures
from typing import List, Optional, Sequence, Union
from thumbgen.config.models import GeneralConfig
from thumbgen.domain.errors import ConfigurationError, ConversionError, ConversionReason
from thumbgen.domain.events import JobCompleted, JobFailed, JobStarted, RunFinished, RunStarted
from thumbgen.domain.models import Catalog, ConversionJob, JobOutcome, PipelineRun
from thumbgen.infrastructure.converter import ConverterAdapter
from thumbgen.infrastructure.event_bus import EventBus


def default_parallelism() -> int:
    return os.cpu_count() or 1


def resolve_parallelism(requested: Optional[int], configured: Optional[int] = None) -> int:
    """Picks the permit count: explicit value, then config, then CPU count."""
    value = requested if requested is not None else configured
    if value is None:
        return default_parallelism()
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"parallelism must be a positive integer, got {value!r}")
    if value <= 0:
        raise ConfigurationError(f"parallelism must be a positive integer, got {value}")
    return value


class PipelineExecutor:
    """Runs conversion jobs under a fixed-size permit pool.

    Args:
        config: GeneralConfig (default parallelism, tool settings).
        converter: Adapter with `invoke(job, shutdown_event)` and `finalize(job, result)`.
        event_bus: Optional EventBus receiving job and run lifecycle events.
    """

    def __init__(
        self,
        config: GeneralConfig,
        converter: Optional[ConverterAdapter] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.config = config
        self.converter = converter or ConverterAdapter(config)
        self.event_bus = event_bus or EventBus()
        self.logger = logging.getLogger(__name__)

    def _execute(
        self,
        index: int,
        job: ConversionJob,
        permits: threading.BoundedSemaphore,
        slots: List[Optional[JobOutcome]],
        shutdown_event: Optional[threading.Event],
    ) -> None:
        start_time = time.monotonic()
        try:
            try:
                result = self.converter.invoke(job, shutdown_event=shutdown_event)
            finally:
                permits.release()
            self.converter.finalize(job, result)
            outcome = JobOutcome(job=job, succeeded=True, duration_seconds=time.monotonic() - start_time)
        except ConversionError as e:
            outcome = JobOutcome(job=job, succeeded=False, error=e, duration_seconds=time.monotonic() - start_time)
        except Exception as e:
            self.logger.exception(f"JOB_CRASH: #{index} {job.source_path}")
            error = ConversionError(ConversionReason.IO, f"Unexpected error: {e}")
            outcome = JobOutcome(job=job, succeeded=False, error=error, duration_seconds=time.monotonic() - start_time)

        slots[index] = outcome
        self._report(index, outcome)

    def _report(self, index: int, outcome: JobOutcome) -> None:
        job = outcome.job
        if outcome.succeeded:
            self.logger.info(f"JOB_END: #{index} {job.source_path.name} status=succeeded elapsed={outcome.duration_seconds:.2f}s")
            self.event_bus.publish(JobCompleted(index=index, job=job, outcome=outcome))
        else:
            error = outcome.error
            self.logger.error(f"JOB_END: #{index} {job.source_path.name} status=failed reason={error.reason.value} ({error.message})")
            if error.stderr:
                self.logger.debug(f"JOB_STDERR: #{index} {error.stderr.strip()}")
            self.event_bus.publish(JobFailed(index=index, job=job, outcome=outcome, error_message=error.message))

    def _record_cancelled(self, index: int, job: ConversionJob, slots: List[Optional[JobOutcome]]) -> None:
        error = ConversionError(ConversionReason.CANCELLED, "Cancelled before dispatch")
        outcome = JobOutcome(job=job, succeeded=False, error=error)
        slots[index] = outcome
        self._report(index, outcome)

    def _acquire(self, permits: threading.BoundedSemaphore, stop: threading.Event) -> bool:
        """Blocks for a permit. Returns False if shutdown was requested while waiting."""
        while not stop.is_set():
            if permits.acquire(timeout=0.1):
                if stop.is_set():
                    permits.release()
                    return False
                return True
        return False

    def run(
        self,
        catalog: Union[Catalog, Sequence[ConversionJob]],
        parallelism: Optional[int] = None,
        shutdown_event: Optional[threading.Event] = None,
    ) -> PipelineRun:
        """Executes every job once and returns after all outcomes are recorded.

        Raises ConfigurationError for an invalid parallelism before any job
        is dispatched.
        """
        limit = resolve_parallelism(parallelism, self.config.parallelism)
        jobs = list(catalog.jobs) if isinstance(catalog, Catalog) else list(catalog)

        self.logger.info(f"RUN_START: jobs={len(jobs)}, parallelism={limit}")
        self.event_bus.publish(RunStarted(jobs_count=len(jobs), parallelism=limit))

        permits = threading.BoundedSemaphore(limit)
        slots: List[Optional[JobOutcome]] = [None] * len(jobs)
        futures = []
        stop = shutdown_event or threading.Event()

        # Permits bound the tool processes; extra threads let a new job start
        # while finished ones are still validating output.
        with concurrent.futures.ThreadPoolExecutor(max_workers=2 * limit, thread_name_prefix="thumbgen") as executor:
            try:
                for index, job in enumerate(jobs):
                    if not self._acquire(permits, stop):
                        self._record_cancelled(index, job, slots)
                        continue
                    self.logger.info(f"JOB_START: #{index} {job.source_path} ({job.media_kind.value})")
                    self.event_bus.publish(JobStarted(index=index, job=job))
                    futures.append(executor.submit(self._execute, index, job, permits, slots, stop))

                concurrent.futures.wait(futures)
            except KeyboardInterrupt:
                self.logger.info("Ctrl+C detected - terminating running conversions...")
                stop.set()
                concurrent.futures.wait(futures)
                raise

        for future in futures:
            # Outcome slot is already written; only event subscribers can raise here
            exc = future.exception()
            if exc is not None:
                self.logger.error(f"Worker raised after recording outcome: {exc!r}")

        outcomes = {index: outcome for index, outcome in enumerate(slots) if outcome is not None}
        run = PipelineRun(jobs=jobs, outcomes=outcomes, parallelism=limit)
        self.logger.info(
            f"RUN_END: jobs={len(jobs)}, succeeded={len(run.succeeded)}, failed={len(run.failed)}"
        )
        self.event_bus.publish(RunFinished(run=run))
        return run
