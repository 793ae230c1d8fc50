"""Domain events for the thumbnail pipeline.

Events flow through the EventBus so the executor does not know who is
watching (CLI progress bar, tests, loggers).

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from typing import List
from pydantic import BaseModel, ConfigDict, Field

from thumbgen.domain.errors import EnumerationError
from thumbgen.domain.models import ConversionJob, JobOutcome, PipelineRun


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class JobEvent(Event):
    """Base class for events related to a single conversion job."""

    index: int
    job: ConversionJob


class JobStarted(JobEvent):
    """Emitted when a job has a permit and is handed to a worker."""

    pass


class JobCompleted(JobEvent):
    """Emitted when a job's thumbnail has been written."""

    outcome: JobOutcome


class JobFailed(JobEvent):
    """Emitted when a job reaches the FAILED state."""

    outcome: JobOutcome
    error_message: str


class CatalogBuilt(Event):
    """Emitted after all locations were scanned."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    locations_count: int
    jobs_count: int
    errors: List[EnumerationError] = Field(default_factory=list)


class RunStarted(Event):
    jobs_count: int
    parallelism: int


class RunFinished(Event):
    """Emitted once every job has an outcome."""

    run: PipelineRun
