from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from thumbgen.domain.errors import ConversionError, EnumerationError


class MediaKind(str, Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"


class JobStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class ConversionJob(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_path: Path
    destination_path: Path
    media_kind: MediaKind


class JobOutcome(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    job: ConversionJob
    succeeded: bool
    error: Optional[ConversionError] = None
    duration_seconds: Optional[float] = None

    @model_validator(mode="after")
    def validate_error(self):
        if self.succeeded and self.error is not None:
            raise ValueError("a successful outcome cannot carry an error")
        if not self.succeeded and self.error is None:
            raise ValueError("a failed outcome must carry an error")
        return self

    @property
    def status(self) -> JobStatus:
        return JobStatus.SUCCEEDED if self.succeeded else JobStatus.FAILED


class Catalog(BaseModel):
    """Jobs built from a set of locations, plus the entries that were skipped."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    jobs: List[ConversionJob] = Field(default_factory=list)
    errors: List[EnumerationError] = Field(default_factory=list)


class PipelineRun(BaseModel):
    """A full batch: the jobs and their outcomes keyed by job position."""

    jobs: List[ConversionJob]
    outcomes: Dict[int, JobOutcome] = Field(default_factory=dict)
    parallelism: int = Field(default=1, gt=0)

    @model_validator(mode="after")
    def validate_outcome_keys(self):
        for index, outcome in self.outcomes.items():
            if not 0 <= index < len(self.jobs):
                raise ValueError(f"outcome key {index} does not match any job")
            if outcome.job != self.jobs[index]:
                raise ValueError(f"outcome {index} belongs to a different job")
        return self

    @property
    def finished(self) -> bool:
        return len(self.outcomes) == len(self.jobs)

    @property
    def succeeded(self) -> List[JobOutcome]:
        return [self.outcomes[i] for i in sorted(self.outcomes) if self.outcomes[i].succeeded]

    @property
    def failed(self) -> List[JobOutcome]:
        return [self.outcomes[i] for i in sorted(self.outcomes) if not self.outcomes[i].succeeded]

    @property
    def all_succeeded(self) -> bool:
        return self.finished and not self.failed

    def outcome_for(self, index: int) -> Optional[JobOutcome]:
        return self.outcomes.get(index)
