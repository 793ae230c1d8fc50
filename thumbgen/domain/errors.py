from enum import Enum
from pathlib import Path
from typing import Optional


class ThumbgenError(Exception):
    """Base class for all thumbgen errors."""


class ConfigurationError(ThumbgenError):
    """Raised before any work starts when run settings are invalid."""


class EnumerationReason(str, Enum):
    MISSING = "MISSING"
    UNREADABLE = "UNREADABLE"
    NO_ARTIFACT = "NO_ARTIFACT"
    UNSUPPORTED_EXTENSION = "UNSUPPORTED_EXTENSION"
    DESTINATION_CONFLICT = "DESTINATION_CONFLICT"


class EnumerationError(ThumbgenError):
    """A single input location could not be turned into a job.

    Collected by the catalog builder next to the jobs it did build; never
    raised out of a catalog build.
    """

    def __init__(self, location: Path, reason: EnumerationReason, message: str):
        super().__init__(message)
        self.location = location
        self.reason = reason
        self.message = message

    def __repr__(self) -> str:
        return f"EnumerationError({str(self.location)!r}, {self.reason.value}, {self.message!r})"


class ConversionReason(str, Enum):
    MISSING_INPUT = "MISSING_INPUT"
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    NON_ZERO_EXIT = "NON_ZERO_EXIT"
    TIMEOUT = "TIMEOUT"
    INTERRUPTED = "INTERRUPTED"
    CANCELLED = "CANCELLED"
    OUTPUT_INVALID = "OUTPUT_INVALID"
    IO = "IO"


class ConversionError(ThumbgenError):
    """A job's conversion attempt failed. Stored on the job's outcome."""

    def __init__(
        self,
        reason: ConversionReason,
        message: str,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.returncode = returncode
        self.stderr = stderr

    @property
    def is_io_error(self) -> bool:
        return self.reason in (ConversionReason.MISSING_INPUT, ConversionReason.IO)

    def __repr__(self) -> str:
        return f"ConversionError({self.reason.value}, {self.message!r})"
