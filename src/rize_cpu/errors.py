"""Error taxonomy for the Rize-1 CPU.

Every failure the machine can report is a RizeError carrying a kind and a
human readable message. The CPU orchestrator catches these per pipeline
stage and halts; anything else is a bug and propagates.
"""

from enum import Enum


class RizeErrorKind(Enum):
    """Which part of the machine reported a failure."""
    FETCH = "Fetch"
    DECODE = "Decode"
    EXECUTE = "Execute"
    MEMORY_READ = "MemoryRead"
    MEMORY_WRITE = "MemoryWrite"
    REGISTER_READ = "RegisterRead"
    REGISTER_WRITE = "RegisterWrite"
    DISPLAY = "Display"


class RizeError(Exception):
    """Base class for all machine errors.

    Attributes:
        kind: Error category
        message: Description of what went wrong
    """

    kind: RizeErrorKind = RizeErrorKind.EXECUTE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class FetchError(RizeError):
    kind = RizeErrorKind.FETCH


class DecodeError(RizeError):
    kind = RizeErrorKind.DECODE


class ExecuteError(RizeError):
    kind = RizeErrorKind.EXECUTE


class MemoryReadError(RizeError):
    kind = RizeErrorKind.MEMORY_READ


class MemoryWriteError(RizeError):
    kind = RizeErrorKind.MEMORY_WRITE


class RegisterReadError(RizeError):
    kind = RizeErrorKind.REGISTER_READ


class RegisterWriteError(RizeError):
    kind = RizeErrorKind.REGISTER_WRITE


class DisplayError(RizeError):
    kind = RizeErrorKind.DISPLAY
